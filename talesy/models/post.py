from sqlalchemy import Column, String, Text, Integer, ForeignKey, JSON, Uuid, Index
import enum
from talesy.db.base import BaseModel

class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"

class Post(BaseModel):
    """A story. Supersedes the legacy split between posts and writings."""
    __tablename__ = "posts"

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(500), default="")
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default=PostStatus.DRAFT.value, nullable=False)
    tags = Column(JSON, default=list, nullable=False)

    # Denormalized counts, recomputed from likes and comments
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_posts_author_id', 'author_id'),
        Index('ix_posts_status', 'status'),
        Index('ix_posts_created_at', 'created_at'),
    )

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED.value
