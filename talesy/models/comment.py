from sqlalchemy import Column, Text, Integer, ForeignKey, Uuid, Index
from talesy.db.base import BaseModel

class Comment(BaseModel):
    __tablename__ = "comments"

    post_id = Column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    # NULL for root comments. Not a foreign key: deletion of a subtree is
    # done by CommentService, and deleting a reply must not touch its replies.
    parent_id = Column(Uuid, nullable=True)

    # Denormalized, recomputed from comment_likes
    likes_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_comments_post_parent', 'post_id', 'parent_id'),
        Index('ix_comments_author_id', 'author_id'),
        Index('ix_comments_parent_id', 'parent_id'),
        Index('ix_comments_created_at', 'created_at'),
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None
