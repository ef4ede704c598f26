from sqlalchemy import Column, ForeignKey, DateTime, Uuid, UniqueConstraint, Index
import uuid
from talesy.db.base import Base, utcnow

class Like(Base):
    """A user's like on a post."""
    __tablename__ = "likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'post_id', name='uq_likes_user_post'),
        Index('ix_likes_post_id', 'post_id'),
        Index('ix_likes_created_at', 'created_at'),
    )

class CommentLike(Base):
    """A user's like on a comment or reply."""
    __tablename__ = "comment_likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # No FK: cascade deletes remove these rows explicitly, and a leftover row
    # for a vanished comment no longer feeds any counter.
    target_id = Column(Uuid, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'target_id', name='uq_comment_likes_user_target'),
        Index('ix_comment_likes_target_id', 'target_id'),
    )
