from sqlalchemy import Column, String, ForeignKey, Boolean, Uuid, Index
import enum
from talesy.db.base import BaseModel

class NotificationType(str, enum.Enum):
    COMMENT = "comment"
    FOLLOW = "follow"
    LIKE = "like"
    MESSAGE = "message"
    SYSTEM = "system"

class Notification(BaseModel):
    __tablename__ = "notifications"

    recipient_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    sender_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    type = Column(String(20), nullable=False)
    message = Column(String(250), nullable=False)
    link = Column(String(500), nullable=True)
    target_id = Column(Uuid, nullable=True)
    read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('ix_notifications_recipient_id', 'recipient_id'),
        Index('ix_notifications_recipient_read', 'recipient_id', 'read'),
        Index('ix_notifications_created_at', 'created_at'),
    )
