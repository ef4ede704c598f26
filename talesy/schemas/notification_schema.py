from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
import uuid

from talesy.models.notification import NotificationType

class EventKind(str, Enum):
    POST_LIKE = "post_like"
    COMMENT_LIKE = "comment_like"
    COMMENT = "comment"
    REPLY = "reply"
    FOLLOW = "follow"
    SYSTEM = "system"

class NotificationEvent(BaseModel):
    """Something a user may be told about, emitted after the triggering write commits"""
    kind: EventKind
    recipient_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    target_id: Optional[uuid.UUID] = None
    link: Optional[str] = None
    # Template values: post_title, post_id, excerpt, message
    context: Dict[str, Any] = Field(default_factory=dict)

class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    recipient_id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    type: NotificationType
    message: str
    link: Optional[str] = None
    target_id: Optional[uuid.UUID] = None
    read: bool
    created_at: datetime

class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    skip: int
    limit: int

class UnreadCount(BaseModel):
    unread_count: int
