"""
Models package for the Talesy API
"""
from talesy.db.base import Base, BaseModel
from talesy.models.user import User
from talesy.models.post import Post, PostStatus
from talesy.models.comment import Comment
from talesy.models.like import Like, CommentLike
from talesy.models.follow import Follow
from talesy.models.notification import Notification, NotificationType

__all__ = [
    'Base',
    'BaseModel',
    'User',
    'Post',
    'PostStatus',
    'Comment',
    'Like',
    'CommentLike',
    'Follow',
    'Notification',
    'NotificationType',
]
