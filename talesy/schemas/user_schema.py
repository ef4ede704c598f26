from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
import uuid

class AuthorSnapshot(BaseModel):
    """Display info of a user, resolved when the owning record is read"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None

class NotificationPreferences(BaseModel):
    comments: bool = True
    follows: bool = True
    likes: bool = True
    messages: bool = True
    weekly_digest: bool = True

class NotificationPreferencesUpdate(BaseModel):
    comments: Optional[bool] = None
    follows: Optional[bool] = None
    likes: Optional[bool] = None
    messages: Optional[bool] = None
    weekly_digest: Optional[bool] = None

class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: Optional[str] = None
    username: str
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    created_at: datetime

class UserMe(UserPublic):
    email: str
    is_active: bool

class UserSettings(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    email: str
    notification_preferences: NotificationPreferences

class UserSettingsUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    notification_preferences: Optional[NotificationPreferencesUpdate] = None

class UserListResponse(BaseModel):
    users: List[AuthorSnapshot]
    total: int
    skip: int
    limit: int

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = Field(None, max_length=500)
    cover_image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("Name is required")
        return v.strip()
