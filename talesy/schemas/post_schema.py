from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
import uuid

from talesy.models.post import PostStatus
from talesy.schemas.user_schema import AuthorSnapshot

def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value

def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value

class PostBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    status: PostStatus = PostStatus.DRAFT
    tags: List[str] = []

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        return _require_text(v)

class PostCreate(PostBase):
    pass

class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    status: Optional[PostStatus] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "content", "status", "tags")
    @classmethod
    def not_null(cls, v):
        # Omit a field to leave it unchanged; null is not a value for any of them
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        return _require_text(v)

class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    content: str
    image_url: Optional[str] = None
    author_id: uuid.UUID
    status: PostStatus
    tags: List[str] = []
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    updated_at: datetime

class PostWithAuthor(PostResponse):
    author: Optional[AuthorSnapshot] = None
    liked: bool = False

class PostListResponse(BaseModel):
    posts: List[PostWithAuthor]
    total: int
    skip: int
    limit: int

class TagCount(BaseModel):
    name: str
    count: int
