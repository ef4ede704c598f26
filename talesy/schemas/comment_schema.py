from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
import uuid

from talesy.schemas.user_schema import AuthorSnapshot

# Length is checked by CommentService after trimming, so the request
# models only bound the raw size.
class CommentCreate(BaseModel):
    content: str = Field(..., max_length=5000)
    parent_id: Optional[str] = None

class ReplyCreate(BaseModel):
    content: str = Field(..., max_length=5000)

class CommentUpdate(BaseModel):
    content: str = Field(..., max_length=5000)

class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    post_id: uuid.UUID
    author_id: uuid.UUID
    parent_id: Optional[uuid.UUID] = None
    content: str
    likes_count: int = 0
    liked: bool = False
    created_at: datetime
    updated_at: datetime
    author: Optional[AuthorSnapshot] = None

class CommentTreeResponse(CommentResponse):
    replies: List['CommentTreeResponse'] = []

class CommentDeleteResponse(BaseModel):
    message: str
    deleted_count: int

# For nested models
CommentTreeResponse.model_rebuild()
