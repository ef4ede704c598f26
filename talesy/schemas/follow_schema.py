from pydantic import BaseModel
from typing import List
import uuid

from talesy.schemas.user_schema import AuthorSnapshot

class FollowStatus(BaseModel):
    user_id: uuid.UUID
    is_following: bool
    followers: int
    following_count: int

class FollowListResponse(BaseModel):
    users: List[AuthorSnapshot]
    total: int
    skip: int
    limit: int
    user_id: uuid.UUID
