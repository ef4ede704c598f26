from pydantic import BaseModel
from typing import List
import uuid

class DigestStats(BaseModel):
    new_followers: int = 0
    new_likes: int = 0
    new_comments: int = 0

    @property
    def has_activity(self) -> bool:
        return self.new_followers > 0 or self.new_likes > 0 or self.new_comments > 0

class DigestFailure(BaseModel):
    user_id: uuid.UUID
    error: str

class DigestReport(BaseModel):
    recipients: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[DigestFailure] = []
