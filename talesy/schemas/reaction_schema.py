from pydantic import BaseModel
from enum import Enum

class ReactionTarget(str, Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"

class ToggleResult(BaseModel):
    """Outcome of a like/follow toggle.

    ``active`` tells whether the reaction exists after the call and ``count``
    is the target's recomputed counter (likes, or followers for a user).
    """
    active: bool
    count: int
