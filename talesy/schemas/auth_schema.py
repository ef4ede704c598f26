from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"

class TokenPayload(BaseModel):
    """Claims the API reads from a bearer token issued by the auth service"""
    sub: str = Field(..., description="User ID")
    token_version: int = Field(0, description="User token version at issue time")
    type: TokenType = TokenType.ACCESS
    exp: Optional[datetime] = None
