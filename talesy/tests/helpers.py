from datetime import datetime, timedelta, timezone
from typing import Dict

from jose import jwt

from talesy.config import settings
from talesy.models.user import User

def make_token(user: User, token_version: int = None, secret: str = None, token_type: str = "access") -> str:
    """Sign a token the way the auth service does"""
    payload = {
        "sub": str(user.id),
        "token_version": user.token_version if token_version is None else token_version,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    return jwt.encode(payload, secret or settings.secret_key, algorithm=settings.ALGORITHM)

def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}
