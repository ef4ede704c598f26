from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from talesy.config import settings
from talesy.db.session import get_db
from talesy.exceptions import InvalidIdentifier, Unauthorized
from talesy.models.user import User
from talesy.schemas.auth_schema import TokenPayload, TokenType
from talesy.utils.identifiers import to_uuid

logger = logging.getLogger(__name__)

# Tokens are issued by the auth service; this API only verifies them
bearer_scheme = HTTPBearer(auto_error=False)

def decode_token(token: str) -> TokenPayload:
    """Verify a JWT access token and return its claims"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.ALGORITHM])
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError) as e:
        logger.debug(f"Rejected token: {e}")
        raise Unauthorized()

    if token_data.type != TokenType.ACCESS:
        raise Unauthorized()

    return token_data

async def authenticate(token: str, db: AsyncSession) -> User:
    """Resolve the user a token was issued to"""
    token_data = decode_token(token)

    try:
        user_id = to_uuid(token_data.sub)
    except InvalidIdentifier:
        raise Unauthorized()

    stmt = select(User).where(User.id == user_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise Unauthorized()

    # Bumped on logout-all and deactivation
    if token_data.token_version != (user.token_version or 0):
        raise Unauthorized("Session has been revoked")

    return user

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user"""
    if credentials is None:
        raise Unauthorized("Not authenticated")
    return await authenticate(credentials.credentials, db)

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Like get_current_user, but anonymous or invalid credentials give None"""
    if credentials is None:
        return None
    try:
        return await authenticate(credentials.credentials, db)
    except Unauthorized:
        return None
