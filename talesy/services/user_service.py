from typing import Any, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, desc, func, or_
import logging

from talesy.db.base import utcnow
from talesy.exceptions import NotFound, StoreFailure
from talesy.models.follow import Follow
from talesy.models.user import User, PREFERENCE_KEYS
from talesy.schemas.follow_schema import FollowListResponse, FollowStatus
from talesy.schemas.user_schema import (
    AuthorSnapshot,
    NotificationPreferences,
    ProfileUpdate,
    UserSettings,
    UserSettingsUpdate,
)
from talesy.utils.identifiers import to_uuid, to_uuid_or_none

logger = logging.getLogger(__name__)

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: Any) -> User:
        """Get an active user by ID"""
        stmt = select(User).where(User.id == to_uuid(user_id))
        result = await self.db.execute(stmt)
        user = result.scalar_one_or_none()
        if not user or not user.is_active:
            raise NotFound("User not found")
        return user

    @staticmethod
    def get_settings(user: User) -> UserSettings:
        stored = user.notification_preferences or {}
        preferences = {key: stored.get(key, True) is not False for key in PREFERENCE_KEYS}
        return UserSettings(
            name=user.name,
            bio=user.bio,
            email=user.email,
            notification_preferences=NotificationPreferences(**preferences)
        )

    async def update_settings(self, user: User, settings_update: UserSettingsUpdate) -> UserSettings:
        """Update profile fields and merge notification preferences"""
        update_data = settings_update.model_dump(exclude_unset=True, exclude={"notification_preferences"})

        try:
            for field, value in update_data.items():
                setattr(user, field, value)

            if settings_update.notification_preferences is not None:
                changes = settings_update.notification_preferences.model_dump(exclude_none=True)
                # Reassign so the JSON column is flagged as modified
                user.notification_preferences = {**(user.notification_preferences or {}), **changes}

            user.updated_at = utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating settings for user {user.id}: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to update settings") from e

        logger.info(f"Updated settings for user {user.id}")
        return self.get_settings(user)

    async def update_profile(self, user: User, profile_update: ProfileUpdate) -> User:
        """Update display name, bio, avatar and cover image"""
        update_data = profile_update.model_dump(exclude_unset=True)

        try:
            for field, value in update_data.items():
                setattr(user, field, value)
            user.updated_at = utcnow()
            await self.db.commit()
            await self.db.refresh(user)
        except SQLAlchemyError as e:
            logger.error(f"Error updating profile for user {user.id}: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to update profile") from e

        logger.info(f"Updated profile for user {user.id}")
        return user

    async def search_users(self, query: str, limit: int = 15) -> List[User]:
        """Active users whose name, username or bio contains the query"""
        query = (query or "").strip()
        if not query:
            return []

        stmt = select(User).where(
            User.is_active == True,
            or_(
                User.name.icontains(query, autoescape=True),
                User.username.icontains(query, autoescape=True),
                User.bio.icontains(query, autoescape=True)
            )
        ).order_by(desc(User.followers_count), User.username).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_featured_users(self, limit: int = 8) -> List[User]:
        """Active users with the most followers"""
        stmt = select(User).where(
            User.is_active == True,
            User.followers_count > 0
        ).order_by(
            desc(User.followers_count),
            desc(User.created_at)
        ).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def deactivate(self, user: User) -> None:
        """Soft delete: the account stays, every issued token stops working"""
        try:
            user.is_active = False
            user.token_version = (user.token_version or 0) + 1
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deactivating user {user.id}: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to deactivate account") from e

        logger.info(f"Deactivated user {user.id}")

    async def logout_all(self, user: User) -> int:
        """Invalidate every issued token and return the new token version"""
        try:
            user.token_version = (user.token_version or 0) + 1
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error logging out user {user.id}: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to log out of all sessions") from e

        logger.info(f"User {user.id} logged out of all sessions")
        return user.token_version

    async def get_follow_status(self, user_id: Any, viewer_id: Any = None) -> FollowStatus:
        """Whether the viewer follows the user, with the user's counts"""
        user = await self.get_user(user_id)
        viewer_id = to_uuid_or_none(viewer_id)

        is_following = False
        if viewer_id is not None and viewer_id != user.id:
            stmt = select(Follow.id).where(
                Follow.follower_id == viewer_id,
                Follow.following_id == user.id
            )
            is_following = (await self.db.execute(stmt)).scalar_one_or_none() is not None

        return FollowStatus(
            user_id=user.id,
            is_following=is_following,
            followers=user.followers_count or 0,
            following_count=user.following_count or 0
        )

    async def get_user_followers(self, user_id: Any, skip: int = 0, limit: int = 20) -> FollowListResponse:
        """Get followers of a user, most recent first"""
        user = await self.get_user(user_id)
        users, total = await self._follow_page(Follow.follower_id, Follow.following_id == user.id, skip, limit)
        return FollowListResponse(users=users, total=total, skip=skip, limit=limit, user_id=user.id)

    async def get_user_following(self, user_id: Any, skip: int = 0, limit: int = 20) -> FollowListResponse:
        """Get users a user follows, most recent first"""
        user = await self.get_user(user_id)
        users, total = await self._follow_page(Follow.following_id, Follow.follower_id == user.id, skip, limit)
        return FollowListResponse(users=users, total=total, skip=skip, limit=limit, user_id=user.id)

    async def _follow_page(self, user_column, condition, skip: int, limit: int) -> Tuple[List[AuthorSnapshot], int]:
        stmt = select(User).join(
            Follow, user_column == User.id
        ).where(
            condition,
            User.is_active == True
        ).order_by(
            desc(Follow.created_at)
        ).offset(skip).limit(limit)

        count_stmt = select(func.count(Follow.id)).join(
            User, user_column == User.id
        ).where(
            condition,
            User.is_active == True
        )

        users = (await self.db.execute(stmt)).scalars().all()
        total = (await self.db.execute(count_stmt)).scalar() or 0
        return [AuthorSnapshot.model_validate(u) for u in users], total
