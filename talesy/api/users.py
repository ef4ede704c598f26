from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from talesy.db.session import get_db
from talesy.exceptions import TalesyError
from talesy.models.user import User
from talesy.schemas.follow_schema import FollowListResponse, FollowStatus
from talesy.schemas.reaction_schema import ReactionTarget, ToggleResult
from talesy.schemas.user_schema import ProfileUpdate, UserMe, UserPublic, UserSettings, UserSettingsUpdate
from talesy.services.auth_service import get_current_user, get_optional_user
from talesy.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from talesy.services.reaction_service import ReactionService
from talesy.services.user_service import UserService
from talesy.utils.rate_limit import limiter, WRITE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/me", response_model=UserMe)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile"""
    return current_user

@router.get("/me/settings", response_model=UserSettings)
async def get_my_settings(current_user: User = Depends(get_current_user)):
    return UserService.get_settings(current_user)

@router.patch("/me/settings", response_model=UserSettings)
async def update_my_settings(
    settings_update: UserSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields and notification preferences"""
    try:
        user_service = UserService(db)
        return await user_service.update_settings(current_user, settings_update)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error updating settings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update settings"
        )

@router.patch("/me/profile", response_model=UserMe)
async def update_my_profile(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update display name, bio, avatar and cover image"""
    try:
        user_service = UserService(db)
        return await user_service.update_profile(current_user, profile_update)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error updating profile: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )

@router.post("/me/deactivate")
async def deactivate_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate the account and revoke every session"""
    try:
        user_service = UserService(db)
        await user_service.deactivate(current_user)
        return {"message": "Account deactivated"}
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error deactivating account: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to deactivate account"
        )

@router.post("/me/logout-all")
async def logout_all_sessions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke every issued token"""
    try:
        user_service = UserService(db)
        await user_service.logout_all(current_user)
        return {"message": "Logged out of all sessions"}
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error logging out of all sessions: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log out of all sessions"
        )

@router.get("/search", response_model=List[UserPublic])
async def search_users(
    q: str = Query("", max_length=100),
    limit: int = Query(15, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Find writers by name, username or bio"""
    try:
        user_service = UserService(db)
        return await user_service.search_users(q, limit=limit)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error searching users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search users"
        )

@router.get("/featured", response_model=List[UserPublic])
async def get_featured_users(
    limit: int = Query(8, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Most followed writers"""
    try:
        user_service = UserService(db)
        return await user_service.get_featured_users(limit=limit)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting featured users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get featured users"
        )

@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a public profile"""
    try:
        user_service = UserService(db)
        return await user_service.get_user(user_id)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user"
        )

@router.get("/{user_id}/follow", response_model=FollowStatus)
async def get_follow_status(
    user_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Whether the current user follows this user, with follow counts"""
    try:
        user_service = UserService(db)
        return await user_service.get_follow_status(
            user_id,
            viewer_id=current_user.id if current_user else None
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting follow status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get follow status"
        )

@router.post("/{user_id}/follow", response_model=ToggleResult)
@limiter.limit(WRITE_LIMIT)
async def toggle_follow(
    request: Request,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Follow a user, or unfollow when already following"""
    try:
        reaction_service = ReactionService(db, dispatcher)
        return await reaction_service.toggle_reaction(current_user.id, ReactionTarget.USER, user_id)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error toggling follow: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to toggle follow"
        )

@router.get("/{user_id}/followers", response_model=FollowListResponse)
async def get_followers(
    user_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Get a user's followers"""
    try:
        user_service = UserService(db)
        return await user_service.get_user_followers(user_id, skip=skip, limit=limit)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting followers: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get followers"
        )

@router.get("/{user_id}/following", response_model=FollowListResponse)
async def get_following(
    user_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Get the users a user follows"""
    try:
        user_service = UserService(db)
        return await user_service.get_user_following(user_id, skip=skip, limit=limit)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting following: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get following"
        )
