from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from talesy.db.session import get_db
from talesy.exceptions import TalesyError
from talesy.models.user import User
from talesy.schemas.post_schema import PostCreate, PostListResponse, PostResponse, PostUpdate, PostWithAuthor
from talesy.schemas.reaction_schema import ReactionTarget, ToggleResult
from talesy.services.auth_service import get_current_user, get_optional_user
from talesy.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from talesy.services.post_service import PostService
from talesy.services.reaction_service import ReactionService
from talesy.utils.rate_limit import limiter, WRITE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_post(
    request: Request,
    post_data: PostCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a new post"""
    try:
        post_service = PostService(db)
        return await post_service.create_post(current_user.id, post_data)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Create post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create post"
        )

@router.get("", response_model=PostListResponse)
async def list_posts(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    tag: Optional[str] = None,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Published posts, newest first"""
    try:
        post_service = PostService(db)
        return await post_service.list_posts(
            viewer_id=current_user.id if current_user else None,
            skip=skip,
            limit=limit,
            tag=tag
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"List posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get posts"
        )

@router.get("/user/{user_id}", response_model=PostListResponse)
async def get_user_posts(
    user_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Posts of one author. The author also sees their drafts."""
    try:
        post_service = PostService(db)
        return await post_service.get_user_posts(
            user_id,
            viewer_id=current_user.id if current_user else None,
            skip=skip,
            limit=limit
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Get user posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user posts"
        )

@router.get("/trending", response_model=List[PostWithAuthor])
async def get_trending_posts(
    limit: int = Query(6, ge=1, le=50),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Most liked and most discussed published posts"""
    try:
        post_service = PostService(db)
        return await post_service.get_trending_posts(
            viewer_id=current_user.id if current_user else None,
            limit=limit
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Trending posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get trending posts"
        )

@router.get("/search", response_model=PostListResponse)
async def search_posts(
    q: str = Query("", max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Search published posts by title or content"""
    try:
        post_service = PostService(db)
        return await post_service.search_posts(
            q,
            viewer_id=current_user.id if current_user else None,
            skip=skip,
            limit=limit
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Search posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search posts"
        )

@router.get("/{post_id}", response_model=PostWithAuthor)
async def get_post(
    post_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a post by ID"""
    try:
        post_service = PostService(db)
        return await post_service.get_post_with_author(
            post_id,
            viewer_id=current_user.id if current_user else None
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Get post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get post"
        )

@router.patch("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    post_update: PostUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a post"""
    try:
        post_service = PostService(db)
        return await post_service.update_post(current_user.id, post_id, post_update)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Update post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update post"
        )

@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a post together with its comments and likes"""
    try:
        post_service = PostService(db)
        deleted_comments = await post_service.delete_post(current_user.id, post_id)
        return {"message": "Post deleted successfully", "deleted_comments": deleted_comments}
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Delete post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete post"
        )

@router.post("/{post_id}/like", response_model=ToggleResult)
@limiter.limit(WRITE_LIMIT)
async def toggle_post_like(
    request: Request,
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Like a post, or take the like back"""
    try:
        reaction_service = ReactionService(db, dispatcher)
        return await reaction_service.toggle_reaction(current_user.id, ReactionTarget.POST, post_id)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Toggle post like error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to toggle like"
        )
