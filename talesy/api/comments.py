from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from talesy.db.session import get_db
from talesy.exceptions import TalesyError
from talesy.models.user import User
from talesy.schemas.comment_schema import (
    CommentCreate,
    CommentDeleteResponse,
    CommentResponse,
    CommentTreeResponse,
    CommentUpdate,
    ReplyCreate,
)
from talesy.schemas.reaction_schema import ReactionTarget, ToggleResult
from talesy.services.auth_service import get_current_user, get_optional_user
from talesy.services.comment_service import CommentService
from talesy.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from talesy.services.reaction_service import ReactionService
from talesy.utils.rate_limit import limiter, WRITE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/posts/{post_id}/comments", response_model=List[CommentTreeResponse])
async def get_post_comments(
    post_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Comments of a post as a tree"""
    try:
        comment_service = CommentService(db)
        return await comment_service.get_comment_tree(
            post_id,
            viewer_id=current_user.id if current_user else None
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting comments: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get comments"
        )

@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_comment(
    request: Request,
    post_id: str,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Comment on a post, or reply when parent_id is given"""
    try:
        comment_service = CommentService(db, dispatcher)
        return await comment_service.create_comment(
            current_user.id,
            post_id,
            comment_data.content,
            parent_id=comment_data.parent_id
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error creating comment: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create comment"
        )

@router.get("/posts/{post_id}/comments/{comment_id}/replies", response_model=List[CommentResponse])
async def get_comment_replies(
    post_id: str,
    comment_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Direct replies to a comment"""
    try:
        comment_service = CommentService(db)
        return await comment_service.get_replies(
            post_id,
            comment_id,
            viewer_id=current_user.id if current_user else None
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error getting replies: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get replies"
        )

@router.post(
    "/posts/{post_id}/comments/{comment_id}/replies",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED
)
@limiter.limit(WRITE_LIMIT)
async def create_reply(
    request: Request,
    post_id: str,
    comment_id: str,
    reply_data: ReplyCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Reply to a comment"""
    try:
        comment_service = CommentService(db, dispatcher)
        return await comment_service.create_comment(
            current_user.id,
            post_id,
            reply_data.content,
            parent_id=comment_id
        )
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error creating reply: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create reply"
        )

@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    comment_update: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Edit a comment"""
    try:
        comment_service = CommentService(db)
        return await comment_service.edit_comment(current_user.id, comment_id, comment_update.content)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error updating comment: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update comment"
        )

@router.delete("/comments/{comment_id}", response_model=CommentDeleteResponse)
async def delete_comment(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a comment; a root comment takes its replies with it"""
    try:
        comment_service = CommentService(db)
        deleted = await comment_service.delete_comment(current_user.id, comment_id)
        return CommentDeleteResponse(message="Comment deleted successfully", deleted_count=deleted)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error deleting comment: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete comment"
        )

@router.post("/comments/{comment_id}/like", response_model=ToggleResult)
@limiter.limit(WRITE_LIMIT)
async def toggle_comment_like(
    request: Request,
    comment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Like a comment or reply, or take the like back"""
    try:
        reaction_service = ReactionService(db, dispatcher)
        return await reaction_service.toggle_reaction(current_user.id, ReactionTarget.COMMENT, comment_id)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Error toggling comment like: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to toggle comment like"
        )
