from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from talesy.db.session import get_db
from talesy.exceptions import TalesyError
from talesy.schemas.post_schema import TagCount
from talesy.services.post_service import PostService

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/popular", response_model=List[TagCount])
async def get_popular_tags(
    limit: int = Query(8, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    """Most used tags across published posts"""
    try:
        post_service = PostService(db)
        return await post_service.get_popular_tags(limit=limit)
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Popular tags error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get popular tags"
        )
