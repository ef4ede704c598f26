from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import hmac
import logging

from talesy.config import settings
from talesy.db.session import get_db
from talesy.exceptions import TalesyError, Unauthorized
from talesy.schemas.digest_schema import DigestReport
from talesy.services.digest_service import DigestService

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/weekly-digest", response_model=DigestReport)
async def run_weekly_digest(
    secret: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Send the weekly digest emails. Called by the scheduler."""
    if not settings.CRON_SECRET or not secret or not hmac.compare_digest(secret, settings.CRON_SECRET):
        raise Unauthorized("Invalid cron secret")

    try:
        digest_service = DigestService(db)
        return await digest_service.run_weekly_digest()
    except (HTTPException, TalesyError):
        raise
    except Exception as e:
        logger.error(f"Weekly digest error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run weekly digest"
        )
