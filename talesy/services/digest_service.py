from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import asyncio
import logging

from talesy.config import settings
from talesy.db.base import utcnow
from talesy.models.comment import Comment
from talesy.models.follow import Follow
from talesy.models.like import Like
from talesy.models.post import Post
from talesy.models.user import User
from talesy.schemas.digest_schema import DigestFailure, DigestReport, DigestStats
from talesy.utils.email_utils import send_template_email

logger = logging.getLogger(__name__)

class DigestService:
    """Weekly activity email: new followers, likes and comments per user"""

    def __init__(self, db: AsyncSession, sender: Callable = send_template_email):
        self.db = db
        self.sender = sender

    async def get_user_stats(self, user_id, since: datetime) -> DigestStats:
        new_followers = (await self.db.execute(
            select(func.count(Follow.id)).where(
                Follow.following_id == user_id,
                Follow.created_at >= since
            )
        )).scalar() or 0

        post_ids = select(Post.id).where(Post.author_id == user_id).scalar_subquery()

        new_likes = (await self.db.execute(
            select(func.count(Like.id)).where(
                Like.post_id.in_(post_ids),
                Like.created_at >= since
            )
        )).scalar() or 0

        new_comments = (await self.db.execute(
            select(func.count(Comment.id)).where(
                Comment.post_id.in_(post_ids),
                Comment.created_at >= since
            )
        )).scalar() or 0

        return DigestStats(new_followers=new_followers, new_likes=new_likes, new_comments=new_comments)

    async def run_weekly_digest(self, now: Optional[datetime] = None) -> DigestReport:
        """Send the digest to every opted-in user with activity in the lookback window"""
        since = (now or utcnow()) - timedelta(days=settings.DIGEST_LOOKBACK_DAYS)

        stmt = select(User).where(User.is_active == True).order_by(User.created_at)
        users = [
            u for u in (await self.db.execute(stmt)).scalars().all()
            if u.email and u.wants("weekly_digest")
        ]

        report = DigestReport(recipients=len(users))
        outgoing: List[Tuple[User, DigestStats]] = []

        # Stats share one session, so they are gathered one user at a time
        for user in users:
            stats = await self.get_user_stats(user.id, since)
            if stats.has_activity:
                outgoing.append((user, stats))
            else:
                report.skipped += 1

        results = await asyncio.gather(
            *(self._send(user, stats) for user, stats in outgoing),
            return_exceptions=True
        )

        for (user, _), result in zip(outgoing, results):
            if result is True:
                report.sent += 1
                continue
            report.failed += 1
            error = str(result) if isinstance(result, Exception) else "Email provider rejected the message"
            report.failures.append(DigestFailure(user_id=user.id, error=error))
            logger.error(f"Failed to send weekly digest to {user.email}: {error}")

        logger.info(
            f"Weekly digest finished: {report.sent} sent, {report.skipped} skipped, "
            f"{report.failed} failed of {report.recipients} recipients"
        )
        return report

    async def _send(self, user: User, stats: DigestStats) -> bool:
        return await self.sender(
            user.email,
            "weeklyDigest",
            [user.name or "User", stats.new_followers, stats.new_likes, stats.new_comments]
        )
