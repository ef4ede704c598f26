import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from fastapi import BackgroundTasks, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, desc, func

from talesy.config import settings
from talesy.exceptions import NotFound
from talesy.models.notification import Notification, NotificationType
from talesy.models.user import User
from talesy.tasks.email_tasks import send_template_email_task
from talesy.schemas.notification_schema import (
    EventKind,
    NotificationEvent,
    NotificationListResponse,
    NotificationResponse,
)
from talesy.utils.email_utils import send_template_email
from talesy.utils.identifiers import to_uuid

logger = logging.getLogger(__name__)

MESSAGE_MAX_LENGTH = 250

# kind -> (notification type, preference key, email template)
EVENT_ROUTES: Dict[EventKind, Tuple[NotificationType, Optional[str], Optional[str]]] = {
    EventKind.POST_LIKE: (NotificationType.LIKE, "likes", "newLike"),
    EventKind.COMMENT_LIKE: (NotificationType.LIKE, "likes", "newCommentLike"),
    EventKind.COMMENT: (NotificationType.COMMENT, "comments", "newComment"),
    EventKind.REPLY: (NotificationType.COMMENT, "comments", "newReply"),
    EventKind.FOLLOW: (NotificationType.FOLLOW, "follows", "newFollower"),
    EventKind.SYSTEM: (NotificationType.SYSTEM, None, None),
}

MESSAGE_TEMPLATES: Dict[EventKind, str] = {
    EventKind.POST_LIKE: '{actor} liked your story "{post_title}"',
    EventKind.COMMENT_LIKE: '{actor} liked your comment on "{post_title}"',
    EventKind.COMMENT: '{actor} commented on your story "{post_title}"',
    EventKind.REPLY: '{actor} replied to your comment on "{post_title}"',
    EventKind.FOLLOW: "{actor} started following you",
    EventKind.SYSTEM: "{message}",
}


def display_name(user: Optional[User]) -> str:
    if user is None:
        return "Someone"
    return user.name or user.username or "Someone"


class NotificationService:
    """Inbox reads and read-flag updates for one recipient."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_notifications(
        self,
        user_id: Any,
        skip: int = 0,
        limit: int = 20,
        unread_only: bool = False
    ) -> NotificationListResponse:
        """Get a user's notifications, newest first"""
        user_id = to_uuid(user_id)

        stmt = select(Notification).where(Notification.recipient_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read == False)
        stmt = stmt.order_by(desc(Notification.created_at)).offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        notifications = result.scalars().all()

        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            unread_count=await self.get_unread_count(user_id),
            skip=skip,
            limit=limit
        )

    async def get_unread_count(self, user_id: Any) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.recipient_id == to_uuid(user_id),
            Notification.read == False
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def mark_all_as_read(self, user_id: Any) -> int:
        """Mark every unread notification of the user as read"""
        try:
            stmt = update(Notification).where(
                Notification.recipient_id == to_uuid(user_id),
                Notification.read == False
            ).values(read=True)
            result = await self.db.execute(stmt)
            await self.db.commit()

            logger.info(f"Marked {result.rowcount} notifications as read for user {user_id}")
            return result.rowcount or 0
        except Exception as e:
            logger.error(f"Error marking all notifications as read: {e}")
            await self.db.rollback()
            raise

    async def mark_as_read(self, notification_id: Any, user_id: Any) -> Notification:
        """Mark one notification as read. Only its recipient may do so."""
        notification_id = to_uuid(notification_id)
        user_id = to_uuid(user_id)

        stmt = select(Notification).where(Notification.id == notification_id)
        result = await self.db.execute(stmt)
        notification = result.scalar_one_or_none()

        # Someone else's notification is reported as missing
        if not notification or notification.recipient_id != user_id:
            raise NotFound("Notification not found")

        try:
            notification.read = True
            await self.db.commit()
            return notification
        except Exception as e:
            logger.error(f"Error marking notification as read: {e}")
            await self.db.rollback()
            raise


class NotificationDispatcher:
    """Post-commit delivery of notification events.

    ``emit`` only schedules work: as a FastAPI background task while a request
    is in flight, otherwise as an asyncio task that ``drain`` can await.
    ``dispatch`` runs in its own session and never raises, so a failed
    notification or email cannot undo the action that triggered it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        background_tasks: Optional[BackgroundTasks] = None,
        email_delivery: Optional[str] = None,
        email_sender: Callable = send_template_email,
    ):
        self.session_factory = session_factory
        self.background_tasks = background_tasks
        self.email_delivery = email_delivery or settings.EMAIL_DELIVERY
        self.email_sender = email_sender
        self._pending: Set[asyncio.Task] = set()

    def emit(self, event: NotificationEvent) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.dispatch, event)
            return

        task = asyncio.get_running_loop().create_task(self.dispatch(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled dispatch to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def dispatch(self, event: NotificationEvent) -> Optional[Notification]:
        try:
            return await self._deliver(event)
        except Exception as e:
            logger.error(f"Error dispatching {event.kind.value} notification to {event.recipient_id}: {e}")
            return None

    async def _deliver(self, event: NotificationEvent) -> Optional[Notification]:
        if event.actor_id is not None and event.actor_id == event.recipient_id:
            logger.debug(f"Skipping self notification for user {event.recipient_id}")
            return None

        notification_type, preference, template_name = EVENT_ROUTES[event.kind]

        async with self.session_factory() as session:
            recipient = await session.get(User, event.recipient_id)
            if recipient is None or not recipient.is_active:
                logger.info(f"Notification recipient {event.recipient_id} not found or inactive")
                return None

            if preference and not recipient.wants(preference):
                logger.info(f"User {recipient.id} has {preference} notifications disabled")
                return None

            actor = await session.get(User, event.actor_id) if event.actor_id else None
            actor_name = display_name(actor)

            notification = Notification(
                recipient_id=recipient.id,
                sender_id=actor.id if actor else None,
                type=notification_type.value,
                message=self.render_message(event, actor_name),
                link=event.link,
                target_id=event.target_id,
                read=False
            )
            session.add(notification)
            await session.commit()

            logger.info(f"Created {notification_type.value} notification {notification.id} for user {recipient.id}")

            if template_name and recipient.email:
                args = self.email_args(template_name, event, display_name(recipient), actor_name)
                await self._send_email(recipient.email, template_name, args)

            return notification

    @staticmethod
    def render_message(event: NotificationEvent, actor_name: str) -> str:
        message = MESSAGE_TEMPLATES[event.kind].format(
            actor=actor_name,
            post_title=event.context.get("post_title", "your story"),
            message=event.context.get("message", ""),
        )
        return message[:MESSAGE_MAX_LENGTH]

    @staticmethod
    def email_args(
        template_name: str,
        event: NotificationEvent,
        recipient_name: str,
        actor_name: str
    ) -> List[Any]:
        if template_name == "newFollower":
            return [recipient_name, actor_name]

        post_title = event.context.get("post_title", "")
        post_url = f"{settings.APP_BASE_URL.rstrip('/')}{event.link or ''}"
        if template_name in ("newComment", "newReply"):
            return [recipient_name, actor_name, post_title, post_url, event.context.get("excerpt", "")]
        return [recipient_name, actor_name, post_title, post_url]

    async def _send_email(self, to_email: str, template_name: str, args: List[Any]) -> None:
        try:
            if self.email_delivery == "queue":
                send_template_email_task.delay(to_email, template_name, args)
                logger.info(f"Queued {template_name} email to {to_email}")
            else:
                await self.email_sender(to_email, template_name, args)
        except Exception as e:
            logger.error(f"Error sending {template_name} email to {to_email}: {e}")


def get_notification_dispatcher(request: Request, background_tasks: BackgroundTasks) -> NotificationDispatcher:
    """Dependency: a dispatcher that runs after the response is sent"""
    return NotificationDispatcher(
        request.app.state.database.session_factory,
        background_tasks=background_tasks
    )
