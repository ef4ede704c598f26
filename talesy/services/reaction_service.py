"""
Like and follow toggles.

Each reaction is a row in a fact table (``likes``, ``comment_likes`` or
``follows``) guarded by a unique (subject, target) key. Toggling inserts or
deletes that row and rewrites the target's counter from a fresh count in the
same transaction, so counters never drift from the fact tables.
"""
from typing import Any, NamedTuple, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import select, update, func
import logging
import uuid

from talesy.exceptions import InvalidInput, InvalidOperation, NotFound, StoreFailure
from talesy.models.comment import Comment
from talesy.models.follow import Follow
from talesy.models.like import CommentLike, Like
from talesy.models.post import Post
from talesy.models.user import User
from talesy.schemas.notification_schema import EventKind, NotificationEvent
from talesy.schemas.reaction_schema import ReactionTarget, ToggleResult
from talesy.utils.identifiers import to_uuid

logger = logging.getLogger(__name__)


class _Target(NamedTuple):
    """What the toggle needs to know about a loaded target"""
    id: uuid.UUID
    owner_id: uuid.UUID
    post_id: Optional[uuid.UUID] = None
    post_title: str = ""


def parse_target_kind(value: Union[str, ReactionTarget]) -> ReactionTarget:
    try:
        return ReactionTarget(value)
    except ValueError as e:
        raise InvalidInput(f"Unknown reaction target: {value!r}") from e


class ReactionService:
    def __init__(self, db: AsyncSession, dispatcher=None):
        self.db = db
        self.dispatcher = dispatcher

    async def toggle_reaction(
        self,
        subject_id: Any,
        target_kind: Union[str, ReactionTarget],
        target_id: Any
    ) -> ToggleResult:
        """Flip the subject's like/follow on a target.

        Returns whether the reaction exists afterwards and the target's
        recomputed counter.
        """
        subject_id = to_uuid(subject_id)
        target_id = to_uuid(target_id)
        kind = parse_target_kind(target_kind)

        if kind is ReactionTarget.USER and subject_id == target_id:
            raise InvalidOperation("You cannot follow yourself")

        target = await self._load_target(kind, target_id, subject_id)

        try:
            existing = await self._find_reaction(kind, subject_id, target_id)
            if existing is not None:
                await self.db.delete(existing)
                active = False
            else:
                self.db.add(self._new_reaction(kind, subject_id, target_id))
                active = True
            await self.db.flush()

            count = await self._recount(kind, subject_id, target_id)
            await self.db.commit()
        except IntegrityError:
            # A concurrent toggle inserted the same (subject, target) first
            await self.db.rollback()
            logger.info(f"Concurrent {kind.value} reaction by {subject_id} on {target_id}, keeping existing record")
            return ToggleResult(active=True, count=await self._recount_committed(kind, subject_id, target_id))
        except SQLAlchemyError as e:
            logger.error(f"Error toggling {kind.value} reaction: {e}")
            await self.db.rollback()
            raise StoreFailure(f"Failed to toggle {kind.value} reaction") from e

        logger.info(f"User {subject_id} {'added' if active else 'removed'} {kind.value} reaction on {target_id} (count={count})")

        if active:
            self._notify(kind, subject_id, target)

        return ToggleResult(active=active, count=count)

    async def has_reacted(
        self,
        subject_id: Any,
        target_kind: Union[str, ReactionTarget],
        target_id: Any
    ) -> bool:
        kind = parse_target_kind(target_kind)
        existing = await self._find_reaction(kind, to_uuid(subject_id), to_uuid(target_id))
        return existing is not None

    async def reconcile_counters(self, target_kind: Union[str, ReactionTarget], target_id: Any) -> int:
        """Rewrite a target's counter(s) from the fact table and return the main one"""
        kind = parse_target_kind(target_kind)
        target_id = to_uuid(target_id)
        try:
            if kind is ReactionTarget.USER:
                count = await self._write_count(
                    User, target_id, "followers_count",
                    select(func.count(Follow.id)).where(Follow.following_id == target_id)
                )
                await self._write_count(
                    User, target_id, "following_count",
                    select(func.count(Follow.id)).where(Follow.follower_id == target_id)
                )
            else:
                count = await self._recount(kind, None, target_id)
            await self.db.commit()
            return count
        except SQLAlchemyError as e:
            logger.error(f"Error reconciling {kind.value} counters for {target_id}: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to reconcile counters") from e

    async def _load_target(self, kind: ReactionTarget, target_id: uuid.UUID, subject_id: uuid.UUID) -> _Target:
        if kind is ReactionTarget.POST:
            post = (await self.db.execute(select(Post).where(Post.id == target_id))).scalar_one_or_none()
            # Drafts are only visible to their author
            if post is None or (not post.is_published and post.author_id != subject_id):
                raise NotFound("Post not found")
            return _Target(id=post.id, owner_id=post.author_id, post_id=post.id, post_title=post.title)

        if kind is ReactionTarget.COMMENT:
            comment = (await self.db.execute(select(Comment).where(Comment.id == target_id))).scalar_one_or_none()
            if comment is None:
                raise NotFound("Comment not found")
            post = (await self.db.execute(select(Post).where(Post.id == comment.post_id))).scalar_one_or_none()
            # Comments on someone else's draft are as hidden as the draft itself
            if post is not None and not post.is_published and post.author_id != subject_id:
                raise NotFound("Comment not found")
            return _Target(
                id=comment.id,
                owner_id=comment.author_id,
                post_id=comment.post_id,
                post_title=post.title if post is not None else ""
            )

        user = (await self.db.execute(select(User).where(User.id == target_id))).scalar_one_or_none()
        if user is None or not user.is_active:
            raise NotFound("User not found")
        return _Target(id=user.id, owner_id=user.id)

    async def _find_reaction(self, kind: ReactionTarget, subject_id: uuid.UUID, target_id: uuid.UUID):
        if kind is ReactionTarget.POST:
            stmt = select(Like).where(Like.user_id == subject_id, Like.post_id == target_id)
        elif kind is ReactionTarget.COMMENT:
            stmt = select(CommentLike).where(CommentLike.user_id == subject_id, CommentLike.target_id == target_id)
        else:
            stmt = select(Follow).where(Follow.follower_id == subject_id, Follow.following_id == target_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _new_reaction(kind: ReactionTarget, subject_id: uuid.UUID, target_id: uuid.UUID):
        if kind is ReactionTarget.POST:
            return Like(user_id=subject_id, post_id=target_id)
        if kind is ReactionTarget.COMMENT:
            return CommentLike(user_id=subject_id, target_id=target_id)
        return Follow(follower_id=subject_id, following_id=target_id)

    async def _write_count(self, model, target_id: uuid.UUID, column: str, count_stmt) -> int:
        count = (await self.db.execute(count_stmt)).scalar() or 0
        await self.db.execute(
            update(model).where(model.id == target_id).values({column: count})
        )
        return count

    async def _recount(self, kind: ReactionTarget, subject_id: Optional[uuid.UUID], target_id: uuid.UUID) -> int:
        if kind is ReactionTarget.POST:
            return await self._write_count(
                Post, target_id, "likes_count",
                select(func.count(Like.id)).where(Like.post_id == target_id)
            )
        if kind is ReactionTarget.COMMENT:
            return await self._write_count(
                Comment, target_id, "likes_count",
                select(func.count(CommentLike.id)).where(CommentLike.target_id == target_id)
            )

        count = await self._write_count(
            User, target_id, "followers_count",
            select(func.count(Follow.id)).where(Follow.following_id == target_id)
        )
        await self._write_count(
            User, subject_id, "following_count",
            select(func.count(Follow.id)).where(Follow.follower_id == subject_id)
        )
        return count

    async def _recount_committed(self, kind: ReactionTarget, subject_id: uuid.UUID, target_id: uuid.UUID) -> int:
        try:
            count = await self._recount(kind, subject_id, target_id)
            await self.db.commit()
            return count
        except SQLAlchemyError as e:
            logger.error(f"Error recounting {kind.value} reactions for {target_id}: {e}")
            await self.db.rollback()
            raise StoreFailure(f"Failed to toggle {kind.value} reaction") from e

    def _notify(self, kind: ReactionTarget, subject_id: uuid.UUID, target: _Target) -> None:
        if self.dispatcher is None or target.owner_id == subject_id:
            return

        if kind is ReactionTarget.POST:
            event = NotificationEvent(
                kind=EventKind.POST_LIKE,
                recipient_id=target.owner_id,
                actor_id=subject_id,
                target_id=target.id,
                link=f"/posts/{target.id}",
                context={"post_title": target.post_title, "post_id": str(target.id)}
            )
        elif kind is ReactionTarget.COMMENT:
            event = NotificationEvent(
                kind=EventKind.COMMENT_LIKE,
                recipient_id=target.owner_id,
                actor_id=subject_id,
                target_id=target.id,
                link=f"/posts/{target.post_id}#comment-{target.id}",
                context={"post_title": target.post_title, "post_id": str(target.post_id)}
            )
        else:
            event = NotificationEvent(
                kind=EventKind.FOLLOW,
                recipient_id=target.owner_id,
                actor_id=subject_id,
                target_id=subject_id,
                link=f"/users/{subject_id}"
            )

        self.dispatcher.emit(event)
