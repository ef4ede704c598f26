from typing import Any, Dict, List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update, delete, func
import logging
import uuid

from talesy.config import settings
from talesy.db.base import utcnow
from talesy.exceptions import Forbidden, InvalidInput, InvalidOperation, NotFound, StoreFailure
from talesy.models.comment import Comment
from talesy.models.like import CommentLike
from talesy.models.post import Post
from talesy.models.user import User
from talesy.schemas.comment_schema import CommentResponse, CommentTreeResponse
from talesy.schemas.notification_schema import EventKind, NotificationEvent
from talesy.schemas.user_schema import AuthorSnapshot
from talesy.utils.identifiers import to_uuid, to_uuid_or_none

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 140


def clean_content(content: Optional[str]) -> str:
    """Trim comment text and enforce the length limits"""
    text = (content or "").strip()
    if not text:
        raise InvalidInput("Comment content cannot be empty")
    if len(text) > settings.MAX_COMMENT_LENGTH:
        raise InvalidInput(f"Comment cannot be longer than {settings.MAX_COMMENT_LENGTH} characters")
    return text


class CommentService:
    def __init__(self, db: AsyncSession, dispatcher=None):
        self.db = db
        self.dispatcher = dispatcher

    async def create_comment(
        self,
        author_id: Any,
        post_id: Any,
        content: str,
        parent_id: Any = None
    ) -> CommentResponse:
        """Create a root comment or, with ``parent_id``, a reply"""
        author_id = to_uuid(author_id)
        post_id = to_uuid(post_id)
        parent_id = to_uuid_or_none(parent_id)

        post = await self._get_visible_post(post_id, author_id)

        parent = None
        if parent_id is not None:
            parent = await self.get_comment(parent_id)
            if not parent:
                raise NotFound("Parent comment not found")
            if parent.post_id != post_id:
                raise InvalidOperation("Parent comment belongs to a different post")

        text = clean_content(content)

        try:
            comment = Comment(
                post_id=post_id,
                author_id=author_id,
                content=text,
                parent_id=parent_id,
                likes_count=0
            )
            self.db.add(comment)
            await self.db.flush()

            await self._update_post_comment_count(post_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error creating comment: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to create comment") from e

        logger.info(f"Created comment {comment.id} by user {author_id} on post {post_id}")

        self._notify_new_comment(comment, post, parent)

        author = await self.db.get(User, author_id)
        return self._to_response(comment, author)

    async def edit_comment(self, actor_id: Any, comment_id: Any, new_content: str) -> CommentResponse:
        """Replace a comment's text. Only its author may do so."""
        actor_id = to_uuid(actor_id)
        comment = await self.get_comment(to_uuid(comment_id))

        if not comment:
            raise NotFound("Comment not found")
        if comment.author_id != actor_id:
            raise Forbidden("Not authorized to edit this comment")

        text = clean_content(new_content)

        try:
            comment.content = text
            comment.updated_at = utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating comment: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to update comment") from e

        logger.info(f"Updated comment {comment.id}")

        author = await self.db.get(User, comment.author_id)
        return self._to_response(comment, author)

    async def delete_comment(self, actor_id: Any, comment_id: Any) -> int:
        """Delete a comment and return how many comments were removed.

        A root comment takes its whole reply tree and every like on it along;
        a reply is removed alone, with only its own likes. The comment author
        and the owner of the post may delete.
        """
        actor_id = to_uuid(actor_id)
        comment = await self.get_comment(to_uuid(comment_id))

        if not comment:
            raise NotFound("Comment not found")

        comment_id = comment.id
        post_id = comment.post_id
        if comment.author_id != actor_id:
            post_owner = (await self.db.execute(
                select(Post.author_id).where(Post.id == post_id)
            )).scalar_one_or_none()
            if post_owner != actor_id:
                raise Forbidden("Not authorized to delete this comment")

        try:
            if comment.is_root:
                doomed = [comment_id] + await self.collect_descendant_ids(comment_id)
            else:
                doomed = [comment_id]

            await self.db.execute(delete(CommentLike).where(CommentLike.target_id.in_(doomed)))
            await self.db.execute(delete(Comment).where(Comment.id.in_(doomed)))
            await self._update_post_comment_count(post_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting comment: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to delete comment") from e

        logger.info(f"Deleted comment {comment_id} and {len(doomed) - 1} replies from post {post_id}")
        return len(doomed)

    async def collect_descendant_ids(self, comment_id: uuid.UUID) -> List[uuid.UUID]:
        """All reply ids below a comment, level by level. Reads only."""
        descendants: List[uuid.UUID] = []
        seen: Set[uuid.UUID] = {comment_id}
        frontier = [comment_id]

        while frontier:
            result = await self.db.execute(select(Comment.id).where(Comment.parent_id.in_(frontier)))
            frontier = [row[0] for row in result if row[0] not in seen]
            seen.update(frontier)
            descendants.extend(frontier)

        return descendants

    async def get_comment(self, comment_id: Any) -> Optional[Comment]:
        """Get a comment by ID"""
        stmt = select(Comment).where(Comment.id == to_uuid(comment_id))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_comment_tree(self, post_id: Any, viewer_id: Any = None) -> List[CommentTreeResponse]:
        """All comments of a post as a nested forest, oldest first.

        Replies whose parent no longer exists are listed at the root level.
        """
        post_id = to_uuid(post_id)
        viewer_id = to_uuid_or_none(viewer_id)
        await self._get_visible_post(post_id, viewer_id)

        stmt = select(Comment, User).outerjoin(
            User, Comment.author_id == User.id
        ).where(
            Comment.post_id == post_id
        ).order_by(Comment.created_at)

        rows = (await self.db.execute(stmt)).all()
        liked = await self._liked_ids(viewer_id, [row.Comment.id for row in rows])

        comments_dict: Dict[uuid.UUID, CommentTreeResponse] = {}
        for row in rows:
            comments_dict[row.Comment.id] = CommentTreeResponse(
                **self._to_response(row.Comment, row.User, row.Comment.id in liked).model_dump()
            )

        # Build tree structure
        root_comments = []
        for comment in comments_dict.values():
            parent_id = comment.parent_id
            if parent_id and parent_id in comments_dict:
                comments_dict[parent_id].replies.append(comment)
            else:
                root_comments.append(comment)

        return root_comments

    async def get_replies(self, post_id: Any, comment_id: Any, viewer_id: Any = None) -> List[CommentResponse]:
        """Direct replies of a comment on a post the viewer can see, oldest first"""
        post_id = to_uuid(post_id)
        viewer_id = to_uuid_or_none(viewer_id)
        await self._get_visible_post(post_id, viewer_id)

        comment = await self.get_comment(comment_id)
        if not comment or comment.post_id != post_id:
            raise NotFound("Comment not found")

        stmt = select(Comment, User).outerjoin(
            User, Comment.author_id == User.id
        ).where(
            Comment.parent_id == comment.id
        ).order_by(Comment.created_at)

        rows = (await self.db.execute(stmt)).all()
        liked = await self._liked_ids(viewer_id, [row.Comment.id for row in rows])
        return [self._to_response(row.Comment, row.User, row.Comment.id in liked) for row in rows]

    async def _get_visible_post(self, post_id: uuid.UUID, viewer_id: Optional[uuid.UUID]) -> Post:
        post = (await self.db.execute(select(Post).where(Post.id == post_id))).scalar_one_or_none()
        if post is None or (not post.is_published and post.author_id != viewer_id):
            raise NotFound("Post not found")
        return post

    async def _liked_ids(self, viewer_id: Optional[uuid.UUID], comment_ids: List[uuid.UUID]) -> Set[uuid.UUID]:
        if viewer_id is None or not comment_ids:
            return set()
        result = await self.db.execute(
            select(CommentLike.target_id).where(
                CommentLike.user_id == viewer_id,
                CommentLike.target_id.in_(comment_ids)
            )
        )
        return {row[0] for row in result}

    async def _update_post_comment_count(self, post_id: uuid.UUID) -> int:
        count = (await self.db.execute(
            select(func.count(Comment.id)).where(Comment.post_id == post_id)
        )).scalar() or 0
        await self.db.execute(update(Post).where(Post.id == post_id).values(comments_count=count))
        return count

    @staticmethod
    def _to_response(comment: Comment, author: Optional[User], liked: bool = False) -> CommentResponse:
        response = CommentResponse.model_validate(comment)
        response.liked = liked
        if author is not None:
            response.author = AuthorSnapshot.model_validate(author)
        return response

    def _notify_new_comment(self, comment: Comment, post: Post, parent: Optional[Comment]) -> None:
        if self.dispatcher is None:
            return

        context = {
            "post_title": post.title,
            "post_id": str(post.id),
            "excerpt": comment.content[:EXCERPT_LENGTH],
        }
        link = f"/posts/{post.id}#comment-{comment.id}"

        if post.author_id != comment.author_id:
            self.dispatcher.emit(NotificationEvent(
                kind=EventKind.COMMENT,
                recipient_id=post.author_id,
                actor_id=comment.author_id,
                target_id=comment.id,
                link=link,
                context=context
            ))

        if parent is not None and parent.author_id not in (comment.author_id, post.author_id):
            self.dispatcher.emit(NotificationEvent(
                kind=EventKind.REPLY,
                recipient_id=parent.author_id,
                actor_id=comment.author_id,
                target_id=comment.id,
                link=link,
                context=context
            ))
