from collections import Counter
from typing import Any, List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, delete, desc, func, or_
import logging
import uuid

from talesy.db.base import utcnow
from talesy.exceptions import Forbidden, NotFound, StoreFailure
from talesy.models.comment import Comment
from talesy.models.like import CommentLike, Like
from talesy.models.post import Post, PostStatus
from talesy.models.user import User
from talesy.schemas.post_schema import PostCreate, PostListResponse, PostUpdate, PostWithAuthor, TagCount
from talesy.schemas.user_schema import AuthorSnapshot
from talesy.utils.identifiers import to_uuid, to_uuid_or_none

logger = logging.getLogger(__name__)

class PostService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_post(self, user_id: Any, post_data: PostCreate) -> Post:
        """Create a new post"""
        try:
            post = Post(
                author_id=to_uuid(user_id),
                title=post_data.title.strip(),
                content=post_data.content,
                image_url=post_data.image_url or "",
                status=post_data.status.value,
                tags=post_data.tags,
                likes_count=0,
                comments_count=0
            )

            self.db.add(post)
            await self.db.commit()
            await self.db.refresh(post)

            logger.info(f"Created post {post.id} by user {post.author_id}")
            return post
        except SQLAlchemyError as e:
            logger.error(f"Error creating post: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to create post") from e

    async def get_post(self, post_id: Any) -> Optional[Post]:
        """Get a post by ID"""
        stmt = select(Post).where(Post.id == to_uuid(post_id))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_visible_post(self, post_id: Any, viewer_id: Any = None) -> Post:
        """Get a post the viewer may read. Drafts are visible to their author only."""
        post = await self.get_post(post_id)
        viewer_id = to_uuid_or_none(viewer_id)
        if not post or (not post.is_published and post.author_id != viewer_id):
            raise NotFound("Post not found")
        return post

    async def get_post_with_author(self, post_id: Any, viewer_id: Any = None) -> PostWithAuthor:
        """Get a post with its author snapshot and the viewer's like status"""
        post = await self.get_visible_post(post_id, viewer_id)
        return (await self._with_authors([post], to_uuid_or_none(viewer_id)))[0]

    async def list_posts(
        self,
        viewer_id: Any = None,
        skip: int = 0,
        limit: int = 20,
        tag: Optional[str] = None
    ) -> PostListResponse:
        """Published posts, newest first"""
        conditions = [Post.status == PostStatus.PUBLISHED.value]
        posts, total = await self._page(conditions, skip, limit, tag)
        return PostListResponse(
            posts=await self._with_authors(posts, to_uuid_or_none(viewer_id)),
            total=total,
            skip=skip,
            limit=limit
        )

    async def get_user_posts(
        self,
        user_id: Any,
        viewer_id: Any = None,
        skip: int = 0,
        limit: int = 20
    ) -> PostListResponse:
        """Posts of one author; drafts are included only for the author"""
        user_id = to_uuid(user_id)
        viewer_id = to_uuid_or_none(viewer_id)

        conditions = [Post.author_id == user_id]
        if viewer_id != user_id:
            conditions.append(Post.status == PostStatus.PUBLISHED.value)

        posts, total = await self._page(conditions, skip, limit)
        return PostListResponse(
            posts=await self._with_authors(posts, viewer_id),
            total=total,
            skip=skip,
            limit=limit
        )

    async def get_trending_posts(self, viewer_id: Any = None, limit: int = 6) -> List[PostWithAuthor]:
        """Published posts with the most likes, then the most comments"""
        stmt = select(Post).where(
            Post.status == PostStatus.PUBLISHED.value
        ).order_by(
            desc(Post.likes_count),
            desc(Post.comments_count),
            desc(Post.created_at)
        ).limit(limit)

        posts = (await self.db.execute(stmt)).scalars().all()
        return await self._with_authors(list(posts), to_uuid_or_none(viewer_id))

    async def search_posts(
        self,
        query: str,
        viewer_id: Any = None,
        skip: int = 0,
        limit: int = 20
    ) -> PostListResponse:
        """Case-insensitive substring search over published titles and content"""
        query = (query or "").strip()
        if not query:
            return PostListResponse(posts=[], total=0, skip=skip, limit=limit)

        conditions = [
            Post.status == PostStatus.PUBLISHED.value,
            or_(
                Post.title.icontains(query, autoescape=True),
                Post.content.icontains(query, autoescape=True)
            )
        ]
        posts, total = await self._page(conditions, skip, limit)
        return PostListResponse(
            posts=await self._with_authors(posts, to_uuid_or_none(viewer_id)),
            total=total,
            skip=skip,
            limit=limit
        )

    async def get_popular_tags(self, limit: int = 8) -> List[TagCount]:
        """Tags of published posts by number of posts using them"""
        result = await self.db.execute(
            select(Post.tags).where(Post.status == PostStatus.PUBLISHED.value)
        )

        counts: Counter = Counter()
        for tags in result.scalars():
            # a tag counts once per post
            counts.update({tag.strip() for tag in (tags or []) if tag and tag.strip()})

        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0].lower()))
        return [TagCount(name=name, count=count) for name, count in ranked[:limit]]

    async def update_post(self, user_id: Any, post_id: Any, post_update: PostUpdate) -> Post:
        """Update a post. Only its author may do so."""
        post = await self.get_post(post_id)
        if not post:
            raise NotFound("Post not found")
        if post.author_id != to_uuid(user_id):
            raise Forbidden("Not authorized to update this post")

        update_data = post_update.model_dump(exclude_unset=True)
        if update_data.get("status") is not None:
            update_data["status"] = update_data["status"].value
        if update_data.get("title"):
            update_data["title"] = update_data["title"].strip()

        try:
            for field, value in update_data.items():
                setattr(post, field, value)
            post.updated_at = utcnow()

            await self.db.commit()
            await self.db.refresh(post)
            return post
        except SQLAlchemyError as e:
            logger.error(f"Error updating post: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to update post") from e

    async def delete_post(self, user_id: Any, post_id: Any) -> int:
        """Delete a post with its likes, its comments and their likes.

        Returns the number of comments removed along with the post.
        """
        post = await self.get_post(post_id)
        if not post:
            raise NotFound("Post not found")
        if post.author_id != to_uuid(user_id):
            raise Forbidden("Not authorized to delete this post")

        post_id = post.id
        try:
            comment_ids = [
                row[0] for row in await self.db.execute(select(Comment.id).where(Comment.post_id == post_id))
            ]
            if comment_ids:
                await self.db.execute(delete(CommentLike).where(CommentLike.target_id.in_(comment_ids)))
            await self.db.execute(delete(Comment).where(Comment.post_id == post_id))
            await self.db.execute(delete(Like).where(Like.post_id == post_id))
            await self.db.execute(delete(Post).where(Post.id == post_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting post: {e}")
            await self.db.rollback()
            raise StoreFailure("Failed to delete post") from e

        logger.info(f"Deleted post {post_id} with {len(comment_ids)} comments")
        return len(comment_ids)

    async def _page(self, conditions, skip: int, limit: int, tag: Optional[str] = None):
        stmt = select(Post).where(*conditions).order_by(desc(Post.created_at))
        count_stmt = select(func.count(Post.id)).where(*conditions)

        if tag:
            # tags is a JSON list column, matched after loading
            posts = [p for p in (await self.db.execute(stmt)).scalars().all() if tag in (p.tags or [])]
            return posts[skip:skip + limit], len(posts)

        posts = (await self.db.execute(stmt.offset(skip).limit(limit))).scalars().all()
        total = (await self.db.execute(count_stmt)).scalar() or 0
        return list(posts), total

    async def _with_authors(self, posts: List[Post], viewer_id: Optional[uuid.UUID]) -> List[PostWithAuthor]:
        if not posts:
            return []

        author_ids = {p.author_id for p in posts}
        authors = {
            u.id: u for u in (await self.db.execute(select(User).where(User.id.in_(author_ids)))).scalars()
        }

        liked: Set[uuid.UUID] = set()
        if viewer_id is not None:
            result = await self.db.execute(
                select(Like.post_id).where(
                    Like.user_id == viewer_id,
                    Like.post_id.in_([p.id for p in posts])
                )
            )
            liked = {row[0] for row in result}

        items = []
        for post in posts:
            item = PostWithAuthor.model_validate(post)
            item.liked = post.id in liked
            author = authors.get(post.author_id)
            if author is not None:
                item.author = AuthorSnapshot.model_validate(author)
            items.append(item)
        return items
