"""Module for the community feed.

Contains:
- CommunityService: posts, likes, comments and follows; each write publishes
  the matching realtime event when a RealtimeService is attached
"""
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from database.models import CommunityPost, Follow, PostComment, PostLike, User
from services.realtime import RealtimeService

logger = logging.getLogger(__name__)


class CommunityService:
    def __init__(self, session: AsyncSession, realtime: RealtimeService | None = None):
        self.session = session
        self.realtime = realtime

    async def create_post(self, author: User, content: str) -> CommunityPost:
        post = CommunityPost(author_id=author.id, content=content)
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)

        if self.realtime:
            await self.realtime.notify_new_post(post.id, author.display_name, content)
        return post

    async def list_posts(self, limit: int = 20, offset: int = 0) -> list[CommunityPost]:
        stmt = (
            select(CommunityPost)
            .order_by(CommunityPost.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_post(self, post_id: UUID) -> CommunityPost | None:
        return await self.session.get(CommunityPost, post_id)

    async def _bump_counter(self, post: CommunityPost, column) -> int:
        """Increment a post counter in the database and return the stored value."""
        await self.session.execute(
            update(CommunityPost)
            .where(CommunityPost.id == post.id)
            .values({column.key: column + 1})
            .execution_options(synchronize_session=False)
        )
        total = await self.session.scalar(select(column).where(CommunityPost.id == post.id))
        set_committed_value(post, column.key, total)
        return total

    async def _reload_counter(self, post: CommunityPost, column) -> int:
        total = await self.session.scalar(select(column).where(CommunityPost.id == post.id))
        set_committed_value(post, column.key, total)
        return total

    async def like_post(self, post: CommunityPost, liker: User) -> int:
        """Like a post once per user. Returns the total like count.

        A like that loses the race against the same user's like from another
        session is a no-op, like any repeated like.
        """
        post_id, liker_id = post.id, liker.id
        stmt = select(PostLike.id).where(PostLike.post_id == post_id, PostLike.user_id == liker_id)
        if (await self.session.execute(stmt)).scalar_one_or_none():
            return await self._reload_counter(post, CommunityPost.likes_count)

        self.session.add(PostLike(post_id=post_id, user_id=liker_id))
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            logger.info(f"Post {post_id} already liked by {liker_id}")
            await self.session.refresh(post)
            return post.likes_count

        total = await self._bump_counter(post, CommunityPost.likes_count)
        await self.session.commit()

        if self.realtime:
            await self.realtime.notify_post_liked(post_id, liker.display_name, total)
        return total

    async def add_comment(self, post: CommunityPost, author: User, content: str) -> PostComment:
        comment = PostComment(post_id=post.id, author_id=author.id, content=content)
        self.session.add(comment)
        await self.session.flush()
        await self._bump_counter(post, CommunityPost.comments_count)
        await self.session.commit()
        await self.session.refresh(comment)

        if self.realtime:
            await self.realtime.notify_new_comment(post.id, comment.id, author.display_name, content)
        return comment

    async def follow_user(self, follower: User, followee: User) -> bool:
        """Follow another user. Returns False if already following.

        Raises:
            ValueError: when trying to follow yourself
        """
        if follower.id == followee.id:
            raise ValueError("Cannot follow yourself")

        stmt = select(Follow).where(
            Follow.follower_id == follower.id,
            Follow.followee_id == followee.id,
        )
        if (await self.session.execute(stmt)).scalar_one_or_none():
            return False

        self.session.add(Follow(follower_id=follower.id, followee_id=followee.id))
        await self.session.commit()
        logger.info(f"User {follower.id} now follows {followee.id}")

        if self.realtime:
            await self.realtime.notify_new_follower(followee.id, follower.id, follower.display_name)
        return True
