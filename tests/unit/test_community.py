"""Tests for CommunityService."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database.base import Base
from database.models import CommunityPost, PostLike, User
from services.community import CommunityService
from services.realtime.broadcast import post_channel, user_channel
from services.realtime.events import NewComment, NewCommunityPost, NewFollower, PostLiked


@pytest.mark.asyncio
async def test_create_post_broadcasts(db_session, sample_user, realtime, hub):
    everyone = hub.subscribe_global()
    service = CommunityService(db_session, realtime)

    post = await service.create_post(sample_user, "Made borscht today")

    event = await everyone.recv()
    assert isinstance(event, NewCommunityPost)
    assert event.post_id == post.id
    assert event.author_name == "Alice Cook"
    assert event.content == "Made borscht today"


@pytest.mark.asyncio
async def test_works_without_realtime(db_session, sample_user, second_user):
    service = CommunityService(db_session)

    post = await service.create_post(sample_user, "Quiet post")
    assert await service.like_post(post, second_user) == 1
    await service.add_comment(post, second_user, "Nice")
    assert await service.follow_user(second_user, sample_user) is True

    assert [p.id for p in await service.list_posts()] == [post.id]


@pytest.mark.asyncio
async def test_like_post_once_per_user(db_session, sample_user, second_user):
    realtime = MagicMock()
    realtime.notify_new_post = AsyncMock()
    realtime.notify_post_liked = AsyncMock()
    service = CommunityService(db_session, realtime)
    post = await service.create_post(sample_user, "Like me")

    assert await service.like_post(post, second_user) == 1
    assert await service.like_post(post, second_user) == 1
    assert await service.like_post(post, sample_user) == 2

    assert realtime.notify_post_liked.await_count == 2
    realtime.notify_post_liked.assert_awaited_with(post.id, "Alice Cook", 2)


@pytest.mark.asyncio
async def test_like_event_carries_total(db_session, sample_user, second_user, realtime, hub):
    service = CommunityService(db_session, realtime)
    post = await service.create_post(sample_user, "Like me")
    everyone = hub.subscribe_global()

    await service.like_post(post, second_user)

    event = await everyone.recv()
    assert isinstance(event, PostLiked)
    assert event.liker_name == "Bob Baker"
    assert event.total_likes == 1


@pytest.mark.asyncio
async def test_add_comment_notifies_post_watchers(db_session, sample_user, second_user, realtime, hub):
    service = CommunityService(db_session, realtime)
    post = await service.create_post(sample_user, "Comment on me")
    watchers = await hub.create_channel(post_channel(post.id))

    comment = await service.add_comment(post, second_user, "Looks tasty")

    event = await watchers.recv()
    assert isinstance(event, NewComment)
    assert event.comment_id == comment.id
    assert post.comments_count == 1


@pytest.mark.asyncio
async def test_follow_user(db_session, sample_user, second_user, realtime, hub):
    inbox = await hub.create_channel(user_channel(sample_user.id))
    service = CommunityService(db_session, realtime)

    assert await service.follow_user(second_user, sample_user) is True
    assert await service.follow_user(second_user, sample_user) is False

    event = await inbox.recv()
    assert isinstance(event, NewFollower)
    assert event.follower_id == second_user.id
    assert inbox.pending == 0


@pytest.mark.asyncio
async def test_cannot_follow_self(db_session, sample_user):
    with pytest.raises(ValueError, match="Cannot follow yourself"):
        await CommunityService(db_session).follow_user(sample_user, sample_user)


@pytest.fixture
async def two_sessions(tmp_path):
    """Two independent sessions on one file database, like two API requests."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/community.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async with maker() as first, maker() as second:
        alice = User(email="alice@itcook.app", password_hash="x", first_name="Alice", last_name="Cook")
        bob = User(email="bob@itcook.app", password_hash="x", first_name="Bob", last_name="Baker")
        first.add_all([alice, bob])
        await first.commit()
        post = await CommunityService(first).create_post(alice, "Shared pie")
        yield first, second, post

    await engine.dispose()


def mock_realtime():
    realtime = MagicMock()
    realtime.notify_post_liked = AsyncMock()
    realtime.notify_new_comment = AsyncMock()
    return realtime


async def stored_counts(session, post_id):
    likes_count = await session.scalar(select(CommunityPost.likes_count).where(CommunityPost.id == post_id))
    like_rows = await session.scalar(select(func.count(PostLike.id)).where(PostLike.post_id == post_id))
    return likes_count, like_rows


class TestConcurrentWrites:
    """Counters stay in step with rows when two sessions write the same post."""

    @pytest.mark.asyncio
    async def test_likes_from_two_sessions_are_both_counted(self, two_sessions):
        first, second, post = two_sessions
        alice = (await first.execute(select(User).where(User.first_name == "Alice"))).scalar_one()
        stale_post = await second.get(CommunityPost, post.id)
        bob = (await second.execute(select(User).where(User.first_name == "Bob"))).scalar_one()
        realtime = mock_realtime()

        assert await CommunityService(first, realtime).like_post(post, alice) == 1
        assert await CommunityService(second, realtime).like_post(stale_post, bob) == 2

        realtime.notify_post_liked.assert_awaited_with(post.id, "Bob Baker", 2)
        assert stale_post.likes_count == 2
        assert await stored_counts(first, post.id) == (2, 2)

    @pytest.mark.asyncio
    async def test_comments_from_two_sessions_are_both_counted(self, two_sessions):
        first, second, post = two_sessions
        alice = (await first.execute(select(User).where(User.first_name == "Alice"))).scalar_one()
        stale_post = await second.get(CommunityPost, post.id)
        bob = (await second.execute(select(User).where(User.first_name == "Bob"))).scalar_one()

        await CommunityService(first).add_comment(post, alice, "First!")
        await CommunityService(second).add_comment(stale_post, bob, "Second")

        stored = await first.scalar(select(CommunityPost.comments_count).where(CommunityPost.id == post.id))
        assert stored == 2
        assert stale_post.comments_count == 2

    @pytest.mark.asyncio
    async def test_same_user_liking_twice_at_once_is_a_noop(self, two_sessions, monkeypatch):
        first, second, post = two_sessions
        alice = (await first.execute(select(User).where(User.first_name == "Alice"))).scalar_one()
        alice_again = await second.get(User, alice.id)
        stale_post = await second.get(CommunityPost, post.id)
        realtime = mock_realtime()

        original_execute = second.execute
        raced = False

        async def like_elsewhere_after_check(statement, *args, **kwargs):
            nonlocal raced
            result = await original_execute(statement, *args, **kwargs)
            if not raced:
                raced = True
                await CommunityService(first).like_post(post, alice)
            return result

        monkeypatch.setattr(second, "execute", like_elsewhere_after_check)

        assert await CommunityService(second, realtime).like_post(stale_post, alice_again) == 1
        realtime.notify_post_liked.assert_not_called()
        assert await stored_counts(first, post.id) == (1, 1)
