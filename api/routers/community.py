"""Community feed router for IT Cook API."""
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from api.dependencies import CurrentUser, DBSession, Realtime
from api.schemas import CommentCreate, CommentRead, FollowResult, LikeResult, PostCreate, PostRead
from database.models import User
from services.community import CommunityService

router = APIRouter()


async def _get_post_or_404(service: CommunityService, post_id: UUID):
    post = await service.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.get("/posts", response_model=list[PostRead])
async def list_posts(
    session: DBSession,
    user: CurrentUser,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Community feed, newest first."""
    posts = await CommunityService(session).list_posts(limit, offset)
    return [PostRead.model_validate(post) for post in posts]


@router.post("/posts", response_model=PostRead, status_code=201)
async def create_post(data: PostCreate, user: CurrentUser, session: DBSession, realtime: Realtime):
    """Publish a post; connected clients get a NewCommunityPost event."""
    post = await CommunityService(session, realtime).create_post(user, data.content)
    return PostRead.model_validate(post)


@router.post("/posts/{post_id}/like", response_model=LikeResult)
async def like_post(post_id: UUID, user: CurrentUser, session: DBSession, realtime: Realtime):
    """Like a post (idempotent)."""
    service = CommunityService(session, realtime)
    post = await _get_post_or_404(service, post_id)
    total = await service.like_post(post, user)
    return LikeResult(post_id=post_id, total_likes=total)


@router.post("/posts/{post_id}/comments", response_model=CommentRead, status_code=201)
async def add_comment(
    post_id: UUID,
    data: CommentCreate,
    user: CurrentUser,
    session: DBSession,
    realtime: Realtime,
):
    """Comment on a post; subscribers of ``post:<id>`` get a NewComment event."""
    service = CommunityService(session, realtime)
    post = await _get_post_or_404(service, post_id)
    comment = await service.add_comment(post, user, data.content)
    return CommentRead.model_validate(comment)


@router.post("/users/{user_id}/follow", response_model=FollowResult)
async def follow_user(user_id: UUID, user: CurrentUser, session: DBSession, realtime: Realtime):
    """Follow a user; they get a NewFollower event if connected."""
    followee = await session.get(User, user_id)
    if not followee:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        created = await CommunityService(session, realtime).follow_user(user, followee)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return FollowResult(followee_id=user_id, following=True, created=created)
