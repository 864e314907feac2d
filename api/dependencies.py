"""Dependency injection for IT Cook API."""
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from api.auth import CurrentIdentity
from database.base import async_session
from database.models import User
from services.realtime import RealtimeService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_realtime(connection: HTTPConnection) -> RealtimeService:
    """The process-wide realtime service created in the app lifespan."""
    return connection.app.state.realtime


async def get_current_user(
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Load the authenticated user's row (for routes that write as the user)."""
    user = await session.get(User, identity.user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type aliases for cleaner dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db_session)]
Realtime = Annotated[RealtimeService, Depends(get_realtime)]
CurrentUser = Annotated[User, Depends(get_current_user)]
