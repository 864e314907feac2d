"""Authentication router for IT Cook API."""
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from api.auth import create_access_token, hash_password, verify_password
from api.dependencies import CurrentUser, DBSession
from api.schemas import Token, UserCreate, UserLogin, UserRead
from database.models import User

router = APIRouter()


@router.post("/register", response_model=Token, status_code=201)
async def register(user_data: UserCreate, session: DBSession):
    """Register a new user and return an access token."""
    stmt = select(User).where(User.email == user_data.email.lower())
    if (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=user_data.email.lower(),
        password_hash=hash_password(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    return Token(access_token=create_access_token(user))


@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, session: DBSession):
    """Login and get access token."""
    stmt = select(User).where(User.email == user_data.email.lower())
    user = (await session.execute(stmt)).scalar_one_or_none()

    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return Token(access_token=create_access_token(user))


@router.get("/me", response_model=UserRead)
async def get_current_user_info(user: CurrentUser):
    """Get current user profile."""
    return user
