"""Pydantic schemas for IT Cook API."""
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# === Auth ===
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1)
    last_name: str = ""


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    created_at: datetime

    class Config:
        from_attributes = True


# === Fridge ===
class FridgeItemBase(BaseModel):
    name: str = Field(..., min_length=1)
    brand: str | None = None
    quantity: float = Field(1.0, gt=0)
    unit: str = "pcs"
    category: str | None = None
    location: str | None = None
    purchase_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class FridgeItemCreate(FridgeItemBase):
    pass


class FridgeItemRead(FridgeItemBase):
    id: UUID
    user_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ExpiringItemRead(BaseModel):
    id: UUID
    name: str
    days_left: int


class ExpiryNotifyResult(BaseModel):
    notified: bool
    items: list[ExpiringItemRead]


# === Community ===
class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class PostRead(BaseModel):
    id: UUID
    author_id: UUID
    content: str
    likes_count: int
    comments_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class LikeResult(BaseModel):
    post_id: UUID
    total_likes: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentRead(BaseModel):
    id: UUID
    post_id: UUID
    author_id: UUID
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class FollowResult(BaseModel):
    followee_id: UUID
    following: bool
    created: bool


# === Realtime ===
class RealtimeStatsResponse(BaseModel):
    connected_clients: int
    uptime: str
    events_sent_today: int


class ConnectedClientRead(BaseModel):
    user_id: UUID
    display_name: str
    connected_at: datetime
    last_heartbeat: datetime

    class Config:
        from_attributes = True
