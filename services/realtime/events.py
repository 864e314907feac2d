"""Realtime event model and wire codec.

Contains:
- Server events (closed set of variants) sent to clients as
  ``{"type": <variant>, "data": {...}}`` text frames
- Client control messages received as ``{"type": <variant>, ...fields}``
- Helpers to encode events and decode inbound frames
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationLevel(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    SUCCESS = "Success"


class ExpiringItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    days_left: int = Field(..., ge=0)


# === Server -> client events ===
class BaseEvent(BaseModel):
    """Base for every server event. The class name is the wire ``type``."""

    model_config = ConfigDict(frozen=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.event_type, "data": self.model_dump(mode="json")}

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


class NewCommunityPost(BaseEvent):
    post_id: UUID
    author_name: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class PostLiked(BaseEvent):
    post_id: UUID
    liker_name: str
    total_likes: int = Field(..., ge=0)


class NewComment(BaseEvent):
    post_id: UUID
    comment_id: UUID
    author_name: str
    content: str


class ExpiringItems(BaseEvent):
    items: tuple[ExpiringItem, ...]
    days_left: int = Field(..., ge=0)


class GoalAchieved(BaseEvent):
    goal_id: UUID
    title: str
    achievement_type: str


class NewFollower(BaseEvent):
    follower_id: UUID
    follower_name: str


class RecipeGenerated(BaseEvent):
    recipe_id: UUID
    title: str
    ingredients_count: int = Field(..., ge=0)


class SystemNotification(BaseEvent):
    title: str
    message: str
    level: NotificationLevel = NotificationLevel.INFO


class Heartbeat(BaseEvent):
    timestamp: datetime = Field(default_factory=utcnow)


Event = Union[
    NewCommunityPost,
    PostLiked,
    NewComment,
    ExpiringItems,
    GoalAchieved,
    NewFollower,
    RecipeGenerated,
    SystemNotification,
    Heartbeat,
]

EVENT_TYPES: dict[str, type[BaseEvent]] = {cls.__name__: cls for cls in Event.__args__}


def decode_event(frame: str | dict[str, Any]) -> Event:
    """Decode a server frame back into its event.

    Raises:
        ValueError: unknown ``type`` or invalid payload
    """
    wire = json.loads(frame) if isinstance(frame, str) else frame
    event_cls = EVENT_TYPES.get(wire.get("type"))
    if event_cls is None:
        raise ValueError(f"Unknown event type: {wire.get('type')!r}")
    return event_cls.model_validate(wire.get("data") or {})


# === Client -> server control messages ===
class SubscribeMessage(BaseModel):
    type: Literal["Subscribe"]
    channels: list[str]


class UnsubscribeMessage(BaseModel):
    type: Literal["Unsubscribe"]
    channels: list[str]


class HeartbeatMessage(BaseModel):
    type: Literal["Heartbeat"]


class TypingStartMessage(BaseModel):
    type: Literal["TypingStart"]
    post_id: UUID


class TypingStopMessage(BaseModel):
    type: Literal["TypingStop"]
    post_id: UUID


ClientMessage = Annotated[
    Union[
        SubscribeMessage,
        UnsubscribeMessage,
        HeartbeatMessage,
        TypingStartMessage,
        TypingStopMessage,
    ],
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage | None:
    """Decode one inbound frame; returns None for anything malformed."""
    try:
        return _client_message_adapter.validate_json(raw)
    except ValidationError:
        return None
