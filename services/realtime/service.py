"""Typed entry points other services use to publish realtime events.

Each method builds one event variant and routes it: globally, to a
named channel, or to a single identity. Return values are delivery counts;
0 means "nobody was listening", which is not an error.
"""
from dataclasses import dataclass, field
from uuid import UUID

from services.realtime.broadcast import BroadcastHub, post_channel
from services.realtime.events import (
    ExpiringItem,
    ExpiringItems,
    GoalAchieved,
    Heartbeat,
    NewComment,
    NewCommunityPost,
    NewFollower,
    NotificationLevel,
    PostLiked,
    RecipeGenerated,
    SystemNotification,
)
from services.realtime.registry import ConnectedClient, ConnectionRegistry

GOAL_COMPLETED = "goal_completed"


@dataclass
class RealtimeStats:
    connected_clients: int
    uptime: str
    events_sent_today: int
    clients: list[ConnectedClient] = field(default_factory=list)


class RealtimeService:
    def __init__(self, hub: BroadcastHub, registry: ConnectionRegistry):
        self.hub = hub
        self.registry = registry

    # === Community ===
    async def notify_new_post(self, post_id: UUID, author_name: str, content: str) -> int:
        event = NewCommunityPost(post_id=post_id, author_name=author_name, content=content)
        return await self.hub.broadcast_global(event)

    async def notify_post_liked(self, post_id: UUID, liker_name: str, total_likes: int) -> int:
        event = PostLiked(post_id=post_id, liker_name=liker_name, total_likes=total_likes)
        return await self.hub.broadcast_global(event)

    async def notify_new_comment(
        self, post_id: UUID, comment_id: UUID, author_name: str, content: str
    ) -> int:
        """Goes to clients that subscribed to the post's channel."""
        event = NewComment(
            post_id=post_id,
            comment_id=comment_id,
            author_name=author_name,
            content=content,
        )
        return await self.hub.send_to_channel(post_channel(post_id), event)

    async def notify_new_follower(self, user_id: UUID, follower_id: UUID, follower_name: str) -> int:
        event = NewFollower(follower_id=follower_id, follower_name=follower_name)
        return await self.hub.send_to_user(user_id, event)

    # === Personal ===
    async def notify_expiring_items(self, user_id: UUID, items: list[ExpiringItem]) -> int:
        if not items:
            return 0
        days_left = min(item.days_left for item in items)
        event = ExpiringItems(items=tuple(items), days_left=days_left)
        return await self.hub.send_to_user(user_id, event)

    async def notify_goal_achieved(self, user_id: UUID, goal_id: UUID, title: str) -> int:
        event = GoalAchieved(goal_id=goal_id, title=title, achievement_type=GOAL_COMPLETED)
        return await self.hub.send_to_user(user_id, event)

    async def notify_recipe_generated(
        self, user_id: UUID, recipe_id: UUID, title: str, ingredients_count: int
    ) -> int:
        event = RecipeGenerated(recipe_id=recipe_id, title=title, ingredients_count=ingredients_count)
        return await self.hub.send_to_user(user_id, event)

    # === System ===
    async def send_system_notification(
        self, title: str, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> int:
        event = SystemNotification(title=title, message=message, level=level)
        return await self.hub.broadcast_global(event)

    async def send_heartbeat(self) -> int:
        return await self.hub.broadcast_global(Heartbeat())

    def get_stats(self) -> RealtimeStats:
        return RealtimeStats(
            connected_clients=self.registry.count(),
            uptime=self.hub.metrics.get_uptime(),
            events_sent_today=self.hub.metrics.get_events_today(),
            clients=self.registry.snapshot(),
        )
