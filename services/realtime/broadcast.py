"""Bounded broadcast topics and the hub that owns them.

Contains:
- Topic: in-process fan-out to every current Subscription
- Subscription: per-receiver bounded buffer with lagging-receiver semantics
  (when full, the oldest undelivered event is dropped; publishers never wait)
- BroadcastHub: one global topic plus a registry of named channels
"""
import asyncio
import logging
from collections.abc import AsyncIterator
from uuid import UUID

from monitoring.health import RealtimeMetrics
from services.realtime.events import Event

logger = logging.getLogger(__name__)

GLOBAL_TOPIC = "global"
USER_CHANNEL_PREFIX = "user:"
POST_CHANNEL_PREFIX = "post:"

_CLOSED = object()


class RealtimeError(Exception):
    """Base class for realtime subsystem errors."""


class TopicClosed(RealtimeError):
    """The topic was shut down; no more events will be delivered."""


def user_channel(user_id: UUID) -> str:
    return f"{USER_CHANNEL_PREFIX}{user_id}"


def post_channel(post_id: UUID) -> str:
    return f"{POST_CHANNEL_PREFIX}{post_id}"


class Subscription:
    """Receiving end of a topic.

    Events arrive in publish order. If the receiver falls more than
    ``capacity`` events behind, the oldest ones are discarded and the number
    skipped is logged on the next ``recv``.
    """

    def __init__(self, topic: "Topic", capacity: int):
        self.topic = topic
        self.capacity = capacity
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity + 1)  # +1 keeps room for the close marker
        self._lagged = 0
        self.closed = False

    @property
    def name(self) -> str:
        return self.topic.name

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, item) -> None:
        if item is not _CLOSED and self._queue.qsize() >= self.capacity:
            self._queue.get_nowait()
            self._lagged += 1
        elif self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    async def recv(self) -> Event:
        """Wait for the next event.

        Raises:
            TopicClosed: the topic was closed or this subscription was closed
        """
        if self.closed and self._queue.empty():
            raise TopicClosed(self.name)
        item = await self._queue.get()
        if item is _CLOSED:
            self.closed = True
            raise TopicClosed(self.name)
        if self._lagged:
            logger.warning(
                f"Subscriber on '{self.name}' lagged behind, skipped {self._lagged} events"
            )
            self._lagged = 0
        return item

    def close(self) -> None:
        """Detach from the topic and wake any pending ``recv``."""
        if self.closed:
            return
        self.closed = True
        self.topic._unsubscribe(self)
        self._deliver(_CLOSED)

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        while True:
            try:
                yield await self.recv()
            except TopicClosed:
                return


class Topic:
    """A bounded fan-out channel. Publishing is synchronous and never blocks."""

    def __init__(self, name: str, capacity: int):
        self.name = name
        self.capacity = capacity
        self._subscribers: set[Subscription] = set()
        self.closed = False

    @property
    def receiver_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        if self.closed:
            raise TopicClosed(self.name)
        subscription = Subscription(self, self.capacity)
        self._subscribers.add(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)

    def publish(self, event: Event) -> int:
        """Hand the event to every current subscriber.

        Returns:
            Number of subscribers the event was delivered to
        """
        if self.closed:
            raise TopicClosed(self.name)
        for subscription in list(self._subscribers):
            subscription._deliver(event)
        return len(self._subscribers)

    def close(self) -> None:
        self.closed = True
        subscribers, self._subscribers = self._subscribers, set()
        for subscription in subscribers:
            subscription._deliver(_CLOSED)


class BroadcastHub:
    """Owns the global topic and the named channel registry."""

    def __init__(
        self,
        global_capacity: int = 1000,
        channel_capacity: int = 100,
        targeted_delivery: bool = True,
        metrics: RealtimeMetrics | None = None,
    ):
        self.channel_capacity = channel_capacity
        self.targeted_delivery = targeted_delivery
        self.metrics = metrics or RealtimeMetrics()
        self._global = Topic(GLOBAL_TOPIC, global_capacity)
        self._channels: dict[str, Topic] = {}
        self._lock = asyncio.Lock()

    def subscribe_global(self) -> Subscription:
        return self._global.subscribe()

    @property
    def global_receiver_count(self) -> int:
        return self._global.receiver_count

    async def broadcast_global(self, event: Event) -> int:
        """Publish to every connected client.

        A closed global topic is logged and reported as 0 deliveries.
        """
        try:
            count = self._global.publish(event)
        except TopicClosed:
            logger.error(f"Failed to broadcast {event.event_type}: global topic is closed")
            return 0
        self.metrics.record_event()
        logger.info(f"Broadcasted {event.event_type} to {count} clients")
        return count

    async def send_to_channel(self, channel_name: str, event: Event) -> int:
        """Publish to a named channel. Unknown channels are a logged no-op."""
        topic = self._channels.get(channel_name)
        if topic is None:
            logger.warning(f"Channel '{channel_name}' not found, dropping {event.event_type}")
            return 0
        try:
            count = topic.publish(event)
        except TopicClosed:
            logger.error(f"Failed to send {event.event_type} to closed channel '{channel_name}'")
            return 0
        self.metrics.record_event()
        logger.info(f"Sent {event.event_type} to channel '{channel_name}' ({count} subscribers)")
        return count

    async def send_to_user(self, user_id: UUID, event: Event) -> int:
        """Deliver to one identity's sessions (or everyone in legacy mode)."""
        if not self.targeted_delivery:
            return await self.broadcast_global(event)
        return await self.send_to_channel(user_channel(user_id), event)

    async def create_channel(self, channel_name: str) -> Subscription:
        """Subscribe to a channel, creating it if it does not exist yet."""
        async with self._lock:
            topic = self._channels.get(channel_name)
            if topic is None:
                topic = Topic(channel_name, self.channel_capacity)
                self._channels[channel_name] = topic
                logger.info(f"Created WebSocket channel: {channel_name}")
            return topic.subscribe()

    def channel_names(self) -> list[str]:
        return sorted(self._channels)

    def channel_receiver_count(self, channel_name: str) -> int:
        topic = self._channels.get(channel_name)
        return topic.receiver_count if topic else 0

    async def prune_channels(self) -> list[str]:
        """Drop channels nobody listens to anymore."""
        async with self._lock:
            idle = [name for name, topic in self._channels.items() if topic.receiver_count == 0]
            for name in idle:
                self._channels.pop(name).close()
        if idle:
            logger.debug(f"Pruned {len(idle)} idle channels")
        return idle

    async def close(self) -> None:
        """Close every topic; sessions drain and disconnect."""
        async with self._lock:
            channels, self._channels = self._channels, {}
        for topic in channels.values():
            topic.close()
        self._global.close()
        logger.info("Broadcast hub closed")
