"""Per-connection WebSocket session loop.

One session = one upgraded connection. It registers the client, then runs
under a single TaskGroup:
- one pump task per joined topic, copying its subscription into the outbox
- the outbound task, draining the outbox into the socket
- the inbound task, decoding client control messages

Whichever of them ends first (close frame, read error, write error, global
topic closed) sets the stop event; every task is cancelled and joined, and
cleanup (unsubscribe + deregister) runs exactly once.
"""
import asyncio
import logging
from enum import Enum
from typing import assert_never
from uuid import UUID, uuid4

from starlette.websockets import WebSocket, WebSocketState

from services.realtime.broadcast import (
    GLOBAL_TOPIC,
    USER_CHANNEL_PREFIX,
    BroadcastHub,
    Subscription,
    user_channel,
)
from services.realtime.events import (
    ClientMessage,
    Event,
    HeartbeatMessage,
    NotificationLevel,
    SubscribeMessage,
    SystemNotification,
    TypingStartMessage,
    TypingStopMessage,
    UnsubscribeMessage,
    parse_client_message,
)
from services.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

MAX_CHANNELS_PER_SESSION = 50
MAX_CHANNEL_NAME_LENGTH = 128


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


class ConnectionSession:
    def __init__(
        self,
        websocket: WebSocket,
        user_id: UUID,
        display_name: str,
        hub: BroadcastHub,
        registry: ConnectionRegistry,
        outbox_size: int | None = None,
        max_channels: int = MAX_CHANNELS_PER_SESSION,
        max_channel_name_length: int = MAX_CHANNEL_NAME_LENGTH,
    ):
        self.websocket = websocket
        self.user_id = user_id
        self.display_name = display_name
        self.hub = hub
        self.registry = registry
        self.max_channels = max_channels
        self.max_channel_name_length = max_channel_name_length
        self.connection_id = uuid4()
        self.state = SessionState.CONNECTING
        self.ready = asyncio.Event()

        self._outbox: asyncio.Queue[Event] = asyncio.Queue(maxsize=outbox_size or hub.channel_capacity)
        self._subscriptions: dict[str, Subscription] = {}
        self._pumps: dict[str, asyncio.Task] = {}
        self._stopped = asyncio.Event()
        self._task_group: asyncio.TaskGroup | None = None
        self._cleaned_up = False

    @property
    def own_channel(self) -> str:
        return user_channel(self.user_id)

    @property
    def channels(self) -> list[str]:
        """Named channels this session currently listens to."""
        return sorted(name for name in self._subscriptions if name != GLOBAL_TOPIC)

    async def run(self) -> None:
        """Serve the connection until either side ends it."""
        try:
            self._subscriptions[GLOBAL_TOPIC] = await self.registry.register(
                self.user_id, self.display_name, self.connection_id
            )
            if self.hub.targeted_delivery:
                self._subscriptions[self.own_channel] = await self.hub.create_channel(self.own_channel)
            await self.websocket.accept()
            self.state = SessionState.ACTIVE

            async with asyncio.TaskGroup() as task_group:
                self._task_group = task_group
                for name, subscription in list(self._subscriptions.items()):
                    self._start_pump(name, subscription)
                send_task = task_group.create_task(self._send_loop())
                recv_task = task_group.create_task(self._receive_loop())
                self.ready.set()

                await self._stopped.wait()
                self.state = SessionState.DRAINING
                send_task.cancel()
                recv_task.cancel()
                for pump in self._pumps.values():
                    pump.cancel()
        finally:
            await self._cleanup()

    def stop(self) -> None:
        """Ask the session to drain and close."""
        self._stopped.set()

    # === Tasks ===
    def _start_pump(self, name: str, subscription: Subscription) -> None:
        self._pumps[name] = self._task_group.create_task(
            self._pump(subscription, stop_when_closed=name == GLOBAL_TOPIC)
        )

    async def _pump(self, subscription: Subscription, stop_when_closed: bool) -> None:
        try:
            async for event in subscription:
                await self._outbox.put(event)
        finally:
            if stop_when_closed:
                self._stopped.set()

    async def _send_loop(self) -> None:
        try:
            while True:
                event = await self._outbox.get()
                try:
                    frame = event.to_json()
                except (TypeError, ValueError) as e:
                    logger.error(f"Failed to serialize WebSocket event {event.event_type}: {e}")
                    continue
                try:
                    await self.websocket.send_text(frame)
                except Exception as e:
                    logger.info(f"WebSocket send failed for {self.user_id}, client probably disconnected: {e}")
                    return
        finally:
            self._stopped.set()

    async def _receive_loop(self) -> None:
        try:
            while True:
                try:
                    message = await self.websocket.receive()
                except Exception as e:
                    logger.error(f"WebSocket error for {self.user_id}: {e}")
                    return

                if message["type"] == "websocket.disconnect":
                    logger.info(f"WebSocket connection closed by client {self.user_id} (code {message.get('code')})")
                    return

                raw = message.get("text")
                if raw is None:
                    continue  # binary frames are not part of the protocol
                client_message = parse_client_message(raw)
                if client_message is None:
                    logger.debug(f"Dropped malformed frame from {self.user_id}: {raw[:200]!r}")
                    continue
                try:
                    await self.handle_message(client_message)
                except Exception as e:
                    logger.error(f"Failed to handle {client_message.type} from {self.user_id}: {e}", exc_info=True)
        finally:
            self._stopped.set()

    # === Control messages ===
    async def handle_message(self, message: ClientMessage) -> None:
        await self.registry.touch_heartbeat(self.user_id, self.connection_id)

        if isinstance(message, HeartbeatMessage):
            pass
        elif isinstance(message, SubscribeMessage):
            await self._join(message.channels)
        elif isinstance(message, UnsubscribeMessage):
            self._leave(message.channels)
        elif isinstance(message, TypingStartMessage):
            await self.hub.broadcast_global(
                SystemNotification(
                    title="Typing",
                    message=f"{self.display_name} is typing...",
                    level=NotificationLevel.INFO,
                )
            )
        elif isinstance(message, TypingStopMessage):
            logger.debug(f"Client {self.user_id} stopped typing on post {message.post_id}")
        else:
            assert_never(message)

    @property
    def joined_count(self) -> int:
        """Channels joined through Subscribe (global and own channel excluded)."""
        return sum(1 for name in self._subscriptions if name not in (GLOBAL_TOPIC, self.own_channel))

    async def _join(self, channels: list[str]) -> None:
        joined = []
        for name in channels:
            if not name or name in self._subscriptions:
                continue
            if len(name) > self.max_channel_name_length:
                logger.warning(
                    f"Client {self.user_id} channel name too long ({len(name)} > {self.max_channel_name_length})"
                )
                continue
            if name.startswith(USER_CHANNEL_PREFIX):
                logger.warning(f"Client {self.user_id} may not subscribe to '{name}'")
                continue
            if self.joined_count >= self.max_channels:
                logger.warning(
                    f"Client {self.user_id} reached the limit of {self.max_channels} channels, refused '{name}'"
                )
                continue
            subscription = await self.hub.create_channel(name)
            self._subscriptions[name] = subscription
            self._start_pump(name, subscription)
            joined.append(name)
        logger.info(f"Client {self.display_name} subscribed to channels: {joined}")

    def _leave(self, channels: list[str]) -> None:
        left = []
        for name in channels:
            if name in (GLOBAL_TOPIC, self.own_channel):
                continue
            subscription = self._subscriptions.pop(name, None)
            if subscription is None:
                continue
            subscription.close()
            pump = self._pumps.pop(name, None)
            if pump:
                pump.cancel()
            left.append(name)
        logger.info(f"Client {self.display_name} unsubscribed from channels: {left}")

    # === Teardown ===
    async def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self.state = SessionState.DRAINING

        for subscription in self._subscriptions.values():
            subscription.close()
        self._subscriptions.clear()
        self._pumps.clear()

        await self.registry.deregister(self.user_id, self.connection_id)
        await self._close_socket()
        self.state = SessionState.CLOSED
        logger.info(f"WebSocket session closed for {self.display_name} ({self.user_id})")

    async def _close_socket(self) -> None:
        if (
            self.websocket.application_state != WebSocketState.CONNECTED
            or self.websocket.client_state != WebSocketState.CONNECTED
        ):
            return
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"Closing WebSocket for {self.user_id} failed: {e}")
