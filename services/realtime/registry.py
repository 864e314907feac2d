"""Bookkeeping of currently connected WebSocket clients."""
import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID, uuid4

from services.realtime.broadcast import BroadcastHub, Subscription
from services.realtime.events import NotificationLevel, SystemNotification, utcnow

logger = logging.getLogger(__name__)

WELCOME_TITLE = "Welcome!"
WELCOME_MESSAGE = "You are connected to IT Cook real-time notifications"


@dataclass(frozen=True)
class ConnectedClient:
    user_id: UUID
    display_name: str
    connected_at: datetime
    last_heartbeat: datetime
    connection_id: UUID


class ConnectionRegistry:
    """Authoritative map of identity -> ConnectedClient.

    One entry per identity; a second registration for the same identity
    replaces the first. Writes go through a lock, reads work on copies.
    """

    def __init__(self, hub: BroadcastHub, clock: Callable[[], datetime] = utcnow):
        self.hub = hub
        self.clock = clock
        self._clients: dict[UUID, ConnectedClient] = {}
        self._lock = asyncio.Lock()

    async def register(
        self,
        user_id: UUID,
        display_name: str,
        connection_id: UUID | None = None,
    ) -> Subscription:
        """Register a client and subscribe it to the global topic.

        Side effect: a welcome SystemNotification is broadcast globally
        before the new subscription is created.
        """
        now = self.clock()
        client = ConnectedClient(
            user_id=user_id,
            display_name=display_name,
            connected_at=now,
            last_heartbeat=now,
            connection_id=connection_id or uuid4(),
        )
        async with self._lock:
            replaced = self._clients.get(user_id)
            self._clients[user_id] = client

        if replaced:
            logger.info(f"WebSocket client reconnected: {display_name} ({user_id}), replacing previous entry")
        else:
            logger.info(f"WebSocket client connected: {display_name} ({user_id})")

        await self.hub.broadcast_global(
            SystemNotification(
                title=WELCOME_TITLE,
                message=WELCOME_MESSAGE,
                level=NotificationLevel.SUCCESS,
            )
        )
        return self.hub.subscribe_global()

    async def deregister(self, user_id: UUID, connection_id: UUID | None = None) -> bool:
        """Remove a client. Returns False when there was nothing to remove.

        With ``connection_id`` the entry is only removed if it still belongs
        to that connection (a newer session may have replaced it).
        """
        async with self._lock:
            client = self._clients.get(user_id)
            if client is None:
                return False
            if connection_id is not None and client.connection_id != connection_id:
                return False
            del self._clients[user_id]
        logger.info(f"WebSocket client disconnected: {client.display_name} ({user_id})")
        return True

    async def touch_heartbeat(self, user_id: UUID, connection_id: UUID | None = None) -> bool:
        """Refresh liveness. With ``connection_id`` only the owning connection may refresh."""
        async with self._lock:
            client = self._clients.get(user_id)
            if client is None:
                return False
            if connection_id is not None and client.connection_id != connection_id:
                return False
            self._clients[user_id] = replace(client, last_heartbeat=self.clock())
        return True

    def count(self) -> int:
        return len(self._clients)

    def snapshot(self) -> list[ConnectedClient]:
        return list(self._clients.values())

    def get(self, user_id: UUID) -> ConnectedClient | None:
        return self._clients.get(user_id)

    async def sweep(self, timeout: timedelta | float) -> list[ConnectedClient]:
        """Evict every client whose last heartbeat is older than ``timeout``.

        Only the liveness sweeper calls this. The evicted clients' sockets
        are left open; their sessions end on the next failed write.
        """
        if not isinstance(timeout, timedelta):
            timeout = timedelta(seconds=timeout)
        now = self.clock()
        async with self._lock:
            stale = [
                client for client in self._clients.values()
                if now - client.last_heartbeat > timeout
            ]
            for client in stale:
                del self._clients[client.user_id]

        for client in stale:
            logger.warning(f"Removed inactive WebSocket client: {client.display_name} ({client.user_id})")
        return stale
