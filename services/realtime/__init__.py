"""Realtime WebSocket notifications."""
from config import Settings
from monitoring.health import RealtimeMetrics
from services.realtime.broadcast import (
    BroadcastHub,
    RealtimeError,
    Subscription,
    TopicClosed,
    post_channel,
    user_channel,
)
from services.realtime.events import (
    Event,
    ExpiringItem,
    NotificationLevel,
    decode_event,
    parse_client_message,
)
from services.realtime.registry import ConnectedClient, ConnectionRegistry
from services.realtime.service import RealtimeService, RealtimeStats
from services.realtime.session import ConnectionSession, SessionState


def create_realtime_service(settings: Settings) -> RealtimeService:
    """Build the hub, registry and façade for one process."""
    hub = BroadcastHub(
        global_capacity=settings.REALTIME_GLOBAL_CAPACITY,
        channel_capacity=settings.REALTIME_CHANNEL_CAPACITY,
        targeted_delivery=settings.REALTIME_TARGETED_DELIVERY,
        metrics=RealtimeMetrics(),
    )
    registry = ConnectionRegistry(hub)
    return RealtimeService(hub, registry)


__all__ = [
    'BroadcastHub',
    'ConnectedClient',
    'ConnectionRegistry',
    'ConnectionSession',
    'Event',
    'ExpiringItem',
    'NotificationLevel',
    'RealtimeError',
    'RealtimeService',
    'RealtimeStats',
    'SessionState',
    'Subscription',
    'TopicClosed',
    'create_realtime_service',
    'decode_event',
    'parse_client_message',
    'post_channel',
    'user_channel',
]
