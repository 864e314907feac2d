"""Realtime (WebSocket) router for IT Cook API."""
import logging

from fastapi import APIRouter, WebSocket, WebSocketException, status

from api.auth import CurrentIdentity, identity_from_websocket
from api.dependencies import Realtime
from api.schemas import ConnectedClientRead, RealtimeStatsResponse
from config import settings
from services.realtime import ConnectionSession

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Upgrade to a realtime session. Token via ``?token=`` or Authorization header."""
    identity = identity_from_websocket(websocket)
    if identity is None:
        logger.warning(f"Rejected WebSocket upgrade from {websocket.client}: missing or invalid token")
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication required")

    realtime = websocket.app.state.realtime
    session = ConnectionSession(
        websocket,
        user_id=identity.user_id,
        display_name=identity.display_name,
        hub=realtime.hub,
        registry=realtime.registry,
        max_channels=settings.REALTIME_MAX_CHANNELS_PER_SESSION,
        max_channel_name_length=settings.REALTIME_MAX_CHANNEL_NAME_LENGTH,
    )
    await session.run()


@router.get("/stats", response_model=RealtimeStatsResponse)
async def get_realtime_stats(identity: CurrentIdentity, realtime: Realtime):
    """WebSocket connection statistics."""
    stats = realtime.get_stats()
    return RealtimeStatsResponse(
        connected_clients=stats.connected_clients,
        uptime=stats.uptime,
        events_sent_today=stats.events_sent_today,
    )


@router.get("/clients", response_model=list[ConnectedClientRead])
async def list_connected_clients(identity: CurrentIdentity, realtime: Realtime):
    """Currently connected clients."""
    return [ConnectedClientRead.model_validate(client) for client in realtime.registry.snapshot()]
