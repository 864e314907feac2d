"""Module for periodic realtime maintenance jobs.

Contains:
- start_scheduler: Initialize APScheduler with the realtime jobs
- sweep_inactive_clients: Job function evicting clients without heartbeat
- send_heartbeat: Job function broadcasting a server heartbeat
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import Settings
from services.realtime import RealtimeService

logger = logging.getLogger(__name__)


async def sweep_inactive_clients(realtime: RealtimeService, timeout_seconds: int) -> int:
    """Evict stale registry entries and drop channels nobody listens to.

    Evicted sockets are not closed here; their sessions end on the next
    failed write.
    """
    evicted = await realtime.registry.sweep(timeout_seconds)
    pruned = await realtime.hub.prune_channels()
    if evicted or pruned:
        logger.info(f"Realtime sweep: evicted {len(evicted)} clients, pruned {len(pruned)} channels")
    return len(evicted)


async def send_heartbeat(realtime: RealtimeService) -> None:
    """Broadcast a heartbeat so dead sockets fail their next write."""
    delivered = await realtime.send_heartbeat()
    logger.debug(f"Heartbeat sent to {delivered} clients")


def start_scheduler(realtime: RealtimeService, settings: Settings) -> AsyncIOScheduler:
    """Initialize and start the APScheduler. Must run inside the event loop."""
    scheduler = AsyncIOScheduler(timezone="UTC")

    # 1. Liveness sweep
    scheduler.add_job(
        sweep_inactive_clients,
        IntervalTrigger(seconds=settings.REALTIME_SWEEP_INTERVAL),
        args=[realtime, settings.REALTIME_HEARTBEAT_TIMEOUT],
        id="realtime_sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # 2. Server heartbeat
    scheduler.add_job(
        send_heartbeat,
        IntervalTrigger(seconds=settings.REALTIME_HEARTBEAT_INTERVAL),
        args=[realtime],
        id="realtime_heartbeat",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        f"📅 Realtime scheduler started (sweep every {settings.REALTIME_SWEEP_INTERVAL}s, "
        f"timeout {settings.REALTIME_HEARTBEAT_TIMEOUT}s)"
    )

    return scheduler
