"""
IT Cook Backend - Health Monitoring Module
Counters behind the realtime stats and health endpoints
"""
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class RealtimeMetrics:
    """Realtime event statistics"""
    events_total: int = 0
    events_today: int = 0
    day: date = field(default_factory=_utc_today)
    start_time: float = field(default_factory=time.time)
    last_event_time: Optional[float] = None
    today: Callable[[], date] = field(default=_utc_today, repr=False)

    def record_event(self):
        self._roll_day()
        self.events_total += 1
        self.events_today += 1
        self.last_event_time = time.time()

    def _roll_day(self):
        current = self.today()
        if current != self.day:
            self.day = current
            self.events_today = 0

    def get_events_today(self) -> int:
        self._roll_day()
        return self.events_today

    def get_uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def get_uptime(self) -> str:
        return format_uptime(self.get_uptime_seconds())


def format_uptime(seconds: float) -> str:
    """Human readable uptime: '2d 03:04:05' or '03:04:05'"""
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    clock = f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{days}d {clock}" if days else clock


def get_health_status(connected_clients: int, metrics: RealtimeMetrics) -> Dict[str, Any]:
    """Snapshot for the /health endpoint"""
    return {
        'status': 'healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'uptime_seconds': round(metrics.get_uptime_seconds(), 1),
        'realtime': {
            'connected_clients': connected_clients,
            'events_total': metrics.events_total,
            'events_today': metrics.get_events_today(),
        },
    }
