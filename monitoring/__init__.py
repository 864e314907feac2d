"""IT Cook Monitoring Module"""
from .health import (
    RealtimeMetrics,
    format_uptime,
    get_health_status,
)

__all__ = [
    'RealtimeMetrics',
    'format_uptime',
    'get_health_status',
]
