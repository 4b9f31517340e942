"""Connection liveness monitoring."""

from src.monitor.backoff import backoff_interval
from src.monitor.monitor import ConnectionMonitor
from src.monitor.options import ReconnectOptions
from src.monitor.stats import MonitorStats
from src.monitor.types import (
    DISCONNECT_SUPPRESSION_WINDOW,
    STALE_THRESHOLD,
    Clock,
    MonitorSnapshot,
    ReconnectDecision,
    Reopenable,
)

__all__ = [
    "ConnectionMonitor",
    "ReconnectOptions",
    "MonitorStats",
    "MonitorSnapshot",
    "ReconnectDecision",
    "Reopenable",
    "Clock",
    "backoff_interval",
    "STALE_THRESHOLD",
    "DISCONNECT_SUPPRESSION_WINDOW",
]
