"""Type definitions for connection liveness monitoring."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class Reopenable(Protocol):
    """Anything the monitor can ask to re-establish its session."""

    def reopen(self) -> None: ...


# Returns wall-clock milliseconds since the epoch
Clock = Callable[[], int]


class ReconnectDecision(StrEnum):
    """Outcome of a single reconnect-if-stale evaluation."""

    STOPPED = "stopped"
    DISABLED = "disabled"
    FRESH = "fresh"
    EXHAUSTED = "exhausted"
    SUPPRESSED = "suppressed"
    REOPENED = "reopened"


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    """Point-in-time copy of monitor state. Timestamps in ms, 0 means unset."""

    pinged_at: int
    disconnected_at: int
    started_at: int
    stopped_at: int
    reconnect_attempts: int
    epoch: int

    @property
    def is_running(self) -> bool:
        return self.started_at != 0 and self.stopped_at == 0


# Configuration constants
STALE_THRESHOLD = 6  # Seconds of silence before a connection counts as stale
DISCONNECT_SUPPRESSION_WINDOW = 6  # Seconds after a disconnect with no reopen
