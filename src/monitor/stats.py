import time
from dataclasses import dataclass, field


@dataclass(slots=True)
class MonitorStats:
    """Counters describing what the monitor has decided so far"""

    polls: int = 0
    reopens_issued: int = 0
    reopens_suppressed: int = 0
    attempts_exhausted: int = 0
    reopen_errors: int = 0
    created_at: float = field(default_factory=time.monotonic)

    @property
    def uptime(self) -> float:
        """Seconds since creation"""
        return time.monotonic() - self.created_at

    @property
    def total_attempts(self) -> int:
        """Attempts counted, whether or not a reopen was issued"""
        return self.reopens_issued + self.reopens_suppressed
