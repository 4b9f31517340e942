import time
from dataclasses import dataclass, field


@dataclass(slots=True)
class ConnectionStats:
    """Connection health and traffic counters"""

    messages_received: int = 0
    bytes_received: int = 0
    reconnect_count: int = 0
    reopen_requests: int = 0
    last_message_ts: float = 0.0
    created_at: float = field(default_factory=time.monotonic)

    @property
    def uptime(self) -> float:
        """Seconds since creation"""
        return time.monotonic() - self.created_at

    @property
    def silence(self) -> float:
        """Seconds since the last inbound frame, 0.0 if none yet"""
        if self.last_message_ts > 0:
            return time.monotonic() - self.last_message_ts

        return 0.0
