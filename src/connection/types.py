from enum import IntEnum, auto
from typing import Awaitable, Callable


class ConnectionStatus(IntEnum):
    """Connection Lifecycle status"""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSED = auto()  # Permanently closed


# (connection_id, raw frame) -> Awaitable[None]
MessageCallback = Callable[[str, bytes], Awaitable[None]]
