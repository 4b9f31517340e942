"""Reconnecting WebSocket session driven by a ConnectionMonitor."""

from src.connection.stats import ConnectionStats
from src.connection.types import ConnectionStatus, MessageCallback
from src.connection.websocket import WebsocketConnection

__all__ = [
    "WebsocketConnection",
    "ConnectionStats",
    "ConnectionStatus",
    "MessageCallback",
]
