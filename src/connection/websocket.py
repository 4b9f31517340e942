import asyncio
import time
from typing import Any

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedOK

from src.connection.stats import ConnectionStats
from src.connection.types import ConnectionStatus, MessageCallback
from src.core.logging import Logger
from src.monitor import ConnectionMonitor, ReconnectOptions
from src.monitor.types import Clock

PING_INTERVAL = 10.0
PING_TIMEOUT = 30.0
MAX_MESSAGE_SIZE = 10 * 1024 * 1024  # 10MB max message

logger: Logger = structlog.get_logger()


class WebsocketConnection:
    """
    Single reconnecting Websocket session supervised by a ConnectionMonitor

    Lifecycle:
        1. Create with a URL and optional message callback
        2. Call start() to dial and begin monitoring
        3. Every inbound frame counts as a liveness ping
        4. After a drop the session stays down until the monitor calls reopen()
           (no retry of its own; a reopen requested mid-dial is discarded)
        5. Call stop() for graceful shutdown
    """

    __slots__ = (
        "connection_id",
        "url",
        "on_message",
        "monitor",
        "_ws",
        "_status",
        "_stats",
        "_stop_event",
        "_reopen_event",
        "_receive_task",
        "_close_tasks",
    )

    def __init__(
        self,
        connection_id: str,
        url: str,
        on_message: MessageCallback | None = None,
        options: ReconnectOptions | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.connection_id = connection_id
        self.url = url
        self.on_message = on_message
        self.monitor = ConnectionMonitor(
            self,
            options,
            clock=clock,
            name=connection_id,
        )

        self._ws: ClientConnection | None = None
        self._status: ConnectionStatus = ConnectionStatus.DISCONNECTED
        self._stats: ConnectionStats = ConnectionStats()
        self._stop_event: asyncio.Event = asyncio.Event()
        self._reopen_event: asyncio.Event = asyncio.Event()
        self._receive_task: asyncio.Task[None] | None = None
        self._close_tasks: set[asyncio.Task] = set()

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    @property
    def is_healthy(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED and not self.monitor.is_stale

    def reopen(self) -> None:
        """Drop the current socket (if any) so the connection loop dials again"""
        if self._status == ConnectionStatus.CLOSED:
            return

        self._stats.reopen_requests += 1
        self._reopen_event.set()

        ws = self._ws
        if ws is None:
            return

        task = asyncio.get_running_loop().create_task(
            ws.close(),
            name=f"ws-{self.connection_id}-reopen",
        )
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)

    async def start(self) -> None:
        """Start connection loop and liveness monitoring"""
        if self._status not in (ConnectionStatus.DISCONNECTED, ConnectionStatus.CLOSED):
            return

        self._stop_event.clear()
        self._reopen_event.clear()
        self._status = ConnectionStatus.CONNECTING

        self._receive_task = asyncio.create_task(
            self._connection_loop(),
            name=f"ws-{self.connection_id}-recv",
        )
        self.monitor.start()

    async def stop(self) -> None:
        await self.monitor.close()
        self._status = ConnectionStatus.CLOSED
        self._stop_event.set()

        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        if self._ws:
            await self._ws.close()
            self._ws = None

    def get_stats(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "status": self._status.name,
            "is_healthy": self.is_healthy,
            "age_seconds": self._stats.uptime,
            "silence_seconds": self._stats.silence,
            "messages_received": self._stats.messages_received,
            "bytes_received": self._stats.bytes_received,
            "reconnect_count": self._stats.reconnect_count,
            "reopen_requests": self._stats.reopen_requests,
            "monitor": self.monitor.get_stats(),
        }

    async def _connection_loop(self) -> None:
        """Dial, run until the socket drops, then wait for the monitor"""
        while not self._stop_event.is_set():
            self._reopen_event.clear()

            try:
                await self._connect_and_run()

            except asyncio.CancelledError:
                break

            except Exception as e:
                logger.warning(f"Connection {self.connection_id} error: {e}")

            if self._stop_event.is_set() or self._status == ConnectionStatus.CLOSED:
                break

            self._status = ConnectionStatus.DISCONNECTED
            self.monitor.record_disconnect()

            logger.info(
                f"Connection {self.connection_id} down, waiting for reopen "
                f"(next check in {self.monitor.interval:.1f}s)"
            )

            try:
                await self._reopen_event.wait()
            except asyncio.CancelledError:
                break

            self._stats.reconnect_count += 1

        self._status = ConnectionStatus.CLOSED

    async def _connect_and_run(self) -> None:
        """Establish connection and run message loop"""
        self._status = ConnectionStatus.CONNECTING

        async with connect(
            uri=self.url,
            ping_interval=PING_INTERVAL,
            ping_timeout=PING_TIMEOUT,
            max_size=MAX_MESSAGE_SIZE,
        ) as ws:
            self._ws = ws
            self._status = ConnectionStatus.CONNECTED
            self.monitor.record_connect()
            # A reopen requested mid-dial is satisfied by this connect
            self._reopen_event.clear()

            logger.debug(f"Connection {self.connection_id} established to {self.url}")

            try:
                await self._receive_messages(ws)
            finally:
                self._ws = None

    async def _receive_messages(self, ws: ClientConnection) -> None:
        try:
            while not self._stop_event.is_set():
                message = await ws.recv(decode=False)

                self._track_stats(message)
                self.monitor.record_ping()

                if self.on_message is None:
                    continue

                try:
                    await self.on_message(self.connection_id, message)
                except Exception as e:
                    logger.exception(f"Message callback error {e}")

        except ConnectionClosedOK:
            return

    def _track_stats(self, message: bytes) -> None:
        self._stats.last_message_ts = time.monotonic()
        self._stats.messages_received += 1
        self._stats.bytes_received += len(message)
