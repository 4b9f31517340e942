"""Tests for connection statistics and the monitored WebSocket session."""

import asyncio
import time
from typing import Callable
from unittest.mock import AsyncMock, Mock, patch

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from src.connection import ConnectionStats, ConnectionStatus, WebsocketConnection
from src.monitor import ReconnectOptions, Reopenable

WS_URL = "wss://example.test/cable"


def closed_ok() -> ConnectionClosedOK:
    return ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)


class FakeConnect:
    """Stands in for websockets' connect(), handing out one mock socket."""

    def __init__(self, ws: AsyncMock) -> None:
        self.ws = ws
        self.calls = 0
        self.kwargs: dict = {}
        self.on_enter: Callable[[], None] | None = None

    def __call__(self, **kwargs) -> "FakeConnect":
        self.calls += 1
        self.kwargs = kwargs
        return self

    async def __aenter__(self) -> AsyncMock:
        if self.on_enter is not None:
            hook, self.on_enter = self.on_enter, None
            hook()
        return self.ws

    async def __aexit__(self, *exc_info) -> bool:
        return False


@pytest.fixture
def quiet_options() -> ReconnectOptions:
    # Monitor poll never fires within a test
    return ReconnectOptions(reconnection_delay=60.0, reconnection_delay_max=60.0)


@pytest.fixture
def mock_websocket() -> AsyncMock:
    ws = AsyncMock()
    ws.recv = AsyncMock()
    ws.close = AsyncMock()
    return ws


class TestConnectionStats:
    def test_uptime_calculation(self) -> None:
        # Arrange
        stats = ConnectionStats()
        initial_time = stats.created_at

        # Act
        with patch("time.monotonic", return_value=initial_time + 10.0):
            uptime = stats.uptime

        # Assert
        assert uptime == 10.0

    def test_silence_zero_before_first_message(self) -> None:
        stats = ConnectionStats()

        assert stats.silence == 0.0

    def test_silence_since_last_message(self) -> None:
        # Arrange
        stats = ConnectionStats()
        stats.last_message_ts = 100.0

        # Act
        with patch("time.monotonic", return_value=104.5):
            silence = stats.silence

        # Assert
        assert silence == 4.5


class TestWebsocketConnection:
    def test_initialization(self, quiet_options: ReconnectOptions) -> None:
        # Act
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)

        # Assert
        assert conn.connection_id == "conn-1"
        assert conn.status == ConnectionStatus.DISCONNECTED
        assert conn.monitor.name == "conn-1"
        assert conn.monitor.options is quiet_options
        assert isinstance(conn, Reopenable)

    def test_track_stats_updates_counters(
        self, quiet_options: ReconnectOptions
    ) -> None:
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)

        conn._track_stats(b'{"type":"ping"}')

        assert conn.stats.messages_received == 1
        assert conn.stats.bytes_received == 15
        assert 0 < conn.stats.last_message_ts <= time.monotonic()

    @pytest.mark.asyncio
    async def test_frames_count_as_pings(
        self,
        quiet_options: ReconnectOptions,
        mock_websocket: AsyncMock,
        clock,
        wait_until,
    ) -> None:
        # Arrange
        mock_websocket.recv.side_effect = [b"hello", b"world", closed_ok()]
        fake_connect = FakeConnect(mock_websocket)
        on_message = AsyncMock()
        conn = WebsocketConnection(
            "conn-1", WS_URL, on_message=on_message, options=quiet_options, clock=clock
        )

        with patch("src.connection.websocket.connect", fake_connect):
            # Act
            await conn.start()
            await wait_until(lambda: conn.stats.messages_received == 2)
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)

            # Assert
            assert fake_connect.kwargs["uri"] == WS_URL
            assert on_message.await_count == 2
            on_message.assert_any_await("conn-1", b"hello")
            assert conn.stats.bytes_received == 10

            snapshot = conn.monitor.snapshot()
            assert snapshot.pinged_at == clock.now
            assert snapshot.disconnected_at == clock.now
            assert conn.monitor.is_running is True

            await conn.stop()

        assert conn.status == ConnectionStatus.CLOSED
        assert conn.monitor.is_running is False

    @pytest.mark.asyncio
    async def test_stays_down_until_reopen(
        self,
        quiet_options: ReconnectOptions,
        mock_websocket: AsyncMock,
        wait_until,
    ) -> None:
        # Arrange
        mock_websocket.recv.side_effect = [b"a", closed_ok(), b"b", closed_ok()]
        fake_connect = FakeConnect(mock_websocket)
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)

        with patch("src.connection.websocket.connect", fake_connect):
            await conn.start()
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)
            assert fake_connect.calls == 1

            # Act
            conn.reopen()
            await wait_until(lambda: conn.stats.messages_received == 2)
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)

            # Assert
            assert fake_connect.calls == 2
            assert conn.stats.reconnect_count == 1
            assert conn.stats.reopen_requests == 1

            await conn.stop()

    @pytest.mark.asyncio
    async def test_reopen_during_dial_does_not_skip_next_decision(
        self,
        quiet_options: ReconnectOptions,
        mock_websocket: AsyncMock,
        wait_until,
    ) -> None:
        # Arrange - reopen() lands while connect() is still in flight
        mock_websocket.recv.side_effect = [b"a", closed_ok(), b"b", closed_ok()]
        fake_connect = FakeConnect(mock_websocket)
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)
        fake_connect.on_enter = conn.reopen

        with patch("src.connection.websocket.connect", fake_connect):
            # Act
            await conn.start()
            await wait_until(lambda: conn.stats.messages_received == 1)
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)
            await asyncio.sleep(0.05)

            # Assert - the drop waits for a fresh reopen instead of redialling
            assert conn.stats.reopen_requests == 1
            assert fake_connect.calls == 1
            assert conn.stats.reconnect_count == 0
            assert conn.status == ConnectionStatus.DISCONNECTED

            await conn.stop()

    @pytest.mark.asyncio
    async def test_connect_error_records_disconnect(
        self, quiet_options: ReconnectOptions, clock, wait_until
    ) -> None:
        # Arrange
        failing_connect = Mock(side_effect=OSError("connection refused"))
        conn = WebsocketConnection(
            "conn-1", WS_URL, options=quiet_options, clock=clock
        )

        with patch("src.connection.websocket.connect", failing_connect):
            # Act
            await conn.start()
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)

            # Assert
            assert conn.monitor.snapshot().disconnected_at == clock.now
            assert conn.monitor.disconnected_recently is True

            await conn.stop()

    @pytest.mark.asyncio
    async def test_abnormal_close_records_disconnect(
        self,
        quiet_options: ReconnectOptions,
        mock_websocket: AsyncMock,
        wait_until,
    ) -> None:
        mock_websocket.recv.side_effect = ConnectionClosedError(
            Close(1011, "internal error"), None
        )
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)

        with patch("src.connection.websocket.connect", FakeConnect(mock_websocket)):
            await conn.start()
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)

            assert conn.monitor.snapshot().disconnected_at != 0

            await conn.stop()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_drop_connection(
        self,
        quiet_options: ReconnectOptions,
        mock_websocket: AsyncMock,
        wait_until,
    ) -> None:
        mock_websocket.recv.side_effect = [b"one", b"two", closed_ok()]
        on_message = AsyncMock(side_effect=ValueError("bad payload"))
        conn = WebsocketConnection(
            "conn-1", WS_URL, on_message=on_message, options=quiet_options
        )

        with patch("src.connection.websocket.connect", FakeConnect(mock_websocket)):
            await conn.start()
            await wait_until(lambda: conn.status == ConnectionStatus.DISCONNECTED)

            assert conn.stats.messages_received == 2
            assert on_message.await_count == 2

            await conn.stop()

    @pytest.mark.asyncio
    async def test_reopen_closes_live_socket(
        self, quiet_options: ReconnectOptions, mock_websocket: AsyncMock, wait_until
    ) -> None:
        # Arrange
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)
        conn._ws = mock_websocket

        # Act
        conn.reopen()
        await wait_until(lambda: mock_websocket.close.await_count == 1)

        # Assert
        assert conn.stats.reopen_requests == 1
        assert conn._reopen_event.is_set()

    @pytest.mark.asyncio
    async def test_reopen_ignored_after_stop(
        self, quiet_options: ReconnectOptions, mock_websocket: AsyncMock
    ) -> None:
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)
        await conn.stop()
        conn._ws = mock_websocket

        conn.reopen()

        assert conn.stats.reopen_requests == 0
        mock_websocket.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_is_healthy(
        self, quiet_options: ReconnectOptions, clock
    ) -> None:
        # Arrange
        conn = WebsocketConnection(
            "conn-1", WS_URL, options=quiet_options, clock=clock
        )
        conn._status = ConnectionStatus.CONNECTED
        conn.monitor.record_connect()

        # Act & Assert
        assert conn.is_healthy is True

        clock.advance(7)
        assert conn.is_healthy is False

    @pytest.mark.asyncio
    async def test_get_stats(self, quiet_options: ReconnectOptions) -> None:
        conn = WebsocketConnection("conn-1", WS_URL, options=quiet_options)

        stats = conn.get_stats()

        assert stats["connection_id"] == "conn-1"
        assert stats["status"] == "DISCONNECTED"
        assert stats["messages_received"] == 0
        assert stats["monitor"]["name"] == "conn-1"
        assert stats["monitor"]["running"] is False
