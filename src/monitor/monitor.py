import asyncio
import threading
import time
from typing import Any

import structlog

from src.core.logging import Logger
from src.monitor.backoff import backoff_interval
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

logger: Logger = structlog.get_logger()


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class ConnectionMonitor:
    """
    Watches a reconnecting session for silence and asks it to reopen.

    Lifecycle:
        1. Create alongside the owning connection
        2. Call start() from the event loop to begin a monitoring epoch
        3. Owner reports record_connect/record_disconnect/record_ping
        4. Every backoff interval the poll task runs reconnect_if_stale()
        5. Call stop() to suppress further reopens

    The record_* calls only touch timestamps under a lock, so they are safe
    to invoke from any thread. start() and stop() belong to the loop thread.
    """

    __slots__ = (
        "name",
        "_connection",
        "_options",
        "_clock",
        "_lock",
        "_pinged_at",
        "_disconnected_at",
        "_started_at",
        "_stopped_at",
        "_reconnect_attempts",
        "_epoch",
        "_exhausted_logged",
        "_poll_task",
        "_stats",
    )

    def __init__(
        self,
        connection: Reopenable,
        options: ReconnectOptions | None = None,
        *,
        clock: Clock | None = None,
        name: str = "monitor",
    ) -> None:
        """
        Args:
            connection: Owner to call reopen() on when the session is stale
            options: Reconnection policy (defaults read from RECONNECT_* env)
            clock: Wall-clock milliseconds source, injectable for tests
            name: Label used in log lines and the poll task name
        """
        self.name = name
        self._connection = connection
        self._options = options if options is not None else ReconnectOptions()
        self._clock: Clock = clock or wall_clock_ms
        self._lock = threading.Lock()

        # Milliseconds since epoch, 0 = never happened
        self._pinged_at = 0
        self._disconnected_at = 0
        self._started_at = 0
        self._stopped_at = 0
        self._reconnect_attempts = 0

        self._epoch = 0
        self._exhausted_logged = False
        self._poll_task: asyncio.Task[None] | None = None
        self._stats = MonitorStats()

    @property
    def options(self) -> ReconnectOptions:
        return self._options

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._started_at != 0 and self._stopped_at == 0

    @property
    def interval(self) -> float:
        """Current backoff interval in seconds"""
        with self._lock:
            attempts = self._reconnect_attempts
        return backoff_interval(attempts, self._options)

    @property
    def is_stale(self) -> bool:
        with self._lock:
            return self._connection_is_stale(self._clock())

    @property
    def disconnected_recently(self) -> bool:
        with self._lock:
            return self._disconnected_within_window(self._clock())

    def snapshot(self) -> MonitorSnapshot:
        with self._lock:
            return MonitorSnapshot(
                pinged_at=self._pinged_at,
                disconnected_at=self._disconnected_at,
                started_at=self._started_at,
                stopped_at=self._stopped_at,
                reconnect_attempts=self._reconnect_attempts,
                epoch=self._epoch,
            )

    def record_connect(self) -> None:
        with self._lock:
            self._reconnect_attempts = 0
            self._exhausted_logged = False
            self._pinged_at = self._clock()
            self._disconnected_at = 0

    def record_disconnect(self) -> None:
        with self._lock:
            self._disconnected_at = self._clock()

    def record_ping(self) -> None:
        with self._lock:
            self._pinged_at = self._clock()

    def start(self) -> None:
        """
        Begin a new monitoring epoch.

        Resets the attempt counter and replaces any poll task from a previous
        epoch. Must be called while an asyncio event loop is running.
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            self._reconnect_attempts = 0
            self._exhausted_logged = False
            self._stopped_at = 0
            self._started_at = self._clock()
            self._epoch += 1
            epoch = self._epoch

        self._cancel_poll_task()
        self._poll_task = loop.create_task(
            self._poll_loop(epoch),
            name=f"monitor-{self.name}",
        )

        logger.debug(
            f"Monitor {self.name} started (epoch {epoch}, "
            f"first check in {self.interval:.1f}s)"
        )

    def stop(self) -> None:
        with self._lock:
            self._stopped_at = self._clock()

        self._cancel_poll_task()

        logger.debug(f"Monitor {self.name} stopped")

    async def close(self) -> None:
        """Stop monitoring and wait for the poll task to finish."""
        task = self._poll_task
        self.stop()

        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def reconnect_if_stale(self) -> ReconnectDecision:
        """
        Evaluate the reconnect policy once.

        Counts an attempt whenever the connection is stale and the cap has
        not been reached. Within the suppression window after a disconnect
        the attempt is counted but reopen() is skipped.
        """
        with self._lock:
            now = self._clock()

            if self._started_at == 0 or self._stopped_at != 0:
                return ReconnectDecision.STOPPED

            self._stats.polls += 1

            if not self._options.reconnection:
                return ReconnectDecision.DISABLED

            if not self._connection_is_stale(now):
                return ReconnectDecision.FRESH

            if self._reconnect_attempts >= self._options.reconnection_max_attempts:
                self._stats.attempts_exhausted += 1
                log_exhausted = not self._exhausted_logged
                self._exhausted_logged = True
                decision = ReconnectDecision.EXHAUSTED

            else:
                log_exhausted = False
                self._reconnect_attempts += 1

                if self._disconnected_within_window(now):
                    self._stats.reopens_suppressed += 1
                    decision = ReconnectDecision.SUPPRESSED
                else:
                    self._stats.reopens_issued += 1
                    decision = ReconnectDecision.REOPENED

            attempts = self._reconnect_attempts

        if log_exhausted:
            logger.warning(
                f"Monitor {self.name} gave up after {attempts} reconnect attempts"
            )

        elif decision is ReconnectDecision.SUPPRESSED:
            logger.debug(
                f"Monitor {self.name} skipping reopen, disconnect already in "
                f"progress (attempt {attempts})"
            )

        elif decision is ReconnectDecision.REOPENED:
            logger.info(
                f"Monitor {self.name} detected stale connection, reopening "
                f"(attempt {attempts}/{self._options.reconnection_max_attempts})"
            )
            self._reopen()

        return decision

    def get_stats(self) -> dict[str, Any]:
        snapshot = self.snapshot()

        return {
            "name": self.name,
            "running": snapshot.is_running,
            "epoch": snapshot.epoch,
            "reconnect_attempts": snapshot.reconnect_attempts,
            "max_attempts": self._options.reconnection_max_attempts,
            "interval_seconds": backoff_interval(
                snapshot.reconnect_attempts, self._options
            ),
            "is_stale": self.is_stale,
            "disconnected_recently": self.disconnected_recently,
            "polls": self._stats.polls,
            "reopens_issued": self._stats.reopens_issued,
            "reopens_suppressed": self._stats.reopens_suppressed,
            "attempts_exhausted": self._stats.attempts_exhausted,
            "reopen_errors": self._stats.reopen_errors,
        }

    async def _poll_loop(self, epoch: int) -> None:
        """Wait one backoff interval, check, repeat until superseded."""
        while True:
            try:
                await asyncio.sleep(self.interval)

                if epoch != self._epoch or not self.is_running:
                    break

                self.reconnect_if_stale()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Monitor {self.name} poll error: {e}", exc_info=True)

    def _reopen(self) -> None:
        # Never called with the lock held
        try:
            self._connection.reopen()
        except Exception as e:
            self._stats.reopen_errors += 1
            logger.error(
                f"Monitor {self.name} reopen request failed: {e}",
                exc_info=True,
            )

    def _cancel_poll_task(self) -> None:
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    def _connection_is_stale(self, now: int) -> bool:
        reference = self._pinged_at if self._pinged_at > 0 else self._started_at
        return self._seconds_since(reference, now) > STALE_THRESHOLD

    def _disconnected_within_window(self, now: int) -> bool:
        return (
            self._disconnected_at != 0
            and self._seconds_since(self._disconnected_at, now)
            < DISCONNECT_SUPPRESSION_WINDOW
        )

    @staticmethod
    def _seconds_since(timestamp: int, now: int) -> int:
        return (now - timestamp) // 1000
