"""Prometheus metrics collector for connection liveness stats.

Counters are populated from the cumulative totals kept by MonitorStats and
ConnectionStats on every scrape, so they are set directly rather than
incremented. Rates should be derived in PromQL, e.g.

- Reopens per minute: rate(wsl_monitor_reopens_total{outcome="issued"}[1m]) * 60
"""

from collections.abc import Sequence
from typing import Any, Protocol

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)


class StatsSource(Protocol):
    def get_stats(self) -> dict[str, Any]: ...


class MetricsCollector:
    """
    Exposes monitored connections as Prometheus metrics.

    Generates fresh metrics on each collection by calling get_stats() on
    every source and transforming the results into Prometheus format.
    """

    def __init__(self, sources: Sequence[StatsSource]) -> None:
        """Initialize metrics collector.

        Args:
            sources: Connections (or bare monitors) to collect stats from
        """
        self._sources = sources

    def collect_metrics(self) -> bytes:
        """
        Collect current stats and return Prometheus text format.

        Returns:
            Prometheus text exposition format bytes
        """
        registry = CollectorRegistry()

        stats = [source.get_stats() for source in self._sources]

        self._collect_connection_metrics(registry, stats)
        self._collect_monitor_metrics(registry, stats)

        return generate_latest(registry)

    def _collect_connection_metrics(
        self, registry: CollectorRegistry, stats: list[dict[str, Any]]
    ) -> None:
        """Collect per-connection traffic metrics with connection_id labels."""
        connection_stats = [s for s in stats if "connection_id" in s]
        if not connection_stats:
            return

        messages_received = Counter(
            "wsl_connection_messages_received_total",
            "Total frames received per connection",
            ["connection_id"],
            registry=registry,
        )

        bytes_received = Counter(
            "wsl_connection_bytes_received_total",
            "Total bytes received per connection",
            ["connection_id"],
            registry=registry,
        )

        reconnects = Counter(
            "wsl_connection_reconnects_total",
            "Total reconnections per connection",
            ["connection_id"],
            registry=registry,
        )

        healthy = Gauge(
            "wsl_connection_healthy",
            "Connection health status (1=healthy, 0=unhealthy)",
            ["connection_id", "status"],
            registry=registry,
        )

        for conn in connection_stats:
            conn_id = conn["connection_id"]

            messages_received.labels(connection_id=conn_id)._value.set(
                conn.get("messages_received", 0)
            )
            bytes_received.labels(connection_id=conn_id)._value.set(
                conn.get("bytes_received", 0)
            )
            reconnects.labels(connection_id=conn_id)._value.set(
                conn.get("reconnect_count", 0)
            )

            healthy.labels(
                connection_id=conn_id, status=conn.get("status", "UNKNOWN")
            ).set(1 if conn.get("is_healthy") else 0)

    def _collect_monitor_metrics(
        self, registry: CollectorRegistry, stats: list[dict[str, Any]]
    ) -> None:
        """Collect liveness monitor state, labelled by monitor name."""
        monitor_stats = [s.get("monitor", s) for s in stats]
        monitor_stats = [m for m in monitor_stats if "reconnect_attempts" in m]
        if not monitor_stats:
            return

        running = Gauge(
            "wsl_monitor_running",
            "Whether the monitor is running (1) or stopped (0)",
            ["connection_id"],
            registry=registry,
        )

        attempts = Gauge(
            "wsl_monitor_reconnect_attempts",
            "Reconnect attempts in the current episode",
            ["connection_id"],
            registry=registry,
        )

        stale = Gauge(
            "wsl_monitor_stale",
            "Whether the connection is currently stale (1) or fresh (0)",
            ["connection_id"],
            registry=registry,
        )

        interval = Gauge(
            "wsl_monitor_interval_seconds",
            "Current backoff interval between reconnect checks",
            ["connection_id"],
            registry=registry,
        )

        polls = Counter(
            "wsl_monitor_polls_total",
            "Reconnect checks evaluated while running",
            ["connection_id"],
            registry=registry,
        )

        reopens = Counter(
            "wsl_monitor_reopens_total",
            "Reconnect attempts by outcome",
            ["connection_id", "outcome"],
            registry=registry,
        )

        for monitor in monitor_stats:
            name = monitor.get("name", "unknown")

            running.labels(connection_id=name).set(1 if monitor.get("running") else 0)
            attempts.labels(connection_id=name).set(monitor["reconnect_attempts"])
            stale.labels(connection_id=name).set(1 if monitor.get("is_stale") else 0)
            interval.labels(connection_id=name).set(
                monitor.get("interval_seconds", 0.0)
            )
            polls.labels(connection_id=name)._value.set(monitor.get("polls", 0))

            for outcome, key in (
                ("issued", "reopens_issued"),
                ("suppressed", "reopens_suppressed"),
                ("exhausted", "attempts_exhausted"),
                ("failed", "reopen_errors"),
            ):
                reopens.labels(connection_id=name, outcome=outcome)._value.set(
                    monitor.get(key, 0)
                )
