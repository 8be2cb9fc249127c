"""Performance monitoring utilities using Prometheus metrics."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Gauge, Histogram


command_count = Counter(
    "atlas_bot_commands_total",
    "Inbound interactions handled",
    labelnames=("kind", "name", "outcome"),
)
command_duration = Histogram(
    "atlas_bot_command_duration_seconds",
    "Interaction handling duration",
    labelnames=("kind",),
)
handle_feed_notifications = Counter(
    "atlas_handle_feed_notifications_total",
    "New-account notifications by delivery result",
    labelnames=("result",),
)
handle_feed_failures = Counter(
    "atlas_handle_feed_failures_total",
    "Handle feed query failures",
    labelnames=("transient",),
)
handle_feed_backoff = Gauge(
    "atlas_handle_feed_backoff_seconds",
    "Current handle feed backoff delay",
)
audit_entries = Counter(
    "atlas_audit_entries_total",
    "Audit log entries by result",
    labelnames=("result",),
)


class PerformanceMonitor:
    def __init__(self) -> None:
        self.metrics = {
            "command_count": command_count,
            "command_duration": command_duration,
            "handle_feed_notifications": handle_feed_notifications,
            "handle_feed_failures": handle_feed_failures,
            "handle_feed_backoff": handle_feed_backoff,
            "audit_entries": audit_entries,
        }

    @contextmanager
    def track_interaction(self, kind: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            command_duration.labels(kind=kind).observe(time.perf_counter() - start)

    def record_interaction(self, kind: str, name: str, outcome: str) -> None:
        command_count.labels(kind=kind, name=name, outcome=outcome).inc()

    def record_notification(self, delivered: bool) -> None:
        handle_feed_notifications.labels(result="sent" if delivered else "failed").inc()

    def record_feed_failure(self, transient: bool, backoff_seconds: float) -> None:
        handle_feed_failures.labels(transient=str(transient).lower()).inc()
        handle_feed_backoff.set(backoff_seconds)

    def record_feed_recovered(self) -> None:
        handle_feed_backoff.set(0)

    def record_audit(self, result: str) -> None:
        audit_entries.labels(result=result).inc()


monitor = PerformanceMonitor()
