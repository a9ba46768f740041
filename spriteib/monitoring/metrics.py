"""
Prometheus Metrics

Defines and exports metrics for monitoring the post-dispatch worker.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram
import structlog

logger = structlog.get_logger()

# Singleton metrics instance
_metrics: "Metrics | None" = None


class Metrics:
    """
    Prometheus metrics for the worker.

    Tracks:
    - Commands received and dropped
    - Handler outcomes and latency
    - Post rejections by violation code
    - Orphaned primary documents left by a failed listing write
    - Cascade publishes that failed after content was saved
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize Prometheus metrics."""
        registry = registry if registry is not None else REGISTRY

        self.commands_received_total = Counter(
            "spriteib_commands_received_total",
            "Total messages received from the bus",
            ["channel"],
            registry=registry,
        )

        self.command_decode_failures_total = Counter(
            "spriteib_command_decode_failures_total",
            "Total messages dropped because they could not be decoded",
            ["channel"],
            registry=registry,
        )

        self.handler_outcomes_total = Counter(
            "spriteib_handler_outcomes_total",
            "Total handler executions by outcome",
            ["command", "outcome"],  # outcome: ok | rejected | <DispatchErrorKind> | unhandled
            registry=registry,
        )

        self.handler_duration_seconds = Histogram(
            "spriteib_handler_duration_seconds",
            "Handler execution time in seconds",
            ["command"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.post_rejections_total = Counter(
            "spriteib_post_rejections_total",
            "Total violation codes reported for rejected posts",
            ["command", "violation"],
            registry=registry,
        )

        self.orphaned_primary_documents_total = Counter(
            "spriteib_orphaned_primary_documents_total",
            "Primary documents saved without a listing copy",
            ["kind"],  # kind: thread | comment
            registry=registry,
        )

        self.cascade_publish_failures_total = Counter(
            "spriteib_cascade_publish_failures_total",
            "Cascade commands that could not be published after a successful write",
            ["channel"],
            registry=registry,
        )

        self.threads_archived_total = Counter(
            "spriteib_threads_archived_total",
            "Threads archived by pruning",
            ["board_code"],
            registry=registry,
        )

        self.feeds_published_total = Counter(
            "spriteib_feeds_published_total",
            "Feeds regenerated",
            ["board_code"],
            registry=registry,
        )

        logger.debug("Prometheus metrics initialized")

    def track_command_received(self, channel: str) -> None:
        self.commands_received_total.labels(channel=channel).inc()

    def track_decode_failure(self, channel: str) -> None:
        self.command_decode_failures_total.labels(channel=channel).inc()

    def track_handler(self, command: str, outcome: str, duration: float) -> None:
        """Track one completed handler execution."""
        self.handler_outcomes_total.labels(command=command, outcome=outcome).inc()
        self.handler_duration_seconds.labels(command=command).observe(duration)

    def track_rejection(self, command: str, violations) -> None:
        for violation in violations:
            self.post_rejections_total.labels(command=command, violation=violation.value).inc()

    def track_orphaned_primary(self, kind: str) -> None:
        self.orphaned_primary_documents_total.labels(kind=kind).inc()

    def track_cascade_failure(self, channel: str) -> None:
        self.cascade_publish_failures_total.labels(channel=channel).inc()

    def track_threads_archived(self, board_code: str, count: int) -> None:
        if count:
            self.threads_archived_total.labels(board_code=board_code).inc(count)

    def track_feed_published(self, board_code: str) -> None:
        self.feeds_published_total.labels(board_code=board_code).inc()


def get_metrics() -> Metrics:
    """Get or create the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
