from unittest.mock import patch

import pytest

from spriteib.monitoring.prometheus_server import maybe_start_prometheus_http_server
from spriteib.posts.status import PostStatus

pytestmark = pytest.mark.unit


def test_track_handler_records_outcome_and_duration(metrics, metrics_registry):
    metrics.track_handler("NewThread", "ok", 0.02)

    assert metrics_registry.get_sample_value(
        "spriteib_handler_outcomes_total", {"command": "NewThread", "outcome": "ok"}
    ) == 1.0
    assert metrics_registry.get_sample_value(
        "spriteib_handler_duration_seconds_count", {"command": "NewThread"}
    ) == 1.0


def test_track_rejection_counts_each_violation(metrics, metrics_registry):
    metrics.track_rejection("NewComment", {PostStatus.LARGE_COMMENT, PostStatus.BANNED_WORD})

    for violation in ("LargeComment", "BannedWord"):
        assert metrics_registry.get_sample_value(
            "spriteib_post_rejections_total", {"command": "NewComment", "violation": violation}
        ) == 1.0


def test_zero_archived_threads_are_not_recorded(metrics, metrics_registry):
    metrics.track_threads_archived("g", 0)

    assert metrics_registry.get_sample_value("spriteib_threads_archived_total", {"board_code": "g"}) is None


def test_metrics_server_disabled_without_port():
    with patch("spriteib.monitoring.prometheus_server.start_http_server") as start:
        assert not maybe_start_prometheus_http_server(component="worker", port=None)
        assert not maybe_start_prometheus_http_server(component="worker", port=70000)

    start.assert_not_called()
