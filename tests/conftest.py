"""
Test Configuration and Fixtures

Shared fixtures for the worker test suite: in-memory Redis and CouchDB fakes,
post limits, and a handler context wired to them.
"""

import os

import pytest
from prometheus_client import CollectorRegistry

# Required settings, set before anything reads the environment.
#
# Use setdefault so CI can point these at real services.
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/1")
os.environ.setdefault("COUCH_URL", "http://localhost:5984")
os.environ.setdefault("COUCH_USERNAME", "admin")
os.environ.setdefault("COUCH_PASSWORD", "admin")
os.environ.setdefault("COUCH_DB", "spriteib_test")
os.environ.setdefault("COUCH_LISTING_DB", "spriteib_listing_test")
os.environ.setdefault("MAX_POST_LENGTH_THREAD", "10")
os.environ.setdefault("MAX_POST_LENGTH_COMMENT", "10")
os.environ.setdefault("MAX_FILE_SIZE", "1048576")
os.environ.setdefault("MAX_THREAD_COMMENTS", "3")
os.environ.setdefault("LOG_LEVEL", "WARNING")


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (real Redis/CouchDB)")


def pytest_collection_modifyitems(config, items):
    """
    Auto-assign tier markers so we can run `pytest -m unit`.

    Convention:
    - tests/integration/** => integration
    - everything else      => unit
    """
    for item in items:
        path = str(getattr(item, "fspath", ""))
        if item.get_closest_marker("integration") or item.get_closest_marker("unit"):
            continue
        if "/tests/integration/" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def post_settings():
    """Small limits so tests can hit every boundary."""
    from spriteib.config import PostSettings

    return PostSettings(
        thread_comment_length=10,
        comment_comment_length=10,
        file_size=1_048_576,
        thread_replies=3,
        boards=("g", "b"),
        max_active_threads=2,
        feed_max_entries=2,
        feed_base_url="https://sprite.test",
    )


# =============================================================================
# BUS AND STORES
# =============================================================================


@pytest.fixture
def fake_redis():
    from tests.support.redis import FakeRedis

    return FakeRedis()


@pytest.fixture
def bus(fake_redis):
    from spriteib.bus.redis_bus import RedisBus

    return RedisBus("redis://localhost:6379/1", client=fake_redis)


@pytest.fixture
def primary():
    from tests.support.content_store import primary_store

    return primary_store()


@pytest.fixture
def listing():
    from tests.support.content_store import listing_store

    return listing_store()


@pytest.fixture
def metrics_registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry):
    from spriteib.monitoring.metrics import Metrics

    return Metrics(registry=metrics_registry)


@pytest.fixture
def ctx(primary, listing, post_settings, bus, metrics):
    from spriteib.worker.context import HandlerContext

    return HandlerContext(
        primary=primary,
        listing=listing,
        settings=post_settings,
        bus=bus,
        metrics=metrics,
    )
