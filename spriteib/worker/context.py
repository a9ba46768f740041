from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from spriteib.bus.redis_bus import RedisBus
from spriteib.config import PostSettings
from spriteib.monitoring.metrics import Metrics
from spriteib.store.port import ContentStore


class Outcome(str, Enum):
    """How a handler finished when it did not raise."""

    OK = "ok"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class HandlerContext:
    """
    Resources handed to one handler invocation.

    Stores and settings are shared, read-only references. `bus` is a clone of
    the dispatcher's bus: its own handle over the shared connection pool.
    """

    primary: ContentStore
    listing: ContentStore
    settings: PostSettings
    bus: RedisBus
    metrics: Metrics
