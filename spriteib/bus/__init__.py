"""
Bus Module

Redis Pub/Sub for commands and Redis keys for request status.
"""

from spriteib.bus.redis_bus import BusMessage, RedisBus, Subscription

__all__ = [
    "BusMessage",
    "RedisBus",
    "Subscription",
]
