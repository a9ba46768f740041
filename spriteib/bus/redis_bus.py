"""
Redis Bus

Pub/Sub transport for commands plus the key/value store used for request
status, sequence counters and generated feeds.

Redis Pub/Sub is fire-and-forget: a message published while no worker is
subscribed is dropped, and nothing is acknowledged or replayed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import NamedTuple

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spriteib.errors import BusClosedError, BusConnectionError, BusError

logger = structlog.get_logger()

KEY_PREFIX = "spriteib"


def thread_sequence_key(board_code: str) -> str:
    return f"{KEY_PREFIX}:seq:{board_code}"


def reply_sequence_key(board_code: str, thread_id: str) -> str:
    return f"{KEY_PREFIX}:seq:{board_code}:{thread_id}"


def cooldown_key(remote_ip: str) -> str:
    return f"{KEY_PREFIX}:cooldown:{remote_ip}"


def feed_key(board_code: str) -> str:
    return f"{KEY_PREFIX}:feed:{board_code}"


class BusMessage(NamedTuple):
    """A raw message received from a subscribed channel."""

    channel: str
    payload: str


class Subscription:
    """
    Receive side of the bus, bound to a dedicated Pub/Sub connection.

    Iterating yields messages until the transport closes; it cannot be
    restarted without subscribing again.
    """

    def __init__(self, pubsub, channels: Sequence[str]):
        self._pubsub = pubsub
        self.channels = tuple(channels)

    def __aiter__(self) -> AsyncIterator[BusMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[BusMessage]:
        try:
            async for message in self._pubsub.listen():
                if message is None or message.get("type") != "message":
                    continue
                yield BusMessage(
                    channel=_as_text(message["channel"]),
                    payload=_as_text(message["data"]),
                )
        except RedisError as exc:
            raise BusClosedError(
                message=f"Subscription transport failed: {exc}",
                meta={"channels": list(self.channels)},
            ) from exc

    async def close(self) -> None:
        try:
            await self._pubsub.unsubscribe()
        except RedisError as exc:
            logger.debug("Unsubscribe failed on close", error=str(exc))
        finally:
            await self._pubsub.aclose()


class RedisBus:
    """
    Publish connection and key/value access over a shared Redis client.

    `clone()` returns a new handle over the same client and connection pool;
    it never opens a new socket. Clones may be used concurrently.
    """

    def __init__(
        self,
        url: str,
        *,
        socket_timeout: float | None = None,
        client: Redis | None = None,
    ):
        self.url = url
        self._socket_timeout = socket_timeout
        self._client = client
        self._owns_client = client is None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """
        Establish the shared publish/command connection.

        Raises:
            BusConnectionError: Redis is unreachable.
        """
        client = self._client or Redis.from_url(
            self.url,
            decode_responses=True,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._socket_timeout,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            if self._owns_client:
                try:
                    await client.aclose()
                except (RedisError, OSError) as close_exc:
                    logger.debug("Closing unreachable Redis client failed", error=str(close_exc))
            logger.error("Failed to connect to Redis", error=str(exc))
            raise BusConnectionError(message=f"Redis unreachable: {exc}") from exc

        self._client = client
        logger.info("Redis connection established")

    def clone(self) -> "RedisBus":
        clone = RedisBus(self.url, socket_timeout=self._socket_timeout, client=self._client)
        clone._owns_client = False
        return clone

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            if self._owns_client:
                await self._client.aclose()
        finally:
            self._client = None

    async def subscribe_channel(self, names: Sequence[str]) -> Subscription:
        """Subscribe a dedicated receive-only connection to a fixed channel list."""
        client = self._require_client()
        pubsub = client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(*names)
        except RedisError as exc:
            await pubsub.aclose()
            raise BusConnectionError(message=f"Subscribe failed: {exc}", meta={"channels": list(names)}) from exc

        for name in names:
            logger.info("Created Redis subscription", channel=name)
        return Subscription(pubsub, names)

    async def publish(self, channel: str, payload: str) -> int:
        """Publish to a channel; returns how many subscribers received it."""
        client = self._require_client()
        try:
            receivers = await client.publish(channel, payload)
        except RedisError as exc:
            raise BusError(message=f"Publish failed: {exc}", meta={"channel": channel}) from exc
        logger.debug("Message published", channel=channel, receivers=receivers)
        return int(receivers or 0)

    async def set_key(self, key: str, value: str, ttl_seconds: int) -> None:
        """Upsert a string value; `ttl_seconds <= 0` means no expiry."""
        client = self._require_client()
        try:
            await client.set(key, value, ex=ttl_seconds if ttl_seconds > 0 else None)
        except RedisError as exc:
            raise BusError(message=f"SET failed: {exc}", meta={"key": key}) from exc

    async def set_status(self, request_id: str, message: str, ttl_seconds: int) -> None:
        await self.set_key(request_id, message, ttl_seconds)

    async def get_key(self, key: str) -> str | None:
        client = self._require_client()
        try:
            value = await client.get(key)
        except RedisError as exc:
            raise BusError(message=f"GET failed: {exc}", meta={"key": key}) from exc
        return _as_text(value) if value is not None else None

    async def next_sequence(self, key: str) -> int:
        """Atomically allocate the next number of a counter (starts at 1)."""
        client = self._require_client()
        try:
            return int(await client.incr(key))
        except RedisError as exc:
            raise BusError(message=f"INCR failed: {exc}", meta={"key": key}) from exc

    async def claim_cooldown(self, key: str, ttl_seconds: int) -> bool:
        """
        Start a cooldown window for `key`.

        Returns False if a window is already running.
        """
        client = self._require_client()
        try:
            claimed = await client.set(key, "1", ex=ttl_seconds, nx=True)
        except RedisError as exc:
            raise BusError(message=f"SET NX failed: {exc}", meta={"key": key}) from exc
        return bool(claimed)

    def _require_client(self) -> Redis:
        if self._client is None:
            raise BusConnectionError()
        return self._client


def _as_text(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
