"""
Post-Dispatch Worker Process

Standalone worker that consumes posting commands from Redis Pub/Sub,
persists them to CouchDB and reports request status back to Redis.

Usage:
    python -m spriteib.worker

This worker:
1. Connects to Redis and CouchDB (fatal if either is unreachable)
2. Creates the databases and design documents if missing
3. Subscribes to NewThread, NewComment, PruneThreads and PublishFeed
4. Runs every command in its own task until the subscription closes
"""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog
from pydantic import ValidationError

from spriteib.bus.redis_bus import RedisBus
from spriteib.config import PostSettings, Settings, get_settings
from spriteib.errors import SpriteError
from spriteib.logging_config import configure_logging
from spriteib.monitoring.prometheus_server import maybe_start_prometheus_http_server
from spriteib.store.couch import CouchClient
from spriteib.store.views import ensure_views
from spriteib.worker.dispatcher import Dispatcher

logger = structlog.get_logger()


async def run_worker(settings: Settings) -> None:
    post_settings = PostSettings.from_settings(settings)

    bus = RedisBus(str(settings.redis_url), socket_timeout=settings.redis_socket_timeout_seconds)
    await bus.connect()

    couch = CouchClient(
        settings.couch_url,
        settings.couch_username,
        settings.couch_password,
        timeout_seconds=settings.couch_timeout_seconds,
    )
    try:
        primary = couch.db(settings.couch_db)
        listing = couch.db(settings.couch_listing_db)
        await primary.ensure_exists()
        await listing.ensure_exists()
        await ensure_views(primary, listing)
        logger.info("CouchDB databases ready", primary=primary.name, listing=listing.name)

        maybe_start_prometheus_http_server(component="worker", port=settings.prometheus_metrics_port)

        dispatcher = Dispatcher(
            bus=bus,
            primary=primary,
            listing=listing,
            settings=post_settings,
        )
        await dispatcher.subscribe()

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logger.info("Received shutdown signal")
            dispatcher.stop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

        try:
            await dispatcher.run()
        finally:
            await dispatcher.drain()
    finally:
        await couch.close()
        await bus.close()


def main() -> None:
    """Main entry point for the worker."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        logger.error("Invalid configuration", error=str(exc))
        sys.exit(2)

    configure_logging(settings)
    logger.info("Starting post-dispatch worker", log_level=settings.log_level)

    try:
        asyncio.run(run_worker(settings))
    except SpriteError as exc:
        logger.error("Worker stopped", **exc.to_log_dict())
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()
