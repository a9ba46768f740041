"""
Command Dispatcher

Drains the bus subscription and runs every decoded command in its own
asyncio task. The receive loop never waits for a handler: there is no
backpressure and no ordering between completions, even for commands on the
same board or thread.

States:
    DISCONNECTED -> connect() -> CONNECTED -> subscribe() -> LISTENING -> STOPPED
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from enum import Enum

import structlog

from spriteib.bus.redis_bus import BusMessage, RedisBus, Subscription
from spriteib.commands import CHANNELS, Command, command_name, decode_command
from spriteib.config import PostSettings
from spriteib.errors import BusClosedError, CommandDecodeError, DispatchError
from spriteib.monitoring.metrics import Metrics, get_metrics
from spriteib.store.port import ContentStore
from spriteib.worker.context import HandlerContext
from spriteib.worker.handlers import dispatch_command

logger = structlog.get_logger()


class DispatcherState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    LISTENING = "listening"
    STOPPED = "stopped"


class Dispatcher:
    """
    Subscribes to the command channels and hands each message to a handler task.

    Handler failures are logged (and recorded in the status cache by the
    handler itself); they never reach the receive loop.
    """

    def __init__(
        self,
        *,
        bus: RedisBus,
        primary: ContentStore,
        listing: ContentStore,
        settings: PostSettings,
        channels: Sequence[str] = CHANNELS,
        metrics: Metrics | None = None,
    ):
        self.bus = bus
        self.primary = primary
        self.listing = listing
        self.settings = settings
        self.channels = tuple(channels)
        self.metrics = metrics or get_metrics()
        self.state = DispatcherState.CONNECTED if bus.connected else DispatcherState.DISCONNECTED
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()
        self._stop_requested = False
        self._loop_task: asyncio.Task | None = None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def connect(self) -> None:
        if not self.bus.connected:
            await self.bus.connect()
        self.state = DispatcherState.CONNECTED

    async def subscribe(self) -> None:
        if self.state is DispatcherState.DISCONNECTED:
            await self.connect()
        self._subscription = await self.bus.subscribe_channel(self.channels)
        self.state = DispatcherState.LISTENING
        logger.info("Dispatcher listening", channels=list(self.channels))

    async def run(self) -> None:
        """
        Serve commands until the subscription ends or `stop()` is called.

        Raises:
            BusClosedError: the transport closed without `stop()` being called.
        """
        if self.state is not DispatcherState.LISTENING:
            await self.subscribe()
        assert self._subscription is not None
        self._loop_task = asyncio.current_task()

        try:
            async for message in self._subscription:
                self.handle_message(message)
        except asyncio.CancelledError:
            if not self._stop_requested:
                raise
        except BusClosedError:
            if not self._stop_requested:
                raise
        finally:
            self.state = DispatcherState.STOPPED
            self._loop_task = None
            await self._subscription.close()

        if not self._stop_requested:
            logger.error("Subscription ended unexpectedly", channels=list(self.channels))
            raise BusClosedError(meta={"channels": list(self.channels)})
        logger.info("Dispatcher stopped")

    def stop(self) -> None:
        """Stop receiving; handler tasks already started keep running."""
        if self._stop_requested:
            return
        self._stop_requested = True
        logger.info("Stopping dispatcher", in_flight=self.in_flight)
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()

    async def drain(self) -> None:
        """Wait for every in-flight handler task to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def handle_message(self, message: BusMessage) -> asyncio.Task | None:
        """Decode one message and spawn its handler. Returns the task, if any."""
        self.metrics.track_command_received(message.channel)
        try:
            command = decode_command(message.payload)
        except CommandDecodeError as exc:
            self.metrics.track_decode_failure(message.channel)
            logger.warning(
                "Could not deserialize command",
                channel=message.channel,
                payload=message.payload[:200],
                **exc.to_log_dict(),
            )
            return None

        ctx = HandlerContext(
            primary=self.primary,
            listing=self.listing,
            settings=self.settings,
            bus=self.bus.clone(),
            metrics=self.metrics,
        )
        task = asyncio.create_task(self._run_handler(command, ctx), name=f"handler:{command_name(command)}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_handler(self, command: Command, ctx: HandlerContext) -> None:
        name = command_name(command)
        log_context = {"command": name}
        request_id = getattr(command, "request_id", None)
        if request_id is not None:
            log_context["request_id"] = str(request_id)

        started = time.perf_counter()
        outcome = "unhandled"
        with structlog.contextvars.bound_contextvars(**log_context):
            logger.debug("Dispatching command")
            try:
                result = await dispatch_command(command, ctx)
                outcome = result.value
            except DispatchError as exc:
                outcome = exc.kind.value
                logger.error("Command handler failed", **exc.to_log_dict())
            except Exception as exc:
                # Never crash the dispatcher because of a single command.
                logger.error(
                    "Unhandled exception in command handler",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            finally:
                self.metrics.track_handler(name, outcome, time.perf_counter() - started)
