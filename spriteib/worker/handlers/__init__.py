"""
Command Handlers

One coroutine per command kind. `dispatch_command` is the only entry point
the dispatcher uses; it must cover every member of `Command`.
"""

from typing import assert_never

from spriteib.commands import Command, NewComment, NewThread, PruneThreads, PublishFeed
from spriteib.worker.context import HandlerContext, Outcome
from spriteib.worker.handlers.maintenance import prune_threads, publish_feed
from spriteib.worker.handlers.posting import new_comment, new_thread


async def dispatch_command(command: Command, ctx: HandlerContext) -> Outcome:
    """Route a decoded command to its handler."""
    if isinstance(command, NewThread):
        return await new_thread(command, ctx)
    if isinstance(command, NewComment):
        return await new_comment(command, ctx)
    if isinstance(command, PruneThreads):
        return await prune_threads(command, ctx)
    if isinstance(command, PublishFeed):
        return await publish_feed(command, ctx)
    assert_never(command)


__all__ = [
    "dispatch_command",
    "new_comment",
    "new_thread",
    "prune_threads",
    "publish_feed",
]
