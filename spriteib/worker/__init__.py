"""
Worker Module

Dispatcher and command handlers of the post-dispatch worker.
"""

from spriteib.worker.context import HandlerContext, Outcome
from spriteib.worker.dispatcher import Dispatcher, DispatcherState

__all__ = [
    "Dispatcher",
    "DispatcherState",
    "HandlerContext",
    "Outcome",
]
