"""Task scheduling for the statement queue and the pool reaper.

The queue never recurses synchronously from one statement's completion into
the next; it hands a zero-argument callback to a scheduler that runs it on a
later turn of the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A delayed callback that can be cancelled before it runs."""

    def cancel(self) -> None:
        """Prevent the callback from running."""
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Runs callbacks on later turns of a single-threaded event loop."""

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on the next turn."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""
        ...

    def time(self) -> float:
        """Return the scheduler's monotonic clock in seconds."""
        ...


class LoopScheduler:
    """Scheduler backed by an asyncio event loop.

    Without an explicit loop the running loop is looked up on every call, so
    one scheduler can be created at import time and shared.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialize with an optional fixed event loop."""
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on the next loop iteration."""
        self._get_loop().call_soon(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""
        return self._get_loop().call_later(delay, callback)

    def time(self) -> float:
        """Return the loop's monotonic time."""
        return self._get_loop().time()


default_scheduler = LoopScheduler()
