"""Timer scheduling for debounce and delayed work.

Components receive a Scheduler instead of touching the event loop directly,
so the feed observer stays a synchronous reducer and tests can drive time by
hand.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


class TimerHandle(Protocol):
    """Handle returned by Scheduler.call_later."""

    def cancel(self) -> None:
        """Cancel the pending callback (no-op if already fired)."""
        ...


class Scheduler(Protocol):
    """Protocol for delayed callbacks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback after delay seconds."""
        ...


class LoopScheduler:
    """Scheduler backed by the asyncio event loop.

    Resolves the running loop on each call unless one is given explicitly.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
