"""Sliding-window rate limiter for provider calls.

Callers beyond the budget wait until the oldest call leaves the window; they
are never rejected.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable

from chatsy.infra.time import MonotonicClock, monotonic
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS = 60
DEFAULT_WINDOW_SECONDS = 60.0


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: float = DEFAULT_WINDOW_SECONDS,
        *,
        monotonic_clock: MonotonicClock = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window = window
        self._monotonic = monotonic_clock
        self._sleep = sleep
        self._calls: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._calls and self._calls[0] <= now - self.window:
            self._calls.popleft()

    def in_window(self) -> int:
        self._prune(self._monotonic())
        return len(self._calls)

    def try_acquire(self) -> bool:
        """Take a slot if one is free right now."""
        now = self._monotonic()
        self._prune(now)
        if len(self._calls) < self.max_requests:
            self._calls.append(now)
            return True
        return False

    def delay_until_available(self) -> float:
        now = self._monotonic()
        self._prune(now)
        if len(self._calls) < self.max_requests:
            return 0.0
        return max(0.0, self._calls[0] + self.window - now)

    async def acquire(self) -> float:
        """Wait for a slot and take it.

        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        while not self.try_acquire():
            delay = self.delay_until_available()
            logger.info(
                "rate limit reached, waiting",
                extra={"extra_fields": safe_log_context(delay_s=round(delay, 3))},
            )
            await self._sleep(delay)
            waited += delay
        return waited
