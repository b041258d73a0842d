"""Platform resolution and readiness probing.

State machine: UNRESOLVED -> RESOLVED(platform) | UNKNOWN. Host rules are
checked first in fixed priority order, then content signatures in the same
order. The resolver owns the single active adapter for its page.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable

from chatsy.infra.time import Clock, MonotonicClock, monotonic, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.platforms.base import PlatformAdapter
from chatsy.platforms.instagram import InstagramAdapter
from chatsy.platforms.models import Platform
from chatsy.platforms.page import HostPage
from chatsy.platforms.telegram import TelegramAdapter
from chatsy.platforms.whatsapp import WhatsAppAdapter

logger = get_logger(__name__)

# Priority order for both host and content checks
ADAPTERS: tuple[type[PlatformAdapter], ...] = (
    WhatsAppAdapter,
    InstagramAdapter,
    TelegramAdapter,
)

READY_TIMEOUT_SECONDS = 10.0
READY_POLL_SECONDS = 0.1


class ResolverState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    UNKNOWN = "unknown"


class PlatformTimeout(Exception):
    """Raised when the page does not become ready in time."""

    pass


class PlatformResolver:
    """Selects the adapter for a HostPage."""

    def __init__(
        self,
        page: HostPage,
        *,
        clock: Clock = utc_now,
        adapters: tuple[type[PlatformAdapter], ...] = ADAPTERS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic_clock: MonotonicClock = monotonic,
    ) -> None:
        self.page = page
        self._clock = clock
        self._adapters = adapters
        self._sleep = sleep
        self._monotonic = monotonic_clock
        self.state = ResolverState.UNRESOLVED
        self._adapter: PlatformAdapter | None = None
        self._logged_outcome: tuple[ResolverState, Platform | None] | None = None

    @property
    def adapter(self) -> PlatformAdapter | None:
        return self.resolve()

    @property
    def platform(self) -> Platform | None:
        adapter = self.resolve()
        return adapter.platform if adapter else None

    def resolve(self) -> PlatformAdapter | None:
        """Resolve once; later calls return the cached outcome."""
        if self.state is ResolverState.UNRESOLVED:
            self._adapter = self._detect()
            self.state = ResolverState.RESOLVED if self._adapter else ResolverState.UNKNOWN
            outcome = (self.state, self._adapter.platform if self._adapter else None)
            if outcome != self._logged_outcome:
                self._logged_outcome = outcome
                logger.info(
                    "platform resolved",
                    extra={
                        "extra_fields": safe_log_context(
                            state=self.state.value,
                            platform=outcome[1],
                            host=self.page.hostname,
                        )
                    },
                )
        return self._adapter

    def redetect(self) -> PlatformAdapter | None:
        """Force re-resolution, e.g. after navigation."""
        self.state = ResolverState.UNRESOLVED
        self._adapter = None
        return self.resolve()

    def _detect(self) -> PlatformAdapter | None:
        for adapter_cls in self._adapters:
            if adapter_cls.matches_host(self.page):
                return adapter_cls(self.page, clock=self._clock)
        for adapter_cls in self._adapters:
            if adapter_cls.matches_content(self.page):
                return adapter_cls(self.page, clock=self._clock)
        return None

    def is_ready(self) -> bool:
        """True when an input element and at least one message element exist."""
        adapter = self.resolve()
        if adapter is None:
            return False
        return adapter.has_input() and adapter.has_messages()

    async def wait_until_ready(
        self,
        timeout: float = READY_TIMEOUT_SECONDS,
        poll_interval: float = READY_POLL_SECONDS,
    ) -> PlatformAdapter:
        """Poll until ready.

        Raises:
            PlatformTimeout: If not ready within timeout seconds.
        """
        deadline = self._monotonic() + timeout
        while True:
            # Content signatures may appear after load
            if self.state is ResolverState.UNKNOWN:
                self.redetect()
            adapter = self.resolve()
            if adapter is not None and adapter.has_input() and adapter.has_messages():
                return adapter
            if self._monotonic() >= deadline:
                logger.warning(
                    "platform not ready",
                    extra={
                        "extra_fields": safe_log_context(
                            state=self.state.value,
                            timeout_s=timeout,
                        )
                    },
                )
                raise PlatformTimeout(f"platform not ready after {timeout}s")
            await self._sleep(poll_interval)
