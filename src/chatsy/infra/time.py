"""Time utilities for consistent timestamp handling."""

import time
from datetime import datetime, timezone
from typing import Callable

# Wall-clock source; components take one so tests can pin "now"
Clock = Callable[[], datetime]

# Monotonic seconds for timers and rate windows
MonotonicClock = Callable[[], float]


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def monotonic() -> float:
    """Return monotonic seconds, unaffected by wall-clock changes."""
    return time.monotonic()


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
