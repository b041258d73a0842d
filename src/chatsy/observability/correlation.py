"""Correlation ids tying together the log lines of one API call or one
suggestion request.

Ids are prefixed by origin ("api-", "sug-") so a log reader can tell a
popup-driven call from a feed-driven suggestion without extra fields.
An incoming X-Correlation-ID header is kept as-is when it looks sane.
"""

import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Header values are echoed back into responses and logs
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

_current: ContextVar[str] = ContextVar("chatsy_correlation_id", default="")


def new_correlation_id(origin: str) -> str:
    """Build a fresh id such as "sug-3f2a9c0d1e4b"."""
    return f"{origin}-{uuid.uuid4().hex[:12]}"


def accept_correlation_id(value: str | None, origin: str) -> str:
    """Return `value` if it is a usable id, otherwise a new one for `origin`."""
    if value and _ACCEPTED_ID.match(value):
        return value
    return new_correlation_id(origin)


def get_correlation_id() -> str:
    return _current.get()


@contextmanager
def correlation_scope(cid: str) -> Iterator[str]:
    """Bind `cid` for the duration of the block; the previous id is restored after."""
    token = _current.set(cid)
    try:
        yield cid
    finally:
        _current.reset(token)
