"""Shared test helpers for chatsy tests.

Plain classes and functions (not fixtures) importable by conftest.py and
individual test modules.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from unittest.mock import MagicMock

from chatsy.platforms.page import HostPage

START = datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock pinned to a fixed instant; moved by advance()."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeSleep:
    """Async sleep that records delays and advances the given clocks instantly."""

    def __init__(self, *clocks):
        self.delays: list[float] = []
        self._clocks = clocks

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        for clock in self._clocks:
            clock.advance(delay)


class _Timer:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by advance(); fires due callbacks in due order."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[_Timer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target
        self.timers = [t for t in self.timers if not t.cancelled]


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def messages(self, level: str | None = None) -> list[str]:
        return [args[0] for lvl, args, _ in self.calls if args and (level is None or lvl == level)]

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for _, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)


def mock_response(status_code: int = 200, json_data=None, json_error: Exception | None = None) -> MagicMock:
    """requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


WHATSAPP_SHELL = """
<html><head><title>WhatsApp</title></head>
<body>
  <div data-testid="chat-list"></div>
  <header><span data-testid="conversation-title" title="{contact}">{contact}</span></header>
  <div id="main">
    <div class="messages">{messages}</div>
    <div class="status"></div>
  </div>
  <footer>
    <div contenteditable="true" data-testid="conversation-compose-box-input"></div>
  </footer>
</body></html>
"""


def whatsapp_page(contact: str = "Ana", messages: str = "", url: str = "https://web.whatsapp.com/") -> HostPage:
    return HostPage.from_html(url, WHATSAPP_SHELL.format(contact=contact, messages=messages))


def incoming(text: str, time_label: str = "11:58") -> str:
    return (
        '<div class="message-in">'
        f'<span class="selectable-text">{text}</span>'
        f'<div data-testid="msg-meta"><span class="message-time">{time_label}</span></div>'
        "</div>"
    )


def outgoing(text: str, time_label: str = "11:59") -> str:
    return (
        '<div class="message-out">'
        f'<span class="selectable-text">{text}</span>'
        f'<div data-testid="msg-meta"><span class="message-time">{time_label}</span></div>'
        "</div>"
    )
