"""Shared platform adapter algorithm.

Each platform subclass supplies selector tables and its direction rule; the
base class does node matching, text and timestamp extraction, contact id
resolution and text insertion.

Security:
- Contact identifiers leave the adapter only as hash_contact() output
- Message text is returned to the caller, NEVER logged
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import ClassVar

from bs4 import BeautifulSoup, Tag

from chatsy.infra.hashing import hash_contact
from chatsy.infra.time import Clock, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.platforms.models import Direction, MessageData, Platform, TypingData
from chatsy.platforms.page import HostPage, is_visible

logger = get_logger(__name__)

# Typing indicators are short status lines ("typing...", "Ana is typing")
TYPING_TEXT_MAX_LEN = 40

_RELATIVE_UNITS = {
    "s": "seconds",
    "sec": "seconds",
    "secs": "seconds",
    "second": "seconds",
    "seconds": "seconds",
    "m": "minutes",
    "min": "minutes",
    "mins": "minutes",
    "minute": "minutes",
    "minutes": "minutes",
    "h": "hours",
    "hr": "hours",
    "hrs": "hours",
    "hour": "hours",
    "hours": "hours",
    "d": "days",
    "day": "days",
    "days": "days",
}

_RELATIVE_PATTERN = re.compile(r"^(\d+)\s*([a-z]+)(?:\s+ago)?$")
_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})\s*(am|pm)?$")


def parse_time_text(text: str, now: datetime) -> datetime | None:
    """Parse a relative or clock-time label against `now`.

    Supported: "now", "just now", "5 min", "2h", "3 hours ago",
    "10:30", "9:05 PM". A clock time later than now is taken as yesterday.

    Returns:
        Aware datetime in now's timezone, or None if the label is not a time.
    """
    label = " ".join(text.strip().lower().split())
    if not label:
        return None
    if label in ("now", "just now"):
        return now

    match = _RELATIVE_PATTERN.match(label)
    if match:
        unit = _RELATIVE_UNITS.get(match.group(2))
        if unit is None:
            return None
        return now - timedelta(**{unit: int(match.group(1))})

    match = _CLOCK_PATTERN.match(label)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        period = match.group(3)
        if period:
            if not 1 <= hours <= 12:
                return None
            if period == "pm" and hours < 12:
                hours += 12
            if period == "am" and hours == 12:
                hours = 0
        if hours > 23 or minutes > 59:
            return None
        value = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        if value > now:
            value -= timedelta(days=1)
        return value

    return None


def parse_iso_attribute(value: str, now: datetime) -> datetime | None:
    """Parse an ISO-8601 `datetime` attribute; naive values take now's timezone."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def _matches_any(node: Tag, selectors: tuple[str, ...]) -> bool:
    return any(node.css.match(selector) for selector in selectors)


class PlatformAdapter:
    """Base adapter. Subclasses fill in the class-level selector tables."""

    platform: ClassVar[Platform]
    url_contact_pattern: ClassVar[re.Pattern[str]]
    generic_titles: ClassVar[frozenset[str]]
    message_selectors: ClassVar[tuple[str, ...]]
    text_selectors: ClassVar[tuple[str, ...]]
    time_selectors: ClassVar[tuple[str, ...]]
    typing_selectors: ClassVar[tuple[str, ...]]
    contact_selectors: ClassVar[tuple[str, ...]]
    input_selectors: ClassVar[tuple[str, ...]]
    content_indicators: ClassVar[tuple[str, ...]]
    outgoing_selectors: ClassVar[tuple[str, ...]] = ()

    def __init__(self, page: HostPage, clock: Clock = utc_now) -> None:
        self.page = page
        self._clock = clock

    # --- host matching (used by the resolver) ---

    @classmethod
    def matches_host(cls, page: HostPage) -> bool:
        raise NotImplementedError

    @classmethod
    def matches_content(cls, page: HostPage) -> bool:
        """Content-signature heuristic: any indicator selector present."""
        return any(page.select_one(selector) is not None for selector in cls.content_indicators)

    # --- capability set ---

    def detect_message(self, node: Tag) -> MessageData | None:
        """Extract a message from a node, or None if it is not one."""
        try:
            if not self.is_message_node(node):
                return None
            text = self.extract_text(node)
            if not text:
                return None
            contact_id = self.current_contact_id()
            if not contact_id:
                return None
            return MessageData(
                text=text,
                contact_id=contact_id,
                platform=self.platform,
                timestamp=self.extract_timestamp(node),
                direction=self.message_direction(node),
            )
        except Exception:
            logger.debug(
                "message extraction failed",
                exc_info=True,
                extra={"extra_fields": safe_log_context(platform=self.platform)},
            )
            return None

    def detect_typing(self, node: Tag) -> TypingData | None:
        """Return a typing signal if the node is (or now marks) a typing indicator."""
        try:
            if not self.is_typing_indicator(node):
                return None
            contact_id = self.current_contact_id()
            if not contact_id:
                return None
            return TypingData(
                contact_id=contact_id,
                platform=self.platform,
                timestamp=self._clock(),
            )
        except Exception:
            logger.debug(
                "typing extraction failed",
                exc_info=True,
                extra={"extra_fields": safe_log_context(platform=self.platform)},
            )
            return None

    def current_contact_id(self) -> str | None:
        """Hashed id of the open conversation.

        Resolution order: URL path segment, page title (unless generic),
        first contact header element.
        """
        raw = self._raw_contact_identifier()
        if not raw:
            return None
        return hash_contact(self.platform, raw)

    def insert_text(self, text: str) -> bool:
        """Write text into the first visible input element."""
        for selector in self.input_selectors:
            for element in self.page.select(selector):
                if not is_visible(element):
                    continue
                self.page.write_text(element, text)
                logger.info(
                    "suggestion inserted",
                    extra={
                        "extra_fields": safe_log_context(
                            platform=self.platform,
                            text_len=len(text),
                        )
                    },
                )
                return True
        logger.warning(
            "no input element found",
            extra={"extra_fields": safe_log_context(platform=self.platform)},
        )
        return False

    # --- readiness ---

    def has_input(self) -> bool:
        return any(self.page.select_one(selector) is not None for selector in self.input_selectors)

    def has_messages(self) -> bool:
        return any(self.page.select_one(selector) is not None for selector in self.message_selectors)

    # --- node classification ---

    def is_message_node(self, node: Tag) -> bool:
        return _matches_any(node, self.message_selectors)

    def is_typing_indicator(self, node: Tag) -> bool:
        if _matches_any(node, self.typing_selectors):
            return True
        if self.is_message_node(node):
            return False
        text = node.get_text(" ", strip=True)
        if not text or len(text) > TYPING_TEXT_MAX_LEN or "typing" not in text.lower():
            return False
        # Text inside a message bubble, or a container of bubbles, is not a status line
        if any(
            self.is_message_node(parent)
            for parent in node.parents
            if isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup)
        ):
            return False
        return not any(node.select_one(selector) for selector in self.message_selectors)

    def message_direction(self, node: Tag) -> Direction:
        if _matches_any(node, self.outgoing_selectors):
            return "out"
        return "in"

    # --- extraction helpers ---

    def extract_text(self, node: Tag) -> str | None:
        for selector in self.text_selectors:
            element = node.select_one(selector)
            if element is not None:
                text = element.get_text(" ", strip=True)
                if text:
                    return text
        # Fall back to the node's own text minus its time label
        parts = []
        for string in node.find_all(string=True):
            parent = string.parent
            if parent is not None and any(
                parent.css.match(selector) for selector in self.time_selectors
            ):
                continue
            if string.strip():
                parts.append(string.strip())
        text = " ".join(parts)
        return text or None

    def extract_timestamp(self, node: Tag) -> datetime:
        now = self._clock()
        for selector in self.time_selectors:
            element = node.select_one(selector)
            if element is None:
                continue
            iso_value = element.get("datetime")
            if iso_value:
                parsed = parse_iso_attribute(str(iso_value), now)
                if parsed is not None:
                    return parsed
            parsed = parse_time_text(element.get_text(" ", strip=True), now)
            if parsed is not None:
                return parsed
        return now

    def _raw_contact_identifier(self) -> str | None:
        match = self.url_contact_pattern.search(self.page.url)
        if match:
            return match.group(1)

        title = self.page.page_title()
        if title and title not in self.generic_titles:
            return title

        for selector in self.contact_selectors:
            element = self.page.select_one(selector)
            if element is None:
                continue
            label = element.get("title") or element.get("aria-label") or element.get_text(" ", strip=True)
            if label:
                return str(label).strip()
        return None
