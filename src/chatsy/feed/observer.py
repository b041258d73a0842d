"""Conversation feed observer.

Synchronous reducer over MutationRecord batches: drives the active adapter,
suppresses duplicate messages, debounces typing and tracks contact switches.
Delivery of batches (browser bridge, replay, tests) is the caller's concern.

Event order guarantees:
- Added nodes are visited recursively in document order
- ContactChanged is emitted before the MessageReceived that revealed it
- TypingDetected fires once, `typing_debounce` seconds after the last signal
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable

from bs4 import Tag

from chatsy.feed.events import ContactChanged, DomainEvent, MessageReceived, TypingDetected
from chatsy.infra.hashing import hash_identifier
from chatsy.infra.scheduler import Scheduler, TimerHandle
from chatsy.infra.time import Clock, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.platforms.models import MessageData, Platform, TypingData
from chatsy.platforms.page import MutationRecord, element_children, iter_subtree
from chatsy.platforms.resolver import PlatformResolver

logger = get_logger(__name__)

DEDUP_WINDOW_SECONDS = 5.0
TYPING_DEBOUNCE_SECONDS = 1.0

# Distinct (contact, text) keys remembered for duplicate suppression
DEDUP_MAX_KEYS = 256

Listener = Callable[[DomainEvent], None]


@dataclass
class ObserverStats:
    batches: int = 0
    messages_detected: int = 0
    duplicates_suppressed: int = 0
    typing_signals: int = 0
    typing_emitted: int = 0
    contact_changes: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "batches": self.batches,
            "messages_detected": self.messages_detected,
            "duplicates_suppressed": self.duplicates_suppressed,
            "typing_signals": self.typing_signals,
            "typing_emitted": self.typing_emitted,
            "contact_changes": self.contact_changes,
        }


class FeedObserver:
    """Turns mutation batches into domain events."""

    def __init__(
        self,
        resolver: PlatformResolver,
        scheduler: Scheduler,
        *,
        clock: Clock = utc_now,
        dedup_window: float = DEDUP_WINDOW_SECONDS,
        typing_debounce: float = TYPING_DEBOUNCE_SECONDS,
    ) -> None:
        self._resolver = resolver
        self._scheduler = scheduler
        self._clock = clock
        self._dedup_window = dedup_window
        self._typing_debounce = typing_debounce
        self._listeners: list[Listener] = []
        self._running = False
        self._last_contact_id: str | None = None
        self._seen: OrderedDict[tuple[str, str], list] = OrderedDict()
        self._typing_handle: TimerHandle | None = None
        self._pending_typing: TypingData | None = None
        self.stats = ObserverStats()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_contact_id(self) -> str | None:
        return self._last_contact_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(
            "feed observer started",
            extra={"extra_fields": safe_log_context(platform=self._resolver.platform)},
        )

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._cancel_typing()
        logger.info("feed observer stopped")

    def process_batch(self, records: Iterable[MutationRecord]) -> None:
        """Process one batch of mutation records."""
        if not self._running:
            return
        adapter = self._resolver.adapter
        if adapter is None:
            return
        self.stats.batches += 1
        try:
            for record in records:
                if record.kind == "child_list":
                    for node in record.added_nodes:
                        self._scan(node)
                elif record.kind == "attributes":
                    self._check_typing(record.target)
        except Exception:
            logger.exception(
                "mutation batch failed",
                extra={"extra_fields": safe_log_context(platform=adapter.platform)},
            )

    def force_check(self) -> None:
        """Scan the whole document once."""
        if not self._running or self._resolver.adapter is None:
            return
        try:
            self.check_contact()
            for node in element_children(self._resolver.page.document):
                self._scan(node)
        except Exception:
            logger.exception("forced check failed")

    def check_contact(self) -> None:
        """Emit ContactChanged if the open conversation differs from the last seen one."""
        adapter = self._resolver.adapter
        if adapter is None:
            return
        contact_id = adapter.current_contact_id()
        if contact_id:
            self._note_contact(contact_id, adapter.platform)

    # --- internals ---

    def _scan(self, node: Tag) -> None:
        adapter = self._resolver.adapter
        if adapter is None:
            return
        for element in iter_subtree(node):
            message = adapter.detect_message(element)
            if message is not None:
                self._on_message(message)
            self._check_typing(element)

    def _check_typing(self, element: Tag) -> None:
        adapter = self._resolver.adapter
        if adapter is None:
            return
        typing = adapter.detect_typing(element)
        if typing is not None:
            self._on_typing(typing)

    def _note_contact(self, contact_id: str, platform: Platform) -> None:
        if contact_id == self._last_contact_id:
            return
        self._last_contact_id = contact_id
        # Pending typing belongs to the previous conversation
        self._cancel_typing()
        self.stats.contact_changes += 1
        logger.info(
            "contact changed",
            extra={"extra_fields": safe_log_context(contact_id=contact_id, platform=platform)},
        )
        self._emit(ContactChanged(contact_id=contact_id, platform=platform, timestamp=self._clock()))

    def _on_message(self, message: MessageData) -> None:
        self._note_contact(message.contact_id, message.platform)
        if self._is_duplicate(message):
            self.stats.duplicates_suppressed += 1
            logger.debug(
                "duplicate suppressed",
                extra={
                    "extra_fields": safe_log_context(
                        contact_id=message.contact_id,
                        text_len=len(message.text),
                    )
                },
            )
            return
        self.stats.messages_detected += 1
        self._emit(
            MessageReceived(
                text=message.text,
                contact_id=message.contact_id,
                platform=message.platform,
                timestamp=message.timestamp,
                direction=message.direction,
            )
        )

    def _is_duplicate(self, message: MessageData) -> bool:
        key = (message.contact_id, hash_identifier(message.text))
        stamps = self._seen.get(key)
        if stamps is None:
            self._seen[key] = [message.timestamp]
            if len(self._seen) > DEDUP_MAX_KEYS:
                self._seen.popitem(last=False)
            return False
        self._seen.move_to_end(key)
        for seen_at in stamps:
            if abs((message.timestamp - seen_at).total_seconds()) <= self._dedup_window:
                return True
        stamps.append(message.timestamp)
        del stamps[:-8]
        return False

    def _on_typing(self, typing: TypingData) -> None:
        self._note_contact(typing.contact_id, typing.platform)
        self.stats.typing_signals += 1
        self._pending_typing = typing
        if self._typing_handle is not None:
            self._typing_handle.cancel()
        self._typing_handle = self._scheduler.call_later(self._typing_debounce, self._fire_typing)

    def _fire_typing(self) -> None:
        self._typing_handle = None
        typing, self._pending_typing = self._pending_typing, None
        if typing is None or not self._running:
            return
        self.stats.typing_emitted += 1
        self._emit(
            TypingDetected(
                contact_id=typing.contact_id,
                platform=typing.platform,
                timestamp=typing.timestamp,
            )
        )

    def _cancel_typing(self) -> None:
        if self._typing_handle is not None:
            self._typing_handle.cancel()
            self._typing_handle = None
        self._pending_typing = None

    def _emit(self, event: DomainEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "event listener failed",
                    extra={"extra_fields": safe_log_context(event=type(event).__name__)},
                )
