"""Per-contact state store and the active conversation context.

Single logical writer (the session). Contacts are persisted encrypted under
`contactData` after every mutation; the context window lives in memory only.
"""

from __future__ import annotations

from datetime import timedelta

from chatsy.contacts.models import (
    CONTEXT_CAPACITY,
    Contact,
    ContextEntry,
    ContextSnapshot,
    ConversationContext,
    StyleProfile,
    SuggestionOutcome,
)
from chatsy.contacts.style import STYLE_ALPHA, update_style
from chatsy.feed.events import MessageReceived
from chatsy.infra.storage import CONTACT_DATA_KEY
from chatsy.infra.time import Clock, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.platforms.models import Platform
from chatsy.privacy.crypto import RecordCipher

logger = get_logger(__name__)

RETENTION_DAYS = 30


class ContactStore:
    """Owns Contact profiles and the single active ConversationContext."""

    def __init__(
        self,
        cipher: RecordCipher,
        *,
        clock: Clock = utc_now,
        context_capacity: int = CONTEXT_CAPACITY,
        retention_days: int = RETENTION_DAYS,
        style_alpha: float = STYLE_ALPHA,
    ) -> None:
        self._cipher = cipher
        self._clock = clock
        self._context_capacity = context_capacity
        self._retention = timedelta(days=retention_days)
        self._style_alpha = style_alpha
        self._contacts: dict[str, Contact] = self._load()
        self.context = ConversationContext(None, context_capacity)
        self.generation = 0

    def _load(self) -> dict[str, Contact]:
        raw = self._cipher.load(CONTACT_DATA_KEY, default={})
        contacts: dict[str, Contact] = {}
        if not isinstance(raw, dict):
            return contacts
        for contact_id, data in raw.items():
            try:
                contacts[contact_id] = Contact.from_dict(data)
            except (KeyError, TypeError, ValueError):
                logger.warning(
                    "dropping malformed contact record",
                    extra={"extra_fields": safe_log_context(contact_id=contact_id)},
                )
        return contacts

    def _persist(self) -> None:
        self._cipher.save(
            CONTACT_DATA_KEY,
            {contact_id: contact.to_dict() for contact_id, contact in self._contacts.items()},
        )

    def get(self, contact_id: str) -> Contact | None:
        return self._contacts.get(contact_id)

    def get_or_create(self, contact_id: str, platform: Platform) -> Contact:
        contact = self._contacts.get(contact_id)
        if contact is None:
            contact = Contact(contact_id=contact_id, platform=platform, last_seen=self._clock())
            self._contacts[contact_id] = contact
            self._persist()
            logger.info(
                "contact created",
                extra={"extra_fields": safe_log_context(contact_id=contact_id, platform=platform)},
            )
        return contact

    def update(self, contact: Contact, message: MessageReceived) -> Contact:
        """Apply one message: counters for both directions, style for inbound.

        The message is also pushed onto the context window when it belongs to
        the active conversation.
        """
        contact.counters.messages += 1
        contact.last_seen = self._clock()
        if message.direction == "in":
            contact.style = update_style(contact.style, message.text, self._style_alpha)
        self._contacts[contact.contact_id] = contact
        self._persist()

        if self.context.contact_id == contact.contact_id:
            self.context.push(
                ContextEntry(
                    direction=message.direction,
                    text=message.text,
                    timestamp=message.timestamp,
                )
            )
        return contact

    def activate(self, contact_id: str, platform: Platform) -> ConversationContext:
        """Replace the context window wholesale for a newly active contact."""
        self.get_or_create(contact_id, platform)
        self.generation += 1
        self.context = ConversationContext(contact_id, self._context_capacity)
        return self.context

    def record_outcome(self, contact_id: str, suggestion_id: str, accepted: bool) -> Contact | None:
        contact = self._contacts.get(contact_id)
        if contact is None:
            logger.warning(
                "outcome for unknown contact",
                extra={"extra_fields": safe_log_context(contact_id=contact_id)},
            )
            return None
        if accepted:
            contact.counters.accepted += 1
        else:
            contact.counters.rejected += 1
        contact.add_outcome(
            SuggestionOutcome(suggestion_id=suggestion_id, accepted=accepted, timestamp=self._clock())
        )
        self._persist()
        return contact

    def snapshot(self) -> ContextSnapshot:
        contact_id = self.context.contact_id
        contact = self._contacts.get(contact_id) if contact_id else None
        return ContextSnapshot(
            contact_id=contact_id,
            platform=contact.platform if contact else None,
            entries=self.context.entries(),
            style=contact.style if contact else StyleProfile(),
            generation=self.generation,
        )

    def purge_expired(self) -> int:
        """Delete contacts not seen within the retention period."""
        cutoff = self._clock() - self._retention
        expired = [
            contact_id
            for contact_id, contact in self._contacts.items()
            if contact.last_seen < cutoff and contact_id != self.context.contact_id
        ]
        for contact_id in expired:
            del self._contacts[contact_id]
        if expired:
            self._persist()
        return len(expired)

    def clear(self) -> None:
        self._contacts.clear()
        self.context = ConversationContext(None, self._context_capacity)
        self.generation += 1
        self._persist()

    def stats(self) -> dict[str, int]:
        contacts = list(self._contacts.values())
        return {
            "contacts": len(contacts),
            "messages": sum(c.counters.messages for c in contacts),
            "accepted": sum(c.counters.accepted for c in contacts),
            "rejected": sum(c.counters.rejected for c in contacts),
        }
