"""Contact and conversation context models."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from chatsy.infra.time import from_epoch_ms, to_epoch_ms
from chatsy.platforms.models import Direction, Platform

CONTEXT_CAPACITY = 10
OUTCOMES_LIMIT = 50


@dataclass(frozen=True)
class StyleProfile:
    """Per-contact style estimate, both values in [0, 1]."""

    formality: float = 0.5
    emoji_rate: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"formality": self.formality, "emoji_rate": self.emoji_rate}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StyleProfile":
        return cls(
            formality=float(data.get("formality", 0.5)),
            emoji_rate=float(data.get("emoji_rate", 0.0)),
        )


@dataclass
class ContactCounters:
    messages: int = 0
    accepted: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class SuggestionOutcome:
    suggestion_id: str
    accepted: bool
    timestamp: datetime


@dataclass
class Contact:
    """Per-contact profile. contact_id is always a hash."""

    contact_id: str
    platform: Platform
    last_seen: datetime
    style: StyleProfile = field(default_factory=StyleProfile)
    counters: ContactCounters = field(default_factory=ContactCounters)
    outcomes: list[SuggestionOutcome] = field(default_factory=list)

    def add_outcome(self, outcome: SuggestionOutcome) -> None:
        self.outcomes.append(outcome)
        del self.outcomes[:-OUTCOMES_LIMIT]

    def to_dict(self) -> dict[str, Any]:
        return {
            "contact_id": self.contact_id,
            "platform": self.platform,
            "last_seen": to_epoch_ms(self.last_seen),
            "style": self.style.to_dict(),
            "counters": {
                "messages": self.counters.messages,
                "accepted": self.counters.accepted,
                "rejected": self.counters.rejected,
            },
            "outcomes": [
                {
                    "suggestion_id": o.suggestion_id,
                    "accepted": o.accepted,
                    "timestamp": to_epoch_ms(o.timestamp),
                }
                for o in self.outcomes
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contact":
        counters = data.get("counters", {})
        return cls(
            contact_id=data["contact_id"],
            platform=data["platform"],
            last_seen=from_epoch_ms(data["last_seen"]),
            style=StyleProfile.from_dict(data.get("style", {})),
            counters=ContactCounters(
                messages=int(counters.get("messages", 0)),
                accepted=int(counters.get("accepted", 0)),
                rejected=int(counters.get("rejected", 0)),
            ),
            outcomes=[
                SuggestionOutcome(
                    suggestion_id=o["suggestion_id"],
                    accepted=bool(o["accepted"]),
                    timestamp=from_epoch_ms(o["timestamp"]),
                )
                for o in data.get("outcomes", [])
            ][-OUTCOMES_LIMIT:],
        )


@dataclass(frozen=True)
class ContextEntry:
    direction: Direction
    text: str
    timestamp: datetime


class ConversationContext:
    """Rolling window of the active conversation (last `capacity` entries)."""

    def __init__(self, contact_id: str | None, capacity: int = CONTEXT_CAPACITY) -> None:
        self.contact_id = contact_id
        self.capacity = capacity
        self._entries: deque[ContextEntry] = deque(maxlen=capacity)

    def push(self, entry: ContextEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> tuple[ContextEntry, ...]:
        return tuple(self._entries)

    def last_inbound(self) -> ContextEntry | None:
        for entry in reversed(self._entries):
            if entry.direction == "in":
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable copy of the active conversation used to build requests."""

    contact_id: str | None
    platform: Platform | None
    entries: tuple[ContextEntry, ...]
    style: StyleProfile
    generation: int

    def last_inbound(self) -> ContextEntry | None:
        for entry in reversed(self.entries):
            if entry.direction == "in":
                return entry
        return None

