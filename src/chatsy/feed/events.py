"""Normalized domain events emitted by the feed observer.

Transient: events are consumed by session listeners and never persisted.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from chatsy.platforms.models import Direction, Platform


@dataclass(frozen=True)
class MessageReceived:
    """A new message in the open conversation (text is PII, never logged)."""

    text: str
    contact_id: str
    platform: Platform
    timestamp: datetime
    direction: Direction


@dataclass(frozen=True)
class TypingDetected:
    contact_id: str
    platform: Platform
    timestamp: datetime


@dataclass(frozen=True)
class ContactChanged:
    contact_id: str
    platform: Platform
    timestamp: datetime


DomainEvent = Union[MessageReceived, TypingDetected, ContactChanged]
