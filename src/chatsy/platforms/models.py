"""Platform detection models.

MessageData and TypingData are what adapters hand to the feed observer. The
contact_id inside them is always a hash; message text is PII and is kept in
memory only (never logged).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Platform = Literal["whatsapp", "instagram", "telegram"]
Direction = Literal["in", "out"]

SUPPORTED_PLATFORMS: tuple[Platform, ...] = ("whatsapp", "instagram", "telegram")


@dataclass(frozen=True)
class MessageData:
    """A message extracted from a platform node.

    ATTENTION PII:
    - `text` is PII. Never log it; log fingerprint() and len() instead.
    """

    text: str
    contact_id: str
    platform: Platform
    timestamp: datetime
    direction: Direction


@dataclass(frozen=True)
class TypingData:
    """A typing indicator seen for the current conversation."""

    contact_id: str
    platform: Platform
    timestamp: datetime
