"""Encrypted log of generated suggestions (`conversationData`).

Only sanitized message text is stored. Capped at 1000 entries and purged
after the retention period.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from chatsy.infra.storage import CONVERSATION_DATA_KEY
from chatsy.infra.time import Clock, from_epoch_ms, to_epoch_ms, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.privacy.crypto import RecordCipher

logger = get_logger(__name__)

MAX_HISTORY_ENTRIES = 1000
RETENTION_DAYS = 30


@dataclass(frozen=True)
class HistoryEntry:
    message: str
    response: str
    source: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "response": self.response,
            "source": self.source,
            "timestamp": to_epoch_ms(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            message=str(data["message"]),
            response=str(data["response"]),
            source=str(data["source"]),
            timestamp=from_epoch_ms(data["timestamp"]),
        )


class ConversationHistory:
    def __init__(
        self,
        cipher: RecordCipher,
        *,
        clock: Clock = utc_now,
        max_entries: int = MAX_HISTORY_ENTRIES,
        retention_days: int = RETENTION_DAYS,
    ) -> None:
        self._cipher = cipher
        self._clock = clock
        self._max_entries = max_entries
        self._retention = timedelta(days=retention_days)

    def entries(self) -> list[HistoryEntry]:
        raw = self._cipher.load(CONVERSATION_DATA_KEY, default=[])
        if not isinstance(raw, list):
            return []
        result = []
        for item in raw:
            try:
                result.append(HistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return result

    def _save(self, entries: list[HistoryEntry]) -> None:
        self._cipher.save(CONVERSATION_DATA_KEY, [entry.to_dict() for entry in entries])

    def append(self, entry: HistoryEntry) -> None:
        entries = self.entries()
        entries.append(entry)
        self._save(entries[-self._max_entries :])

    def purge_expired(self) -> int:
        """Remove entries older than the retention period."""
        cutoff = self._clock() - self._retention
        entries = self.entries()
        kept = [entry for entry in entries if entry.timestamp >= cutoff]
        removed = len(entries) - len(kept)
        if removed:
            self._save(kept)
            logger.info(
                "history purged",
                extra={"extra_fields": safe_log_context(removed=removed, kept=len(kept))},
            )
        return removed

    def clear(self) -> None:
        self._save([])
