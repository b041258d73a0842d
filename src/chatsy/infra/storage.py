"""Key-value persistence for settings, keys, contact data and history.

Provides:
- KeyValueStore: protocol consumed by the privacy layer and the contact store
- MemoryStore: process-local store (tests, ephemeral sessions)
- SqliteStore: single-file store; values are JSON documents
- txn(): context manager for short, safe transactions on a sqlite connection

Well-known keys are the *_KEY constants below. Values stored under sensitive keys
are always EncryptedRecord dicts produced by chatsy.privacy.crypto.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

SETTINGS_KEY = "settings"
API_KEYS_KEY = "apiKeys"
CONTACT_DATA_KEY = "contactData"
CONVERSATION_DATA_KEY = "conversationData"
ENCRYPTION_KEY_KEY = "encryptionKey"


class KeyValueStore(Protocol):
    """Protocol for the persistence collaborator."""

    def get(self, key: str) -> Any | None:
        """Return the stored value or None."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...

    def clear(self) -> None:
        """Remove every key."""
        ...


class MemoryStore:
    """In-memory store. Values are JSON round-tripped to match SqliteStore."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return sorted(self._data)


def get_conn(path: str | Path) -> sqlite3.Connection:
    """Open a sqlite connection, creating parent directories as needed.

    Args:
        path: Database file path, or ":memory:".

    Returns:
        sqlite3 connection object.
    """
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    # The control API may serve requests on a worker thread
    return sqlite3.connect(str(path), check_same_thread=False)


@contextmanager
def txn(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """Context manager for a short, safe transaction.

    Commits on successful exit, rolls back on exception.

    Example:
        with txn(conn) as cur:
            cur.execute("DELETE FROM kv WHERE key = ?", ("settings",))
    """
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()


class SqliteStore:
    """Key-value store backed by a single sqlite table.

    One connection is shared across threads; a lock serializes access to it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._conn = get_conn(path)
        self._lock = threading.Lock()
        with txn(self._conn) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Any | None:
        with self._lock, txn(self._conn) as cur:
            cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
        return None if row is None else json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        with self._lock, txn(self._conn) as cur:
            cur.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value
                """,
                (key, json.dumps(value)),
            )

    def delete(self, key: str) -> None:
        with self._lock, txn(self._conn) as cur:
            cur.execute("DELETE FROM kv WHERE key = ?", (key,))

    def clear(self) -> None:
        with self._lock, txn(self._conn) as cur:
            cur.execute("DELETE FROM kv")

    def keys(self) -> list[str]:
        with self._lock, txn(self._conn) as cur:
            cur.execute("SELECT key FROM kv ORDER BY key")
            return [row[0] for row in cur.fetchall()]

    def close(self) -> None:
        self._conn.close()
