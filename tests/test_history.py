"""Tests for the encrypted suggestion history."""

from datetime import timedelta

from helpers import FakeClock

from chatsy.contacts.history import ConversationHistory, HistoryEntry
from chatsy.infra.storage import CONVERSATION_DATA_KEY, MemoryStore
from chatsy.privacy.crypto import RecordCipher


def _entry(clock, text="hello"):
    return HistoryEntry(message=text, response="hi!", source="local", timestamp=clock())


def test_append_and_read_back():
    kv = MemoryStore()
    clock = FakeClock()
    history = ConversationHistory(RecordCipher(kv), clock=clock)

    history.append(_entry(clock))

    assert [e.message for e in history.entries()] == ["hello"]
    assert "hello" not in str(kv.get(CONVERSATION_DATA_KEY))


def test_capped_to_max_entries():
    clock = FakeClock()
    history = ConversationHistory(RecordCipher(MemoryStore()), clock=clock, max_entries=3)

    for i in range(5):
        history.append(_entry(clock, f"m{i}"))

    assert [e.message for e in history.entries()] == ["m2", "m3", "m4"]


def test_purge_expired():
    clock = FakeClock()
    history = ConversationHistory(RecordCipher(MemoryStore()), clock=clock, retention_days=30)
    history.append(_entry(clock, "old"))
    clock.advance(timedelta(days=31).total_seconds())
    history.append(_entry(clock, "new"))

    assert history.purge_expired() == 1
    assert [e.message for e in history.entries()] == ["new"]


def test_clear():
    clock = FakeClock()
    history = ConversationHistory(RecordCipher(MemoryStore()), clock=clock)
    history.append(_entry(clock))

    history.clear()

    assert history.entries() == []
