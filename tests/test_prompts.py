"""Tests for provider prompt construction."""

from helpers import START

from chatsy.contacts.models import ContextEntry, StyleProfile
from chatsy.suggestions.models import SuggestionRequest
from chatsy.suggestions.prompts import (
    build_flat_prompt,
    build_turns,
    style_directive,
    summarize_context,
)


def _entry(direction, text):
    return ContextEntry(direction=direction, text=text, timestamp=START)


def _request(message="are you coming?", entries=(), style=StyleProfile()):
    return SuggestionRequest(message=message, context_window=tuple(entries), style=style, contact_id="c1")


class TestStyleDirective:
    def test_formal_with_emoji(self):
        directive = style_directive(StyleProfile(formality=0.9, emoji_rate=0.8))

        assert "formal" in directive
        assert "emoji" in directive

    def test_casual_default(self):
        directive = style_directive(StyleProfile())

        assert "casual" in directive
        assert "emoji" not in directive


def test_summary_keeps_last_five():
    entries = [_entry("in" if i % 2 == 0 else "out", f"m{i}") for i in range(7)]

    summary = summarize_context(entries)

    assert summary.splitlines() == ["Them: m2", "You: m3", "Them: m4", "You: m5", "Them: m6"]


def test_flat_prompt_layout():
    prompt = build_flat_prompt(_request(entries=[_entry("out", "lunch at 1?")]))

    lines = prompt.splitlines()
    assert lines[0].startswith("Reply in a casual")
    assert "You: lunch at 1?" in lines
    assert lines[-2] == "Message: are you coming?"
    assert lines[-1] == "Response:"


def test_flat_prompt_without_context():
    assert "Conversation so far" not in build_flat_prompt(_request())


class TestTurns:
    def test_ends_with_user_turn_containing_message(self):
        entries = [_entry("in", "hey"), _entry("out", "hi!"), _entry("in", "are you coming?")]

        turns = build_turns(_request(entries=entries))

        assert [t["role"] for t in turns] == ["user", "model", "user"]
        assert turns[-1]["parts"][0]["text"].endswith("are you coming?")
        # The message appears once, not duplicated from the window
        assert sum(t["parts"][0]["text"].count("are you coming?") for t in turns) == 1

    def test_leading_model_turns_dropped_and_same_roles_merged(self):
        entries = [_entry("out", "sent first"), _entry("in", "a"), _entry("in", "b")]

        turns = build_turns(_request(message="c", entries=entries))

        assert len(turns) == 1
        assert turns[0]["role"] == "user"
        assert turns[0]["parts"][0]["text"].startswith("a\nb\n")
