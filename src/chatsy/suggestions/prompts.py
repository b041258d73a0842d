"""Prompt construction for the external providers.

Both providers see the same three parts: a style directive, a short summary
of the recent conversation and the last inbound message. HuggingFace gets a
flattened string, Gemini gets structured turns.
"""

from __future__ import annotations

from typing import Any, Iterable

from chatsy.contacts.models import ContextEntry, StyleProfile
from chatsy.suggestions.models import SuggestionRequest

SUMMARY_ENTRIES = 5
FORMALITY_THRESHOLD = 0.7
EMOJI_THRESHOLD = 0.5


def style_directive(style: StyleProfile) -> str:
    parts = []
    if style.formality > FORMALITY_THRESHOLD:
        parts.append("Reply in a formal, polite tone.")
    else:
        parts.append("Reply in a casual, friendly tone.")
    if style.emoji_rate > EMOJI_THRESHOLD:
        parts.append("Include an emoji.")
    parts.append("Keep it short.")
    return " ".join(parts)


def _speaker(entry: ContextEntry) -> str:
    return "Them" if entry.direction == "in" else "You"


def summarize_context(entries: Iterable[ContextEntry], limit: int = SUMMARY_ENTRIES) -> str:
    """Flatten the last `limit` entries as "Them: ..." / "You: ..." lines."""
    recent = list(entries)[-limit:]
    return "\n".join(f"{_speaker(entry)}: {entry.text}" for entry in recent)


def build_flat_prompt(request: SuggestionRequest) -> str:
    summary = summarize_context(request.context_window)
    lines = [style_directive(request.style)]
    if summary:
        lines.append(f"Conversation so far:\n{summary}")
    lines.append(f"Message: {request.message}")
    lines.append("Response:")
    return "\n".join(lines)


def build_turns(request: SuggestionRequest) -> list[dict[str, Any]]:
    """Gemini `contents`: alternating user/model turns ending with the message."""
    history = list(request.context_window)[-SUMMARY_ENTRIES:]
    # The last inbound message closes the conversation as its own turn
    if history and history[-1].direction == "in" and history[-1].text == request.message:
        history = history[:-1]

    turns: list[dict[str, Any]] = []
    for entry in history:
        role = "user" if entry.direction == "in" else "model"
        if not turns and role == "model":
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["parts"][0]["text"] += "\n" + entry.text
        else:
            turns.append({"role": role, "parts": [{"text": entry.text}]})

    final_text = f"{style_directive(request.style)}\n{request.message}"
    if turns and turns[-1]["role"] == "user":
        turns[-1]["parts"][0]["text"] += "\n" + final_text
    else:
        turns.append({"role": "user", "parts": [{"text": final_text}]})
    return turns
