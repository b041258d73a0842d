"""Suggestion request and result models. Transient, never persisted as-is."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from chatsy.contacts.models import ContextEntry, StyleProfile

# "polite" is the softened (delayed) variant
SuggestionKind = Literal["direct", "polite", "engaging"]
SuggestionSource = Literal["huggingface", "gemini", "local"]


@dataclass(frozen=True)
class SuggestionRequest:
    """What the orchestrator needs to produce one suggestion set.

    ATTENTION PII:
    - `message` and context entry texts are PII until sanitized.
    """

    message: str
    context_window: tuple[ContextEntry, ...]
    style: StyleProfile
    contact_id: str


@dataclass(frozen=True)
class Suggestion:
    id: str
    text: str
    kind: SuggestionKind


@dataclass(frozen=True)
class SuggestionSet:
    contact_id: str
    base_text: str
    source: SuggestionSource
    suggestions: tuple[Suggestion, ...]
