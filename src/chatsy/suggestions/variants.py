"""Turn one base response into the three suggestion variants."""

from __future__ import annotations

import random
import uuid
from typing import Callable

from chatsy.contacts.models import StyleProfile
from chatsy.suggestions.models import Suggestion

POLITE_PREFIXES = (
    "Thanks for that! ",
    "I appreciate you sharing that. ",
    "That's interesting! ",
    "I see what you mean. ",
)
ENGAGING_QUESTIONS = (
    "What do you think?",
    "How about you?",
    "What's new with you?",
)
ENGAGING_EMOJI = "😊"
EMOJI_THRESHOLD = 0.5


def _new_id() -> str:
    return uuid.uuid4().hex


def make_polite(base: str, rng: random.Random) -> str:
    return rng.choice(POLITE_PREFIXES) + base


def make_engaging(base: str, style: StyleProfile, rng: random.Random) -> str:
    """Base text, an emoji for emoji-heavy contacts, then a question."""
    parts = [base.rstrip()]
    if style.emoji_rate > EMOJI_THRESHOLD:
        parts.append(ENGAGING_EMOJI)
    parts.append(rng.choice(ENGAGING_QUESTIONS))
    return " ".join(part for part in parts if part)


def build_variants(
    base: str,
    style: StyleProfile,
    rng: random.Random,
    id_factory: Callable[[], str] = _new_id,
) -> tuple[Suggestion, ...]:
    """direct, polite, engaging (in that order)."""
    return (
        Suggestion(id=id_factory(), text=base, kind="direct"),
        Suggestion(id=id_factory(), text=make_polite(base, rng), kind="polite"),
        Suggestion(id=id_factory(), text=make_engaging(base, style, rng), kind="engaging"),
    )
