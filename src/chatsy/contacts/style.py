"""Conversation style estimation.

Each inbound message yields an observation (formality, has emoji) that is
folded into the contact's StyleProfile with an exponential moving average.
"""

import re

from chatsy.contacts.models import StyleProfile

STYLE_ALPHA = 0.2

EMOJI_PATTERN = re.compile(
    "["
    "\U0001F300-\U0001F5FF"
    "\U0001F600-\U0001F64F"
    "\U0001F900-\U0001F9FF"
    "\U0001F680-\U0001F6FF"
    "\U0001FA70-\U0001FAFF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "]"
)

_FORMAL_MARKERS = re.compile(
    r"\b(please|thank you|regards|sincerely|kindly|would you|could you|dear|appreciate)\b",
    re.IGNORECASE,
)
_INFORMAL_MARKERS = re.compile(
    r"\b(lol|lmao|haha+|omg|btw|thx|ty|u|ur|gonna|wanna|gotta|yo|hey|sup|ya|nah)\b",
    re.IGNORECASE,
)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def has_emoji(text: str) -> bool:
    return EMOJI_PATTERN.search(text) is not None


def formality_score(text: str) -> float:
    """Heuristic formality of one message in [0, 1]."""
    stripped = text.strip()
    if not stripped:
        return 0.5
    score = 0.5
    if stripped[0].isupper():
        score += 0.1
    if stripped[-1] in ".?!":
        score += 0.1
    if _FORMAL_MARKERS.search(stripped):
        score += 0.3
    if _INFORMAL_MARKERS.search(stripped):
        score -= 0.3
    if has_emoji(stripped):
        score -= 0.1
    if stripped.islower():
        score -= 0.1
    return _clamp(score)


def update_style(style: StyleProfile, text: str, alpha: float = STYLE_ALPHA) -> StyleProfile:
    """Fold one inbound message into the profile (EMA)."""
    formality = style.formality + alpha * (formality_score(text) - style.formality)
    emoji_observed = 1.0 if has_emoji(text) else 0.0
    emoji_rate = style.emoji_rate + alpha * (emoji_observed - style.emoji_rate)
    return StyleProfile(formality=_clamp(formality), emoji_rate=_clamp(emoji_rate))
