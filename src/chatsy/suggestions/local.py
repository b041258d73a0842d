"""Local pattern-matching responder. Never fails, never calls out."""

from __future__ import annotations

import random
import re

SHORT_MESSAGE_CHARS = 20

WELLBEING_RESPONSES = (
    "I'm doing great, thanks for asking! 😊",
    "All good here! How about you?",
    "Pretty good! Hope you're well too",
)
GREETING_RESPONSES = (
    "Hey there! 👋",
    "Hi! How are you?",
    "Hello! Nice to hear from you",
)
GRATITUDE_RESPONSES = (
    "You're welcome! 😊",
    "Anytime!",
    "Glad I could help!",
)
FAREWELL_RESPONSES = (
    "See you later! 👋",
    "Take care!",
    "Talk to you soon!",
)
SHORT_RESPONSES = (
    "Got it! 👍",
    "I see!",
    "Interesting!",
    "Tell me more!",
)
DEFAULT_RESPONSES = (
    "That sounds good!",
    "I understand what you mean",
    "Thanks for sharing that",
    "I appreciate you telling me",
)

# Checked in order; first match wins
_BUCKETS = (
    ("wellbeing", re.compile(r"\bhow are (?:you|u)\b|\bhow's it going\b"), WELLBEING_RESPONSES),
    ("greeting", re.compile(r"\b(?:hello|hi|hey|hiya)\b"), GREETING_RESPONSES),
    ("gratitude", re.compile(r"\b(?:thank|thanks|thx)"), GRATITUDE_RESPONSES),
    ("farewell", re.compile(r"\b(?:bye|goodbye|see you|see ya)\b"), FAREWELL_RESPONSES),
)


class LocalResponder:
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def bucket(self, message: str) -> str:
        lowered = message.lower()
        for name, pattern, _ in _BUCKETS:
            if pattern.search(lowered):
                return name
        if len(message.strip()) < SHORT_MESSAGE_CHARS:
            return "short"
        return "default"

    def respond(self, message: str) -> str:
        name = self.bucket(message)
        for bucket_name, _, responses in _BUCKETS:
            if bucket_name == name:
                return self._rng.choice(responses)
        if name == "short":
            return self._rng.choice(SHORT_RESPONSES)
        return self._rng.choice(DEFAULT_RESPONSES)
