"""Outbound payload sanitization.

Everything sent to an external provider goes through sanitize(). Substitution
order matters: phone, email, URL, common first names, street addresses.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from chatsy.infra.hashing import hash_identifier
from chatsy.infra.time import Clock, utc_now

DENYLIST_FIELDS = frozenset({"contact_id", "phone_number", "email", "full_name", "platform"})

PHONE_PATTERN = re.compile(
    r"(?:\+?\d{1,2}[\s.-]?)?(?:\(\d{3}\)|\b\d{3})[\s.-]?\d{3}[\s.-]?\d{4}\b"
)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
URL_PATTERN = re.compile(r"https?://[^\s]+")
COMMON_NAMES_PATTERN = re.compile(
    r"\b(John|Jane|Mike|Sarah|David|Lisa|Tom|Amy|Chris|Emma)\b", re.IGNORECASE
)
ADDRESS_PATTERN = re.compile(
    r"\b\d+\s+(?:[A-Za-z]+\s+){1,3}(Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr)\b",
    re.IGNORECASE,
)
# Two capitalized words in a row ("Maria Silva")
FULL_NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\b")

_SUBSTITUTIONS = (
    (PHONE_PATTERN, "[PHONE]"),
    (EMAIL_PATTERN, "[EMAIL]"),
    (URL_PATTERN, "[URL]"),
    (COMMON_NAMES_PATTERN, "[NAME]"),
    (ADDRESS_PATTERN, "[ADDRESS]"),
)

_PII_PATTERNS = (
    PHONE_PATTERN,
    EMAIL_PATTERN,
    ADDRESS_PATTERN,
    FULL_NAME_PATTERN,
)

MEDIUM_SIZE_THRESHOLD = 1000


def scrub_text(text: str) -> str:
    """Replace PII patterns with placeholders."""
    result = text
    for pattern, placeholder in _SUBSTITUTIONS:
        result = pattern.sub(placeholder, result)
    return result


def _serialize(data: Any) -> str:
    return json.dumps(data, default=str, ensure_ascii=False)


def contains_pii(data: Any) -> bool:
    """True if any PII pattern matches the JSON serialization of data."""
    serialized = _serialize(data)
    return any(pattern.search(serialized) for pattern in _PII_PATTERNS)


def privacy_level(data: Any) -> str:
    """'high' with PII, 'medium' above 1000 serialized chars, else 'low'."""
    if contains_pii(data):
        return "high"
    if len(_serialize(data)) > MEDIUM_SIZE_THRESHOLD:
        return "medium"
    return "low"


def _scrub_context(context: Any) -> Any:
    if isinstance(context, str):
        return scrub_text(context)
    if isinstance(context, (list, tuple)):
        scrubbed = []
        for entry in context:
            if isinstance(entry, str):
                scrubbed.append(scrub_text(entry))
            elif isinstance(entry, Mapping):
                item = dict(entry)
                if isinstance(item.get("text"), str):
                    item["text"] = scrub_text(item["text"])
                scrubbed.append(item)
            else:
                scrubbed.append(entry)
        return scrubbed
    return context


def sanitize(payload: Mapping[str, Any], clock: Clock = utc_now) -> dict[str, Any]:
    """Return a copy of payload safe to send to external providers.

    Drops denylisted fields, hashes contact_name, scrubs message and context,
    and tags the result with privacy_level (of the input) and an ISO timestamp.
    """
    level = privacy_level(payload)
    sanitized = {key: value for key, value in payload.items() if key not in DENYLIST_FIELDS}

    contact_name = sanitized.get("contact_name")
    if contact_name:
        sanitized["contact_name"] = hash_identifier(str(contact_name))

    if isinstance(sanitized.get("message"), str):
        sanitized["message"] = scrub_text(sanitized["message"])
    if "context" in sanitized:
        sanitized["context"] = _scrub_context(sanitized["context"])

    sanitized["privacy_level"] = level
    sanitized["timestamp"] = clock().isoformat()
    return sanitized
