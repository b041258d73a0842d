"""Redaction helpers for safe logging.

Message text, contact names and API keys pass through here before they reach a
log record. Prefer logging `fingerprint()` and lengths over any content.
"""

import hashlib
import re
from typing import Any

# Patterns that should never appear in logs
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-().]{7,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_URL_PATTERN = re.compile(r"https?://\S+")
_SECRET_PATTERN = re.compile(r"(?i)\b(key|token|bearer)[=: ]+\S+")

_REDACTED = "[REDACTED]"


def fingerprint(value: str) -> str:
    """Non-reversible short fingerprint for correlating values in logs."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


def redact_string(value: str) -> str:
    """Redact PII and credential patterns from a string."""
    result = _URL_PATTERN.sub(_REDACTED, value)
    result = _SECRET_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only, never values
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple, set)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
