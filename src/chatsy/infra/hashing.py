"""One-way hashing for contact identifiers and sanitized fields.

Security:
- SHA-256 (HMAC-SHA256 when CHATSY_CONTACT_HASH_SECRET is set)
- Raw identifiers (names, phone numbers, chat slugs) are NEVER logged
- Weak mode: when the SHA-256 digest is unavailable on this interpreter
  build, a deterministic 32-bit rolling hash is used instead. It is NOT
  cryptographically secure and is reported by `hash_mode()`.
"""

import base64
import hashlib
import hmac
import os

from chatsy.observability.logging import get_logger

logger = get_logger(__name__)

HASH_SECRET_ENV = "CHATSY_CONTACT_HASH_SECRET"

_weak_mode_logged = False


def _get_contact_hash_secret() -> bytes | None:
    """Optional HMAC secret for contact hashing."""
    secret = os.environ.get(HASH_SECRET_ENV)
    return secret.encode() if secret else None


def _sha256(data: bytes, key: bytes | None = None) -> bytes | None:
    """SHA-256 (or HMAC-SHA256) digest, or None when the digest is unavailable."""
    try:
        if key:
            return hmac.new(key, data, "sha256").digest()
        return hashlib.new("sha256", data).digest()
    except ValueError:
        return None


def _note_weak_mode() -> None:
    global _weak_mode_logged
    if not _weak_mode_logged:
        logger.warning("sha256 unavailable, using 32-bit rolling hash (weak mode)")
        _weak_mode_logged = True


def rolling_hash(value: str) -> str:
    """Deterministic 32-bit rolling hash (h * 31 + c), hex of the absolute value."""
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return format(abs(h), "x")


def hash_mode() -> str:
    """Return "sha256" or "rolling" depending on digest availability."""
    return "sha256" if _sha256(b"probe") is not None else "rolling"


def hash_identifier(value: str) -> str:
    """Hex SHA-256 of a value (falls back to rolling_hash in weak mode)."""
    digest = _sha256(value.encode("utf-8"))
    if digest is None:
        _note_weak_mode()
        return rolling_hash(value)
    return digest.hex()


def hash_contact(platform: str, raw_identifier: str) -> str:
    """Generate a contact_id from platform-visible identifying text.

    Args:
        platform: Platform name (e.g. "whatsapp").
        raw_identifier: URL slug, chat title or header text. NEVER logged.

    Returns:
        Base64url-encoded hash (first 32 chars), or the rolling hash in weak mode.
    """
    message = f"{platform}|{raw_identifier}".encode("utf-8")
    digest = _sha256(message, _get_contact_hash_secret())
    if digest is None:
        _note_weak_mode()
        return rolling_hash(f"{platform}|{raw_identifier}")
    # base64url without padding, truncated to 32 chars
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")[:32]
