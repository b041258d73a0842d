"""Encryption of persisted state.

Security:
- AES-256-GCM, fresh 96-bit nonce per operation
- Key generated once, persisted under `encryptionKey`, reused afterwards
- Plaintext and keys are NEVER logged
- Degraded mode: if AES-GCM is unsupported by the crypto backend, records are
  stored as a plaintext envelope {"plaintext": value}. This is logged and
  reported through `degraded`; callers surface it as a notification.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any, Callable

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from chatsy.infra.storage import ENCRYPTION_KEY_KEY, KeyValueStore
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context

logger = get_logger(__name__)

NONCE_SIZE = 12
KEY_SIZE = 32

ENCRYPTION_METHOD = "AES-256-GCM"
DEGRADED_METHOD = "plaintext"

_PLAINTEXT_FIELD = "plaintext"


class RecordDecryptError(Exception):
    """Raised when a stored record cannot be authenticated or decoded."""

    pass


@dataclass(frozen=True)
class EncryptedRecord:
    """Nonce plus AES-GCM ciphertext (tag included)."""

    iv: bytes
    ciphertext: bytes

    def to_dict(self) -> dict[str, str]:
        return {
            "iv": base64.b64encode(self.iv).decode(),
            "ciphertext": base64.b64encode(self.ciphertext).decode(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EncryptedRecord":
        try:
            return cls(
                iv=base64.b64decode(data["iv"], validate=True),
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
            )
        except (KeyError, TypeError, binascii.Error) as exc:
            raise RecordDecryptError("malformed encrypted record") from exc


def is_plaintext_envelope(value: Any) -> bool:
    return isinstance(value, dict) and set(value) == {_PLAINTEXT_FIELD}


class RecordCipher:
    """Encrypts JSON-serializable values for the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        aead_factory: Callable[[bytes], AESGCM] = AESGCM,
    ) -> None:
        self._store = store
        self._aead_factory = aead_factory
        self._aead: AESGCM | None = None
        self.degraded = False
        self._initialize()

    @property
    def method(self) -> str:
        return DEGRADED_METHOD if self.degraded else ENCRYPTION_METHOD

    def _load_or_create_key(self) -> bytes:
        stored = self._store.get(ENCRYPTION_KEY_KEY)
        if isinstance(stored, str):
            try:
                key = base64.b64decode(stored, validate=True)
            except binascii.Error:
                key = b""
            if len(key) == KEY_SIZE:
                return key
            logger.warning("stored encryption key invalid, generating a new one")
        key = os.urandom(KEY_SIZE)
        self._store.set(ENCRYPTION_KEY_KEY, base64.b64encode(key).decode())
        return key

    def _initialize(self) -> None:
        key = self._load_or_create_key()
        try:
            self._aead = self._aead_factory(key)
            self.degraded = False
        except UnsupportedAlgorithm:
            self._aead = None
            self.degraded = True
            logger.warning("AES-GCM unsupported by crypto backend, storing plaintext (degraded mode)")

    def reset_key(self) -> None:
        """Discard the current key and generate a fresh one (used by data clear)."""
        self._store.delete(ENCRYPTION_KEY_KEY)
        self._initialize()

    def encrypt(self, value: Any) -> dict[str, Any]:
        """Encrypt a value.

        Returns:
            EncryptedRecord dict, or the plaintext envelope in degraded mode.
        """
        if self._aead is None:
            return {_PLAINTEXT_FIELD: value}
        payload = json.dumps(value, ensure_ascii=False).encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, payload, None)
        return EncryptedRecord(iv=nonce, ciphertext=ciphertext).to_dict()

    def decrypt(self, record: dict[str, Any]) -> Any:
        """Decrypt a record produced by encrypt().

        Raises:
            RecordDecryptError: If the record is malformed, tampered with or
                encrypted under another key.
        """
        if is_plaintext_envelope(record):
            return record[_PLAINTEXT_FIELD]
        if not isinstance(record, dict):
            raise RecordDecryptError("record is not a mapping")
        if self._aead is None:
            raise RecordDecryptError("cipher unavailable in degraded mode")
        encrypted = EncryptedRecord.from_dict(record)
        try:
            payload = self._aead.decrypt(encrypted.iv, encrypted.ciphertext, None)
        except (InvalidTag, ValueError) as exc:
            raise RecordDecryptError("authentication failed") from exc
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise RecordDecryptError("payload is not JSON") from exc

    def load(self, key: str, default: Any = None) -> Any:
        """Read and decrypt a store key; undecryptable values yield default."""
        record = self._store.get(key)
        if record is None:
            return default
        try:
            return self.decrypt(record)
        except RecordDecryptError:
            logger.warning(
                "stored record unreadable, starting fresh",
                extra={"extra_fields": safe_log_context(store_key=key)},
            )
            return default

    def save(self, key: str, value: Any) -> None:
        self._store.set(key, self.encrypt(value))
