"""User settings and engine configuration.

Provides:
- SuggestionSettings: popup-facing settings, validated by pydantic and stored
  under `settings`
- SettingsUpdate: partial update body for configuration pushes
- EngineConfig: engine tunables from CHATSY_* environment variables
- ApiKeys: provider keys merged from the encrypted `apiKeys` record and env
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

AiProvider = Literal["huggingface", "gemini", "local"]
PrivacyLevel = Literal["high", "medium", "low"]

HUGGINGFACE_URL = "https://api-inference.huggingface.co/models/microsoft/DialoGPT-medium"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent"


class SuggestionSettings(BaseModel):
    """Settings pushed by the popup. Applied on the next detection cycle."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    privacy_level: PrivacyLevel = "high"
    ai_provider: AiProvider = "huggingface"
    max_suggestions: int = Field(default=3, ge=1, le=3)
    response_delay_ms: int = Field(default=1000, ge=0, le=10_000)


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    privacy_level: PrivacyLevel | None = None
    ai_provider: AiProvider | None = None
    max_suggestions: int | None = Field(default=None, ge=1, le=3)
    response_delay_ms: int | None = Field(default=None, ge=0, le=10_000)

    def apply(self, current: SuggestionSettings) -> SuggestionSettings:
        changes = self.model_dump(exclude_none=True)
        return current.model_copy(update=changes)


class ApiKeysUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    huggingface: str | None = None
    gemini: str | None = None


@dataclass(frozen=True)
class ApiKeys:
    """Provider credentials. NEVER logged."""

    huggingface: str | None = None
    gemini: str | None = None

    def configured(self) -> dict[str, bool]:
        return {"huggingface": bool(self.huggingface), "gemini": bool(self.gemini)}


def merge_api_keys(stored: Mapping[str, Any] | None, environ: Mapping[str, str] | None = None) -> ApiKeys:
    """Stored keys win; environment variables fill the gaps."""
    env = os.environ if environ is None else environ
    stored = stored or {}
    return ApiKeys(
        huggingface=stored.get("huggingface") or env.get("CHATSY_HUGGINGFACE_API_KEY") or None,
        gemini=stored.get("gemini") or env.get("CHATSY_GEMINI_API_KEY") or None,
    )


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number") from None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer") from None


@dataclass(frozen=True)
class EngineConfig:
    """Engine tunables.

    Attributes:
        huggingface_url: Inference endpoint for the HuggingFace model.
        gemini_url: Gemini generateContent endpoint (key passed as query param).
        request_timeout: Per-call provider timeout in seconds.
        rate_limit_requests: Requests allowed per rate window.
        rate_limit_window: Rate window length in seconds.
        retention_days: Inactivity/age threshold for the retention job.
        dedup_window: Duplicate message window in seconds.
        typing_debounce: Typing debounce in seconds.
        ready_timeout: Platform readiness timeout in seconds.
        max_history: Conversation history cap.
        store_path: SQLite path, or None for an in-memory store.
    """

    huggingface_url: str = HUGGINGFACE_URL
    gemini_url: str = GEMINI_URL
    request_timeout: float = 10.0
    rate_limit_requests: int = 60
    rate_limit_window: float = 60.0
    retention_days: int = 30
    dedup_window: float = 5.0
    typing_debounce: float = 1.0
    ready_timeout: float = 10.0
    max_history: int = 1000
    store_path: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """Load from CHATSY_* variables; unset values keep defaults.

        Raises:
            RuntimeError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        return cls(
            huggingface_url=env.get("CHATSY_HUGGINGFACE_URL") or HUGGINGFACE_URL,
            gemini_url=env.get("CHATSY_GEMINI_URL") or GEMINI_URL,
            request_timeout=_env_float(env, "CHATSY_REQUEST_TIMEOUT", 10.0),
            rate_limit_requests=_env_int(env, "CHATSY_RATE_LIMIT_REQUESTS", 60),
            rate_limit_window=_env_float(env, "CHATSY_RATE_LIMIT_WINDOW", 60.0),
            retention_days=_env_int(env, "CHATSY_RETENTION_DAYS", 30),
            dedup_window=_env_float(env, "CHATSY_DEDUP_WINDOW", 5.0),
            typing_debounce=_env_float(env, "CHATSY_TYPING_DEBOUNCE", 1.0),
            ready_timeout=_env_float(env, "CHATSY_READY_TIMEOUT", 10.0),
            max_history=_env_int(env, "CHATSY_MAX_HISTORY", 1000),
            store_path=env.get("CHATSY_STORE_PATH") or None,
        )
