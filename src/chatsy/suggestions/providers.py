"""External AI providers.

Security: NEVER log API keys, prompts or generated text. Only log provider
name, status codes and lengths.

Each provider is synchronous (requests) and is run in a worker thread by the
orchestrator. Every failure is raised as ProviderError; `retryable` marks
network errors and 5xx responses.
"""

from __future__ import annotations

from typing import Any, Protocol

import requests

from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.settings import GEMINI_URL, HUGGINGFACE_URL
from chatsy.suggestions.models import SuggestionRequest
from chatsy.suggestions.prompts import build_flat_prompt, build_turns

logger = get_logger(__name__)

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 10


class ProviderError(Exception):
    """Soft failure of one provider call."""

    def __init__(self, provider: str, reason: str, *, status: int | None = None, retryable: bool = False):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
        self.status = status
        self.retryable = retryable


class Provider(Protocol):
    name: str

    @property
    def configured(self) -> bool:
        """True when credentials are present."""
        ...

    def generate(self, request: SuggestionRequest) -> str:
        """Return raw generated text. Raises ProviderError."""
        ...


class HttpProvider:
    """Shared HTTP plumbing: POST JSON, classify failures, decode JSON."""

    name = "http"

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str,
        timeout: float = HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _post(
        self,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = self._session.post(
                self.url,
                json=payload,
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(self.name, f"network error: {type(e).__name__}", retryable=True) from e

        status = response.status_code
        if status >= 500:
            raise ProviderError(self.name, "server error", status=status, retryable=True)
        if not 200 <= status < 300:
            raise ProviderError(self.name, "request rejected", status=status)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, "malformed json", status=status) from e

    def _log_ok(self, text: str) -> None:
        logger.info(
            "provider responded",
            extra={"extra_fields": safe_log_context(provider=self.name, text_len=len(text))},
        )


class HuggingFaceProvider(HttpProvider):
    name = "huggingface"

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str = HUGGINGFACE_URL,
        timeout: float = HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(api_key, url=url, timeout=timeout, session=session)

    def generate(self, request: SuggestionRequest) -> str:
        if not self._api_key:
            raise ProviderError(self.name, "not configured")
        prompt = build_flat_prompt(request)
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_length": 100,
                "temperature": 0.7,
                "top_p": 0.9,
                "do_sample": True,
            },
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        result = self._post(payload, headers=headers)
        try:
            text = result[0]["generated_text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "unexpected response shape") from e
        if not isinstance(text, str):
            raise ProviderError(self.name, "unexpected response shape")
        # Text-generation endpoints may echo the prompt
        if text.startswith(prompt):
            text = text[len(prompt) :]
        self._log_ok(text)
        return text


class GeminiProvider(HttpProvider):
    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str = GEMINI_URL,
        timeout: float = HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(api_key, url=url, timeout=timeout, session=session)

    def generate(self, request: SuggestionRequest) -> str:
        if not self._api_key:
            raise ProviderError(self.name, "not configured")
        payload = {
            "contents": build_turns(request),
            "generationConfig": {
                "temperature": 0.7,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": 100,
            },
        }
        headers = {"Content-Type": "application/json"}
        result = self._post(payload, headers=headers, params={"key": self._api_key})
        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "unexpected response shape") from e
        if not isinstance(text, str):
            raise ProviderError(self.name, "unexpected response shape")
        self._log_ok(text)
        return text
