"""Suggestion orchestration: sanitize, provider tiers, local fallback, variants.

Tiers run in the order chosen by the `ai_provider` setting. Each external call
is rate limited, bounded by a timeout and retried once on network error or
5xx. Any ProviderError, timeout or empty result moves on to the next tier;
the local responder always produces text, so generation cannot fail.
"""

from __future__ import annotations

import asyncio
import random
import re
from typing import Awaitable, Callable, Mapping

from chatsy.contacts.history import ConversationHistory, HistoryEntry
from chatsy.contacts.models import ContextEntry
from chatsy.infra.time import Clock, utc_now
from chatsy.observability.correlation import correlation_scope, new_correlation_id
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.privacy.sanitizer import sanitize
from chatsy.settings import AiProvider, SuggestionSettings
from chatsy.suggestions.local import LocalResponder
from chatsy.suggestions.models import SuggestionRequest, SuggestionSet, SuggestionSource
from chatsy.suggestions.providers import Provider, ProviderError
from chatsy.suggestions.rate_limit import SlidingWindowRateLimiter
from chatsy.suggestions.variants import build_variants

logger = get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
MAX_RETRIES = 1
RETRY_DELAY = 0.2
MAX_RESPONSE_CHARS = 100

PROVIDER_ORDER: dict[AiProvider, tuple[str, ...]] = {
    "huggingface": ("huggingface", "gemini"),
    "gemini": ("gemini", "huggingface"),
    "local": (),
}

_SCAFFOLD_PATTERN = re.compile(r"^\s*(?:response|reply|assistant|answer)\s*:\s*", re.IGNORECASE)


def post_process(text: str) -> str:
    """Strip leading scaffold, trim, truncate to MAX_RESPONSE_CHARS."""
    cleaned = _SCAFFOLD_PATTERN.sub("", text).strip()
    if len(cleaned) > MAX_RESPONSE_CHARS:
        cleaned = cleaned[: MAX_RESPONSE_CHARS - 3].rstrip() + "..."
    return cleaned


class SuggestionOrchestrator:
    def __init__(
        self,
        providers: Mapping[str, Provider],
        *,
        limiter: SlidingWindowRateLimiter | None = None,
        local: LocalResponder | None = None,
        history: ConversationHistory | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._providers = dict(providers)
        self._limiter = limiter or SlidingWindowRateLimiter(sleep=sleep)
        self._rng = rng or random.Random()
        self._local = local or LocalResponder(self._rng)
        self._history = history
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep

    def set_providers(self, providers: Mapping[str, Provider]) -> None:
        """Swap provider instances (e.g. after API keys change)."""
        self._providers = dict(providers)

    def configured_providers(self) -> list[str]:
        return [name for name, provider in self._providers.items() if provider.configured]

    async def generate(self, request: SuggestionRequest, settings: SuggestionSettings) -> SuggestionSet:
        """Produce the three variants for one request."""
        with correlation_scope(new_correlation_id("sug")):
            safe_request = self._sanitized(request)
            base, source = await self._base_response(safe_request, settings.ai_provider)
            suggestions = build_variants(base, request.style, self._rng)
            if self._history is not None:
                self._history.append(
                    HistoryEntry(
                        message=safe_request.message,
                        response=base,
                        source=source,
                        timestamp=self._clock(),
                    )
                )
            logger.info(
                "suggestions generated",
                extra={
                    "extra_fields": safe_log_context(
                        contact_id=request.contact_id,
                        source=source,
                        base_len=len(base),
                    )
                },
            )
            return SuggestionSet(
                contact_id=request.contact_id,
                base_text=base,
                source=source,
                suggestions=suggestions,
            )

    def _sanitized(self, request: SuggestionRequest) -> SuggestionRequest:
        payload = {
            "message": request.message,
            "context": [
                {"direction": entry.direction, "text": entry.text}
                for entry in request.context_window
            ],
            "contact_id": request.contact_id,
        }
        sanitized = sanitize(payload, clock=self._clock)
        context = tuple(
            ContextEntry(direction=original.direction, text=scrubbed["text"], timestamp=original.timestamp)
            for original, scrubbed in zip(request.context_window, sanitized["context"])
        )
        return SuggestionRequest(
            message=sanitized["message"],
            context_window=context,
            style=request.style,
            contact_id=request.contact_id,
        )

    async def _base_response(self, request: SuggestionRequest, preference: AiProvider) -> tuple[str, SuggestionSource]:
        for name in PROVIDER_ORDER.get(preference, ()):
            provider = self._providers.get(name)
            if provider is None or not provider.configured:
                continue
            try:
                text = await self._call(provider, request)
            except ProviderError as e:
                logger.warning(
                    "provider failed, trying next tier",
                    extra={
                        "extra_fields": safe_log_context(
                            provider=name,
                            reason=e.reason,
                            status=e.status,
                        )
                    },
                )
                continue
            return text, name  # type: ignore[return-value]

        return self._local.respond(request.message), "local"

    async def _call(self, provider: Provider, request: SuggestionRequest) -> str:
        """One provider tier: rate limit, timeout, single retry, post-processing."""
        for attempt in range(MAX_RETRIES + 1):
            await self._limiter.acquire()
            try:
                raw = await asyncio.wait_for(
                    asyncio.to_thread(provider.generate, request),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as e:
                raise ProviderError(provider.name, "timeout") from e
            except ProviderError as e:
                if e.retryable and attempt < MAX_RETRIES:
                    logger.warning(
                        "provider call failed, retrying",
                        extra={
                            "extra_fields": safe_log_context(
                                provider=provider.name,
                                attempt=attempt,
                                status=e.status,
                            )
                        },
                    )
                    await self._sleep(RETRY_DELAY)
                    continue
                raise

            text = post_process(raw)
            if not text:
                raise ProviderError(provider.name, "empty result")
            return text

        raise ProviderError(provider.name, "retries exhausted")
