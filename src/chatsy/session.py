"""Per-page session: wires resolver, observer, store, privacy and orchestrator.

One Session per messaging page; there are no module-level singletons. The
session is the single writer of contact state and the owner of in-flight
suggestion invalidation: results are shown only if the active contact and
the context generation are unchanged since the request was built.

UI collaborators subscribe to SuggestionsShown, SuggestionSelected,
SuggestionRejected and Notification events.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Literal, Mapping, Union

import requests
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from chatsy.contacts.history import ConversationHistory
from chatsy.contacts.store import ContactStore
from chatsy.feed.events import ContactChanged, DomainEvent, MessageReceived, TypingDetected
from chatsy.feed.observer import FeedObserver
from chatsy.infra.hashing import hash_mode
from chatsy.infra.scheduler import LoopScheduler, Scheduler
from chatsy.infra.storage import API_KEYS_KEY, SETTINGS_KEY, KeyValueStore, MemoryStore, SqliteStore
from chatsy.infra.time import Clock, MonotonicClock, monotonic, utc_now
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.platforms.page import HostPage, MutationRecord
from chatsy.platforms.resolver import PlatformResolver, PlatformTimeout
from chatsy.privacy.crypto import RecordCipher
from chatsy.settings import (
    ApiKeys,
    ApiKeysUpdate,
    EngineConfig,
    SettingsUpdate,
    SuggestionSettings,
    merge_api_keys,
)
from chatsy.suggestions.models import Suggestion, SuggestionRequest, SuggestionSet, SuggestionSource
from chatsy.suggestions.orchestrator import SuggestionOrchestrator
from chatsy.suggestions.providers import GeminiProvider, HuggingFaceProvider, Provider
from chatsy.suggestions.rate_limit import SlidingWindowRateLimiter

logger = get_logger(__name__)

PROVIDER_DISPLAY_NAMES = {"huggingface": "HuggingFace", "gemini": "Google Gemini"}

NotificationKind = Literal["crypto_unavailable", "platform_not_ready"]


@dataclass(frozen=True)
class SuggestionsShown:
    contact_id: str
    source: SuggestionSource
    suggestions: tuple[Suggestion, ...]


@dataclass(frozen=True)
class SuggestionSelected:
    contact_id: str
    suggestion_id: str
    inserted: bool


@dataclass(frozen=True)
class SuggestionRejected:
    contact_id: str
    suggestion_id: str


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    message: str


UiEvent = Union[SuggestionsShown, SuggestionSelected, SuggestionRejected, Notification]
UiListener = Callable[[UiEvent], None]


class UnknownSuggestionError(LookupError):
    """Raised when a suggestion id is not pending (expired, stale or never shown)."""

    pass


class Session:
    def __init__(
        self,
        page: HostPage,
        *,
        store: KeyValueStore | None = None,
        config: EngineConfig | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock = utc_now,
        monotonic_clock: MonotonicClock = monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        http_session: requests.Session | None = None,
        aead_factory: Callable[[bytes], AESGCM] = AESGCM,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or EngineConfig.from_env(environ)
        self.page = page
        self._clock = clock
        self._sleep = sleep
        self._environ = environ
        self._http_session = http_session

        if store is None:
            store = SqliteStore(self.config.store_path) if self.config.store_path else MemoryStore()
        self.kv = store
        self.cipher = RecordCipher(store, aead_factory=aead_factory)
        self.settings = self._load_settings()

        self.resolver = PlatformResolver(
            page,
            clock=clock,
            sleep=sleep,
            monotonic_clock=monotonic_clock,
        )
        self.observer = FeedObserver(
            self.resolver,
            scheduler or LoopScheduler(),
            clock=clock,
            dedup_window=self.config.dedup_window,
            typing_debounce=self.config.typing_debounce,
        )
        self.contacts = ContactStore(
            self.cipher,
            clock=clock,
            retention_days=self.config.retention_days,
        )
        self.history = ConversationHistory(
            self.cipher,
            clock=clock,
            max_entries=self.config.max_history,
            retention_days=self.config.retention_days,
        )
        self.limiter = SlidingWindowRateLimiter(
            self.config.rate_limit_requests,
            self.config.rate_limit_window,
            monotonic_clock=monotonic_clock,
            sleep=sleep,
        )
        self.orchestrator = SuggestionOrchestrator(
            self._build_providers(),
            limiter=self.limiter,
            history=self.history,
            timeout=self.config.request_timeout,
            rng=rng,
            clock=clock,
            sleep=sleep,
        )

        self._listeners: list[UiListener] = []
        self._pending: dict[str, tuple[str, Suggestion]] = {}
        self._tasks: set[asyncio.Task] = set()
        self.last_suggestions: SuggestionSet | None = None
        self.observer.subscribe(self._on_domain_event)

    # --- configuration ---

    def _load_settings(self) -> SuggestionSettings:
        raw = self.kv.get(SETTINGS_KEY)
        if not raw:
            return SuggestionSettings()
        try:
            return SuggestionSettings.model_validate(raw)
        except ValidationError:
            logger.warning("stored settings invalid, using defaults")
            return SuggestionSettings()

    def update_settings(self, update: SettingsUpdate | Mapping[str, Any]) -> SuggestionSettings:
        """Apply a configuration push; takes effect on the next detection cycle.

        Raises:
            pydantic.ValidationError: If the update is invalid.
        """
        if not isinstance(update, SettingsUpdate):
            update = SettingsUpdate.model_validate(update)
        settings = SuggestionSettings.model_validate(update.apply(self.settings).model_dump())
        self.kv.set(SETTINGS_KEY, settings.model_dump())
        self.settings = settings
        logger.info(
            "settings updated",
            extra={
                "extra_fields": safe_log_context(
                    enabled=settings.enabled,
                    ai_provider=settings.ai_provider,
                    max_suggestions=settings.max_suggestions,
                )
            },
        )
        return settings

    def api_keys(self) -> ApiKeys:
        return merge_api_keys(self.cipher.load(API_KEYS_KEY, default={}), self._environ)

    def update_api_keys(self, update: ApiKeysUpdate) -> dict[str, bool]:
        """Store provider keys encrypted; an empty string removes a key."""
        stored = self.cipher.load(API_KEYS_KEY, default={})
        if not isinstance(stored, dict):
            stored = {}
        for name, value in update.model_dump(exclude_none=True).items():
            if value:
                stored[name] = value
            else:
                stored.pop(name, None)
        self.cipher.save(API_KEYS_KEY, stored)
        self.orchestrator.set_providers(self._build_providers())
        configured = self.api_keys().configured()
        logger.info("api keys updated", extra={"extra_fields": safe_log_context(**configured)})
        return configured

    def _build_providers(self) -> dict[str, Provider]:
        keys = self.api_keys()
        return {
            "huggingface": HuggingFaceProvider(
                keys.huggingface,
                url=self.config.huggingface_url,
                timeout=self.config.request_timeout,
                session=self._http_session,
            ),
            "gemini": GeminiProvider(
                keys.gemini,
                url=self.config.gemini_url,
                timeout=self.config.request_timeout,
                session=self._http_session,
            ),
        }

    # --- lifecycle ---

    def subscribe(self, listener: UiListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        self.resolver.resolve()
        self.observer.start()
        if self.cipher.degraded:
            self._notify(
                Notification(
                    kind="crypto_unavailable",
                    message="Encryption unavailable; local data is stored unencrypted.",
                )
            )

    def stop(self) -> None:
        self.observer.stop()
        for task in list(self._tasks):
            task.cancel()

    async def wait_until_ready(self) -> bool:
        """Wait for the platform; surfaces a notification on timeout.

        Raises:
            PlatformTimeout: If the page is not ready within the configured timeout.
        """
        try:
            await self.resolver.wait_until_ready(timeout=self.config.ready_timeout)
        except PlatformTimeout:
            self._notify(
                Notification(
                    kind="platform_not_ready",
                    message="Messaging page did not become ready in time.",
                )
            )
            raise
        return True

    def process_batch(self, records: Iterable[MutationRecord]) -> None:
        self.observer.process_batch(records)

    def navigate(self, url: str, title: str | None = None) -> None:
        """Handle an in-app navigation: re-resolve and re-check the contact."""
        self.page.navigate(url, title)
        self.resolver.redetect()
        self.observer.check_contact()

    # --- domain events ---

    def _on_domain_event(self, event: DomainEvent) -> None:
        if isinstance(event, ContactChanged):
            self.contacts.activate(event.contact_id, event.platform)
            self._pending.clear()
        elif isinstance(event, MessageReceived):
            contact = self.contacts.get_or_create(event.contact_id, event.platform)
            self.contacts.update(contact, event)
        elif isinstance(event, TypingDetected):
            self._on_typing(event)

    def _on_typing(self, event: TypingDetected) -> None:
        if not self.settings.enabled:
            return
        if event.contact_id != self.contacts.context.contact_id:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("no running event loop, suggestion skipped")
            return
        task = loop.create_task(self._suggest_safely())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _suggest_safely(self) -> None:
        try:
            await self.request_suggestions()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("suggestion generation failed")

    def _is_current(self, contact_id: str | None, generation: int) -> bool:
        return contact_id == self.contacts.context.contact_id and generation == self.contacts.generation

    async def request_suggestions(self) -> SuggestionSet | None:
        """Generate suggestions for the active conversation.

        Returns None when there is no inbound message to answer or when the
        result went stale (contact switched while generating).
        """
        snapshot = self.contacts.snapshot()
        last = snapshot.last_inbound()
        if snapshot.contact_id is None or last is None:
            return None

        settings = self.settings
        if settings.response_delay_ms:
            await self._sleep(settings.response_delay_ms / 1000)
            if not self._is_current(snapshot.contact_id, snapshot.generation):
                return None

        request = SuggestionRequest(
            message=last.text,
            context_window=snapshot.entries,
            style=snapshot.style,
            contact_id=snapshot.contact_id,
        )
        result = await self.orchestrator.generate(request, settings)

        if not self._is_current(result.contact_id, snapshot.generation):
            logger.info(
                "stale suggestions discarded",
                extra={"extra_fields": safe_log_context(contact_id=result.contact_id)},
            )
            return None

        shown = result.suggestions[: settings.max_suggestions]
        # Only the latest shown set can be selected or rejected
        self._pending.clear()
        for suggestion in shown:
            self._pending[suggestion.id] = (result.contact_id, suggestion)
        self.last_suggestions = result
        self._notify(SuggestionsShown(contact_id=result.contact_id, source=result.source, suggestions=shown))
        return result

    # --- outcomes ---

    def _take_pending(self, suggestion_id: str) -> tuple[str, Suggestion]:
        try:
            return self._pending.pop(suggestion_id)
        except KeyError:
            raise UnknownSuggestionError(suggestion_id) from None

    def select(self, suggestion_id: str) -> bool:
        """Insert a shown suggestion and record acceptance.

        Returns:
            True if the text was written into the page input.

        Raises:
            UnknownSuggestionError: If the id is not pending.
        """
        contact_id, suggestion = self._take_pending(suggestion_id)
        adapter = self.resolver.adapter
        inserted = adapter.insert_text(suggestion.text) if adapter else False
        self.contacts.record_outcome(contact_id, suggestion_id, accepted=True)
        self._notify(SuggestionSelected(contact_id=contact_id, suggestion_id=suggestion_id, inserted=inserted))
        return inserted

    def reject(self, suggestion_id: str) -> None:
        """Record a rejection.

        Raises:
            UnknownSuggestionError: If the id is not pending.
        """
        contact_id, _ = self._take_pending(suggestion_id)
        self.contacts.record_outcome(contact_id, suggestion_id, accepted=False)
        self._notify(SuggestionRejected(contact_id=contact_id, suggestion_id=suggestion_id))

    # --- data management ---

    def run_retention(self) -> dict[str, int]:
        contacts_purged = self.contacts.purge_expired()
        history_purged = self.history.purge_expired()
        logger.info(
            "retention completed",
            extra={
                "extra_fields": safe_log_context(
                    contacts_purged=contacts_purged,
                    history_purged=history_purged,
                )
            },
        )
        return {"contacts_purged": contacts_purged, "history_purged": history_purged}

    def clear_data(self) -> None:
        """Wipe all persisted data and rotate the encryption key."""
        self.kv.clear()
        self.cipher.reset_key()
        self.contacts.clear()
        self._pending.clear()
        self.last_suggestions = None
        self.settings = SuggestionSettings()
        self.orchestrator.set_providers(self._build_providers())
        logger.info("all data cleared")

    # --- reporting ---

    def stats(self) -> dict[str, Any]:
        return {
            **self.contacts.stats(),
            "observer": self.observer.stats.as_dict(),
            "history_entries": len(self.history.entries()),
        }

    def status(self) -> dict[str, Any]:
        return {
            "platform": self.resolver.platform,
            "resolver_state": self.resolver.state.value,
            "ready": self.resolver.is_ready(),
            "monitoring": self.observer.running,
            "enabled": self.settings.enabled,
            "active_contact": self.contacts.context.contact_id is not None,
            "encryption_degraded": self.cipher.degraded,
        }

    def privacy_report(self) -> dict[str, Any]:
        configured = self.orchestrator.configured_providers()
        return {
            "encryption_enabled": not self.cipher.degraded,
            "encryption_method": self.cipher.method,
            "data_retention": f"{self.config.retention_days} days",
            "external_apis": [PROVIDER_DISPLAY_NAMES[name] for name in configured],
            "data_transmission": "Minimal, anonymized",
            "local_storage": "Plaintext" if self.cipher.degraded else "Encrypted",
            "hash_mode": hash_mode(),
        }

    def _notify(self, event: UiEvent) -> None:
        if isinstance(event, Notification):
            logger.warning("notification", extra={"extra_fields": safe_log_context(kind=event.kind)})
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "ui listener failed",
                    extra={"extra_fields": safe_log_context(event=type(event).__name__)},
                )
