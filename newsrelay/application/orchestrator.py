"""Cache-first, quota-gated fetch orchestration.

Every upstream request flows through :class:`FetchOrchestrator`:

1. read the cache; a fresh entry is returned without charging quota
2. otherwise charge the caller's quota; when exhausted, serve a stale entry
   if one exists
3. call the provider under a timeout, coalescing concurrent misses on the
   same key into one upstream call
4. store the result, or serve the stale entry when the provider fails
"""

import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from .cache import CacheEntry, CacheStore
from .clock import Clock, utc_now
from .quota import QuotaLimits, QuotaTracker
from .single_flight import SingleFlight
from .upstream_limits import enforce_timeout
from ..constants import DEFAULT_NEWS_CACHE_TTL_SECONDS, DEFAULT_PROVIDER_TIMEOUT_SECONDS
from ..domain.exceptions import (
    InvalidQueryError,
    NewsRelayError,
    ProviderError,
    QuotaExceededError,
    UnauthenticatedError,
    UnknownProviderError,
)
from ..domain.models import ArticleQuery, Resolution
from ..enums import CacheState, ProviderName
from ..infrastructure.providers.base import ArticleProvider
from ..logging import debug, info, warning, LogRecord, LogEvent

T = TypeVar("T")

Producer = Callable[[], Awaitable[Dict[str, Any]]]

STALE_AFTER_QUOTA_NOTE = "Quota exceeded; serving cached data"
STALE_AFTER_FAILURE_NOTE = "Fresh data generation failed; serving cached data"


class FetchOrchestrator:
    def __init__(
        self,
        cache: CacheStore,
        quota: QuotaTracker,
        limits: QuotaLimits,
        article_providers: Optional[Dict[ProviderName, ArticleProvider]] = None,
        provider_timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        news_ttl_seconds: float = DEFAULT_NEWS_CACHE_TTL_SECONDS,
        clock: Clock = utc_now,
    ):
        if provider_timeout_seconds <= 0:
            raise ValueError(
                f"provider_timeout_seconds must be positive, got {provider_timeout_seconds}"
            )
        self.cache = cache
        self.quota = quota
        self.limits = limits
        self._article_providers = dict(article_providers or {})
        self._timeout = provider_timeout_seconds
        self._news_ttl = news_ttl_seconds
        self._clock = clock
        self._single_flight = SingleFlight()

    @property
    def provider_timeout_seconds(self) -> float:
        return self._timeout

    @property
    def article_providers(self) -> Dict[ProviderName, ArticleProvider]:
        return dict(self._article_providers)

    @staticmethod
    def require_identity(identity: Optional[str], request_id: Optional[str]) -> str:
        if identity is None or not identity.strip():
            raise UnauthenticatedError(
                "An authenticated identity is required", request_id=request_id
            )
        return identity.strip()

    def _article_provider(
        self, query: ArticleQuery, request_id: Optional[str]
    ) -> ArticleProvider:
        provider = self._article_providers.get(query.provider)
        if provider is None:
            raise InvalidQueryError(
                f"Provider '{query.provider.value}' is not available for article search",
                field="provider",
                request_id=request_id,
            )
        if not provider.supports_topic(query.topic):
            raise InvalidQueryError(
                f"Topic '{query.topic}' is not supported by {query.provider.value}",
                field="topic",
                request_id=request_id,
            )
        return provider

    async def resolve(
        self, query: ArticleQuery, identity: Optional[str], request_id: Optional[str] = None
    ) -> Resolution:
        """Resolve an article search through cache, quota and provider."""
        identity = self.require_identity(identity, request_id)
        query = query.normalized()
        provider = self._article_provider(query, request_id)

        async def produce() -> Dict[str, Any]:
            result = await provider.fetch_articles(query)
            return result.to_payload()

        return await self.resolve_with(
            identity,
            query.cache_key(),
            produce,
            ttl_seconds=self._news_ttl,
            provider_name=query.provider.value,
            request_id=request_id,
        )

    async def resolve_with(
        self,
        identity: Optional[str],
        key: str,
        produce: Producer,
        ttl_seconds: float,
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
        bounded: bool = True,
    ) -> Resolution:
        """
        Run the cache/quota/provider state machine for an arbitrary producer.

        With bounded=False the producer is not wrapped in the provider timeout;
        producers that make several upstream calls bound each call themselves.
        """
        identity = self.require_identity(identity, request_id)

        lookup = await self.cache.get(key)
        if lookup.state is CacheState.FRESH and lookup.entry is not None:
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Serving fresh cache entry",
                    request_id=request_id,
                    data={"key": key},
                )
            )
            return Resolution(
                key=key,
                payload=lookup.entry.payload,
                from_cache=True,
                cached_at=lookup.entry.fetched_at,
            )

        stale = lookup.entry if lookup.state is CacheState.STALE else None

        try:
            await self.quota.check_and_increment(identity, self.limits)
        except QuotaExceededError as exc:
            exc.request_id = request_id
            if stale is None:
                raise
            return self._serve_stale(stale, STALE_AFTER_QUOTA_NOTE, exc, request_id)

        try:
            entry, reused = await self._single_flight.run(
                key,
                lambda: self._fetch_and_store(
                    key, produce, ttl_seconds, provider_name, request_id, bounded
                ),
                request_id=request_id,
            )
        except ProviderError as exc:
            if stale is None:
                raise
            return self._serve_stale(stale, STALE_AFTER_FAILURE_NOTE, exc, request_id)

        return Resolution(
            key=key,
            payload=entry.payload,
            from_cache=reused,
            cached_at=entry.fetched_at,
        )

    async def passthrough(
        self,
        identity: Optional[str],
        produce: Callable[[], Awaitable[T]],
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> T:
        """Charge quota and call the provider under the timeout, without caching."""
        identity = self.require_identity(identity, request_id)
        try:
            await self.quota.check_and_increment(identity, self.limits)
        except QuotaExceededError as exc:
            exc.request_id = request_id
            raise
        return await self._call_provider(produce, provider_name, request_id)

    async def _fetch_and_store(
        self,
        key: str,
        produce: Producer,
        ttl_seconds: float,
        provider_name: Optional[str],
        request_id: Optional[str],
        bounded: bool = True,
    ) -> Tuple[CacheEntry, bool]:
        # A call that finished just before this one took the lead may already
        # have stored a fresh entry.
        lookup = await self.cache.get(key)
        if lookup.state is CacheState.FRESH and lookup.entry is not None:
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Fresh entry appeared before upstream call",
                    request_id=request_id,
                    data={"key": key},
                )
            )
            return lookup.entry, True

        payload = await self._call_provider(
            produce, provider_name, request_id, bounded=bounded
        )
        entry = await self.cache.put(key, payload, ttl_seconds)
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Stored fresh cache entry",
                request_id=request_id,
                data={
                    "key": key,
                    "expires_at": entry.expires_at,
                    "purge_at": entry.purge_at,
                },
            )
        )
        return entry, False

    async def _call_provider(
        self,
        produce: Callable[[], Awaitable[T]],
        provider_name: Optional[str],
        request_id: Optional[str],
        bounded: bool = True,
    ) -> T:
        start = time.monotonic()
        try:
            if bounded:
                async with enforce_timeout(self._timeout, provider_name, request_id):
                    result = await produce()
            else:
                result = await produce()
        except NewsRelayError as exc:
            if exc.request_id is None:
                exc.request_id = request_id
            warning(
                LogRecord(
                    event=LogEvent.PROVIDER_ERROR_DETAILS.value,
                    message=f"Provider call failed: {exc.code.value}",
                    request_id=request_id,
                    data={
                        "provider": provider_name,
                        "code": exc.code.value,
                        "duration_ms": round((time.monotonic() - start) * 1000, 2),
                    },
                ),
                exc=exc,
            )
            raise
        except Exception as exc:
            wrapped = UnknownProviderError(
                f"Unexpected provider failure: {type(exc).__name__}",
                provider_name=provider_name,
                request_id=request_id,
            )
            warning(
                LogRecord(
                    event=LogEvent.PROVIDER_ERROR_DETAILS.value,
                    message="Unexpected provider failure",
                    request_id=request_id,
                    data={"provider": provider_name},
                ),
                exc=exc,
            )
            raise wrapped from exc

        debug(
            LogRecord(
                event=LogEvent.PROVIDER_RESPONSE.value,
                message="Provider call succeeded",
                request_id=request_id,
                data={
                    "provider": provider_name,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                },
            )
        )
        return result

    def _serve_stale(
        self,
        entry: CacheEntry,
        note: str,
        cause: NewsRelayError,
        request_id: Optional[str],
    ) -> Resolution:
        info(
            LogRecord(
                event=LogEvent.STALE_SERVED.value,
                message=note,
                request_id=request_id,
                data={
                    "key": entry.key,
                    "cause": cause.code.value,
                    "age_seconds": round(
                        (self._clock() - entry.fetched_at).total_seconds(), 1
                    ),
                },
            )
        )
        return Resolution(
            key=entry.key,
            payload=entry.payload,
            from_cache=True,
            stale=True,
            cached_at=entry.fetched_at,
            note=note,
        )
