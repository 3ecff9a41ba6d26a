"""Two-stage 24-hour news bulletin.

Stage one turns the day's most relevant Guardian articles into a fixed
number of one-line bullets; stage two expands those bullets into title and
description cards. Both stages are cached through the orchestrator, and both
insist on an exact item count: one regeneration is allowed, after which the
stage fails rather than returning a partial list. The provider timeout
applies to each upstream call, so a regeneration gets a full budget of its
own.
"""

import hashlib
import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from .orchestrator import FetchOrchestrator
from .upstream_limits import enforce_timeout
from ..constants import (
    BULLETIN_ITEM_COUNT,
    BULLETIN_SOURCE_ARTICLES,
    BULLETIN_SOURCE_QUERY,
    BULLETIN_TIMEFRAME,
    BULLETS_PROMPT_TEMPLATE,
    CARDS_PROMPT_TEMPLATE,
    DEFAULT_BULLETIN_CACHE_TTL_SECONDS,
    DEFAULT_CARDS_CACHE_TTL_SECONDS,
    MAX_REGENERATIONS,
)
from ..domain.exceptions import (
    InvalidQueryError,
    InvalidResponseError,
    UpstreamUnavailableError,
)
from ..domain.models import Article, ArticleQuery, DetailCard, Resolution
from ..enums import OrderBy, ProviderName, TimeRange
from ..infrastructure.providers.base import ArticleProvider, TextGenerator
from ..logging import info, warning, LogRecord, LogEvent

T = TypeVar("T")

BULLETIN_KEY = f"bulletin:{BULLETIN_TIMEFRAME}"
CARDS_KEY_PREFIX = "bulletin-cards:"


def bullet_digest(bullets: Sequence[str]) -> str:
    """Stable hash of a bullet list, insensitive to whitespace differences."""
    normalized = [" ".join(b.split()) for b in bullets]
    return hashlib.sha256(
        json.dumps(normalized, ensure_ascii=False, separators=(",", ":")).encode()
    ).hexdigest()


async def generate_fixed_cardinality(
    generate: Callable[[], Awaitable[List[T]]],
    count: int,
    stage: str,
    max_regenerations: int = MAX_REGENERATIONS,
) -> List[T]:
    """Run ``generate`` until it yields exactly ``count`` items.

    A parse failure or a wrong count triggers a regeneration, at most
    ``max_regenerations`` times; then the last failure is raised as
    :class:`InvalidResponseError`.
    """
    last_error: Optional[InvalidResponseError] = None
    attempts = max_regenerations + 1
    for attempt in range(1, attempts + 1):
        try:
            items = await generate()
        except InvalidResponseError as exc:
            last_error = exc
        else:
            if len(items) == count:
                return items
            last_error = InvalidResponseError(
                f"Expected {count} {stage}, got {len(items)}",
                provider_name=ProviderName.GEMINI.value,
                details={"expected": count, "received": len(items)},
            )
        if attempt < attempts:
            info(
                LogRecord(
                    event=LogEvent.GENERATION_RETRY.value,
                    message=f"Regenerating {stage}",
                    data={"attempt": attempt, "reason": last_error.message},
                )
            )
    raise last_error  # type: ignore[misc]


class BulletinService:
    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        articles: ArticleProvider,
        generator: TextGenerator,
        bulletin_ttl_seconds: float = DEFAULT_BULLETIN_CACHE_TTL_SECONDS,
        cards_ttl_seconds: float = DEFAULT_CARDS_CACHE_TTL_SECONDS,
        item_count: int = BULLETIN_ITEM_COUNT,
        source_articles: int = BULLETIN_SOURCE_ARTICLES,
        provider_timeout_seconds: Optional[float] = None,
    ):
        self._orchestrator = orchestrator
        self._articles = articles
        self._generator = generator
        self._bulletin_ttl = bulletin_ttl_seconds
        self._cards_ttl = cards_ttl_seconds
        self.item_count = item_count
        self._source_articles = source_articles
        self._timeout = (
            provider_timeout_seconds
            if provider_timeout_seconds is not None
            else orchestrator.provider_timeout_seconds
        )

    async def latest(
        self, identity: Optional[str], request_id: Optional[str] = None
    ) -> Resolution:
        """Current bulletin, generating it when the cache has none fresh."""
        return await self._orchestrator.resolve_with(
            identity,
            BULLETIN_KEY,
            self.produce_bulletin,
            ttl_seconds=self._bulletin_ttl,
            provider_name=ProviderName.GEMINI.value,
            request_id=request_id,
            bounded=False,
        )

    async def expand(
        self,
        identity: Optional[str],
        bullets: Any,
        request_id: Optional[str] = None,
    ) -> Resolution:
        """Detail cards for a bullet list, keyed by the list's digest."""
        identity = self._orchestrator.require_identity(identity, request_id)
        cleaned = self.validate_bullets(bullets, request_id)
        digest = bullet_digest(cleaned)
        return await self._orchestrator.resolve_with(
            identity,
            CARDS_KEY_PREFIX + digest,
            lambda: self.produce_cards(cleaned),
            ttl_seconds=self._cards_ttl,
            provider_name=ProviderName.GEMINI.value,
            request_id=request_id,
            bounded=False,
        )

    async def pregenerate(self) -> Dict[str, Any]:
        """Generate and store both stages outside any caller's quota.

        Used by the scheduled bulletin job so readers normally hit a warm
        cache.
        """
        bulletin = await self.produce_bulletin()
        await self._orchestrator.cache.put(BULLETIN_KEY, bulletin, self._bulletin_ttl)
        cards = await self.produce_cards(bulletin["bullets"])
        await self._orchestrator.cache.put(
            CARDS_KEY_PREFIX + bulletin["digest"], cards, self._cards_ttl
        )
        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Bulletin pre-generated",
                data={"digest": bulletin["digest"], "metadata": bulletin["metadata"]},
            )
        )
        return {"bulletin": bulletin, "cards": cards}

    async def _bounded(
        self, call: Callable[[], Awaitable[T]], provider: ProviderName
    ) -> T:
        async with enforce_timeout(self._timeout, provider.value):
            return await call()

    def validate_bullets(self, bullets: Any, request_id: Optional[str] = None) -> List[str]:
        if not isinstance(bullets, list) or len(bullets) != self.item_count:
            raise InvalidQueryError(
                f"bullets must be a list of exactly {self.item_count} strings",
                field="bullets",
                request_id=request_id,
            )
        cleaned = []
        for bullet in bullets:
            if not isinstance(bullet, str) or not bullet.strip():
                raise InvalidQueryError(
                    "bullets must be non-empty strings",
                    field="bullets",
                    request_id=request_id,
                )
            cleaned.append(bullet.strip())
        return cleaned

    async def produce_bulletin(self) -> Dict[str, Any]:
        start = time.monotonic()
        query = ArticleQuery(
            provider=ProviderName.GUARDIAN,
            topic="all",
            time_range=TimeRange.ONE_DAY,
            page_size=self._source_articles,
            search=BULLETIN_SOURCE_QUERY,
            order_by=OrderBy.RELEVANCE,
        )
        result = await self._bounded(
            lambda: self._articles.fetch_articles(query), ProviderName.GUARDIAN
        )
        if not result.articles:
            raise UpstreamUnavailableError(
                "No source articles available for the bulletin",
                provider_name=ProviderName.GUARDIAN.value,
            )

        prompt = BULLETS_PROMPT_TEMPLATE.format(
            article_count=len(result.articles),
            count=self.item_count,
            articles=_format_articles(result.articles),
        )
        bullets = await generate_fixed_cardinality(
            lambda: self._bounded(
                lambda: self._generator.generate_lines(prompt), ProviderName.GEMINI
            ),
            self.item_count,
            "bullets",
        )
        return {
            "bullets": bullets,
            "digest": bullet_digest(bullets),
            "sourceArticles": [
                {
                    "title": a.title,
                    "url": a.url,
                    "publishedAt": a.published_at.isoformat() if a.published_at else None,
                }
                for a in result.articles
            ],
            "metadata": {
                "articlesFetched": len(result.articles),
                "processingTimeMs": round((time.monotonic() - start) * 1000),
            },
        }

    async def produce_cards(self, bullets: Sequence[str]) -> Dict[str, Any]:
        prompt = CARDS_PROMPT_TEMPLATE.format(
            count=self.item_count,
            bullets="\n\n".join(f"{i}. {b}" for i, b in enumerate(bullets, 1)),
        )

        async def generate() -> List[DetailCard]:
            raw = await self._bounded(
                lambda: self._generator.generate_structured(prompt, expect=list),
                ProviderName.GEMINI,
            )
            try:
                return [DetailCard.model_validate(item) for item in raw]
            except ValidationError as exc:
                warning(
                    LogRecord(
                        event=LogEvent.PROVIDER_ERROR_DETAILS.value,
                        message="Generated card has the wrong shape",
                        data={"errors": exc.error_count()},
                    )
                )
                raise InvalidResponseError(
                    "Generated cards must have a title and a description",
                    provider_name=ProviderName.GEMINI.value,
                ) from exc

        cards = await generate_fixed_cardinality(generate, self.item_count, "cards")
        return {
            "cards": [card.model_dump() for card in cards],
            "digest": bullet_digest(bullets),
        }


def _format_articles(articles: Sequence[Article]) -> str:
    return "\n\n".join(
        f"{i}. {a.title}\n{a.description or 'No description available'}"
        for i, a in enumerate(articles, 1)
    )
