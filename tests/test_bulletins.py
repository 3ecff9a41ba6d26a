"""Tests for the two-stage bulletin service."""

from typing import Any, List

import anyio
import pytest

from newsrelay.application.bulletins import (
    BULLETIN_KEY,
    CARDS_KEY_PREFIX,
    BulletinService,
    bullet_digest,
    generate_fixed_cardinality,
)
from newsrelay.application.cache import InMemoryCacheStore
from newsrelay.application.orchestrator import STALE_AFTER_FAILURE_NOTE, FetchOrchestrator
from newsrelay.application.quota import InMemoryQuotaTracker, QuotaLimits
from newsrelay.domain.exceptions import (
    InvalidQueryError,
    InvalidResponseError,
    UnauthenticatedError,
    UpstreamUnavailableError,
)
from newsrelay.domain.models import Article, ArticleQuery, ProviderResult
from newsrelay.enums import CacheState, OrderBy, ProviderName

BULLETS = ["Markets rally", "Storm hits coast", "Election called"]
CARDS = [{"title": b, "description": f"Details about {b.lower()}."} for b in BULLETS]


class FakeGuardian:
    name = ProviderName.GUARDIAN

    def __init__(self, articles: int = 5) -> None:
        self.articles = articles
        self.queries: List[ArticleQuery] = []

    def supports_topic(self, topic: str) -> bool:
        return True

    async def fetch_articles(self, query: ArticleQuery) -> ProviderResult:
        self.queries.append(query)
        return ProviderResult(
            provider=self.name,
            articles=[
                Article(title=f"Story {i}", url=f"https://example.com/{i}", description="Body")
                for i in range(self.articles)
            ],
        )


class FakeGenerator:
    """Returns queued outputs in order; exceptions in the queue are raised."""

    name = ProviderName.GEMINI

    def __init__(self, delay: float = 0) -> None:
        self.lines: List[Any] = []
        self.structured: List[Any] = []
        self.prompts: List[str] = []
        self.delay = delay

    @staticmethod
    def _next(queue: List[Any]) -> Any:
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def generate_lines(self, prompt: str) -> List[str]:
        self.prompts.append(prompt)
        if self.delay:
            await anyio.sleep(self.delay)
        return self._next(self.lines)

    async def generate_structured(self, prompt: str, expect: type = list) -> Any:
        self.prompts.append(prompt)
        if self.delay:
            await anyio.sleep(self.delay)
        return self._next(self.structured)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def guardian() -> FakeGuardian:
    return FakeGuardian()


@pytest.fixture
def orchestrator(clock) -> FetchOrchestrator:
    return FetchOrchestrator(
        cache=InMemoryCacheStore(clock=clock),
        quota=InMemoryQuotaTracker(clock=clock),
        limits=QuotaLimits(window_max=10, daily_max=100),
        clock=clock,
    )


@pytest.fixture
def service(orchestrator, guardian, generator) -> BulletinService:
    return BulletinService(
        orchestrator,
        guardian,
        generator,
        bulletin_ttl_seconds=3 * 3600,
        cards_ttl_seconds=3 * 3600,
        item_count=3,
        source_articles=25,
    )


class TestBulletDigest:
    def test_whitespace_insensitive(self):
        assert bullet_digest(["a  b", " c"]) == bullet_digest(["a b", "c"])

    def test_order_sensitive(self):
        assert bullet_digest(["a", "b"]) != bullet_digest(["b", "a"])


class TestGenerateFixedCardinality:
    @pytest.mark.anyio
    async def test_returns_on_first_exact_result(self):
        calls = 0

        async def generate() -> List[str]:
            nonlocal calls
            calls += 1
            return ["a", "b"]

        assert await generate_fixed_cardinality(generate, 2, "bullets") == ["a", "b"]
        assert calls == 1

    @pytest.mark.anyio
    async def test_regenerates_once_on_wrong_count(self):
        outputs = [["a"], ["a", "b"]]

        async def generate() -> List[str]:
            return outputs.pop(0)

        assert await generate_fixed_cardinality(generate, 2, "bullets") == ["a", "b"]

    @pytest.mark.anyio
    async def test_second_failure_raises(self):
        calls = 0

        async def generate() -> List[str]:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise InvalidResponseError("not json")
            return ["a", "b", "c"]

        with pytest.raises(InvalidResponseError) as exc_info:
            await generate_fixed_cardinality(generate, 2, "bullets")

        assert calls == 2
        assert exc_info.value.details == {"expected": 2, "received": 3}


class TestLatest:
    @pytest.mark.anyio
    async def test_generates_and_caches_bulletin(self, service, guardian, generator, orchestrator):
        generator.lines = [list(BULLETS)]

        resolution = await service.latest("alice")

        assert resolution.from_cache is False
        assert resolution.payload["bullets"] == BULLETS
        assert resolution.payload["digest"] == bullet_digest(BULLETS)
        assert resolution.payload["metadata"]["articlesFetched"] == 5
        assert len(resolution.payload["sourceArticles"]) == 5

        query = guardian.queries[0]
        assert query.search == "breaking news world"
        assert query.order_by is OrderBy.RELEVANCE
        assert query.page_size == 25

        lookup = await orchestrator.cache.get(BULLETIN_KEY)
        assert lookup.state is CacheState.FRESH

    @pytest.mark.anyio
    async def test_second_reader_hits_cache(self, service, generator):
        generator.lines = [list(BULLETS)]
        await service.latest("alice")

        resolution = await service.latest("bob")

        assert resolution.from_cache is True
        assert len(generator.prompts) == 1

    @pytest.mark.anyio
    async def test_regenerates_after_short_output(self, service, generator):
        generator.lines = [BULLETS[:2], list(BULLETS)]

        resolution = await service.latest("alice")

        assert resolution.payload["bullets"] == BULLETS
        assert len(generator.prompts) == 2

    @pytest.mark.anyio
    async def test_persistent_wrong_count_fails(self, service, generator, orchestrator):
        generator.lines = [BULLETS[:2], BULLETS + ["extra"]]

        with pytest.raises(InvalidResponseError):
            await service.latest("alice")

        lookup = await orchestrator.cache.get(BULLETIN_KEY)
        assert lookup.state is CacheState.ABSENT

    @pytest.mark.anyio
    async def test_failure_serves_stale_bulletin(self, service, generator, clock):
        generator.lines = [list(BULLETS)]
        await service.latest("alice")
        clock.advance(3 * 3600 + 1)
        generator.lines = [["only one"], ["still one"]]

        resolution = await service.latest("alice")

        assert resolution.stale is True
        assert resolution.note == STALE_AFTER_FAILURE_NOTE
        assert resolution.payload["bullets"] == BULLETS

    @pytest.mark.anyio
    async def test_no_source_articles(self, service, guardian):
        guardian.articles = 0
        with pytest.raises(UpstreamUnavailableError):
            await service.latest("alice")


class TestExpand:
    @pytest.mark.anyio
    async def test_expands_and_caches_by_digest(self, service, generator, orchestrator):
        generator.structured = [list(CARDS)]

        resolution = await service.expand("alice", list(BULLETS))

        assert resolution.from_cache is False
        assert resolution.key == CARDS_KEY_PREFIX + bullet_digest(BULLETS)
        assert resolution.payload["cards"] == CARDS

        # Whitespace variations resolve to the same cached cards
        again = await service.expand("bob", [f"  {b} " for b in BULLETS])
        assert again.from_cache is True

    @pytest.mark.anyio
    async def test_malformed_cards_regenerate(self, service, generator):
        generator.structured = [[{"title": "only title"}] * 3, list(CARDS)]

        resolution = await service.expand("alice", list(BULLETS))

        assert resolution.payload["cards"] == CARDS

    @pytest.mark.anyio
    async def test_wrong_card_count_twice_fails(self, service, generator):
        generator.structured = [CARDS[:2], CARDS[:1]]

        with pytest.raises(InvalidResponseError):
            await service.expand("alice", list(BULLETS))

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "bullets",
        [None, "not a list", BULLETS[:2], BULLETS + ["four"], ["a", "", "c"], ["a", 2, "c"]],
    )
    async def test_invalid_bullets(self, service, generator, bullets):
        with pytest.raises(InvalidQueryError) as exc_info:
            await service.expand("alice", bullets)

        assert exc_info.value.field == "bullets"
        assert generator.prompts == []

    @pytest.mark.anyio
    async def test_identity_checked_before_bullets(self, service):
        with pytest.raises(UnauthenticatedError):
            await service.expand(None, None)


class TestPregenerate:
    @pytest.mark.anyio
    async def test_warms_both_stages_without_quota(self, service, generator, orchestrator):
        generator.lines = [list(BULLETS)]
        generator.structured = [list(CARDS)]

        result = await service.pregenerate()

        assert result["bulletin"]["bullets"] == BULLETS
        assert result["cards"]["cards"] == CARDS

        bulletin = await service.latest("alice")
        cards = await service.expand("alice", list(BULLETS))
        assert bulletin.from_cache is True
        assert cards.from_cache is True
        assert await orchestrator.quota.peek("alice") is None


class TestPerCallTimeout:
    """Each generation call gets the full provider timeout, not each stage."""

    @pytest.fixture
    def slow_generator(self) -> FakeGenerator:
        return FakeGenerator(delay=0.3)

    @pytest.fixture
    def slow_service(self, clock, guardian, slow_generator) -> BulletinService:
        orchestrator = FetchOrchestrator(
            cache=InMemoryCacheStore(clock=clock),
            quota=InMemoryQuotaTracker(clock=clock),
            limits=QuotaLimits(window_max=10, daily_max=100),
            provider_timeout_seconds=0.5,
            clock=clock,
        )
        return BulletinService(orchestrator, guardian, slow_generator, item_count=3)

    @pytest.mark.anyio
    async def test_regeneration_outlasting_one_timeout_succeeds(
        self, slow_service, slow_generator
    ):
        slow_generator.lines = [BULLETS[:2], list(BULLETS)]

        resolution = await slow_service.latest("alice")

        assert resolution.payload["bullets"] == BULLETS
        assert len(slow_generator.prompts) == 2

    @pytest.mark.anyio
    async def test_two_bad_outputs_report_invalid_response(
        self, slow_service, slow_generator
    ):
        slow_generator.lines = [BULLETS[:2], BULLETS[:1]]

        with pytest.raises(InvalidResponseError):
            await slow_service.latest("alice")

    @pytest.mark.anyio
    async def test_slow_card_regeneration_succeeds(self, slow_service, slow_generator):
        slow_generator.structured = [CARDS[:2], list(CARDS)]

        resolution = await slow_service.expand("alice", list(BULLETS))

        assert resolution.payload["cards"] == CARDS

    @pytest.mark.anyio
    async def test_single_call_over_timeout_is_unavailable(
        self, slow_service, slow_generator
    ):
        slow_generator.delay = 0.8
        slow_generator.lines = [list(BULLETS)]

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await slow_service.latest("alice")

        assert exc_info.value.timeout_seconds == 0.5
        assert exc_info.value.provider_name == "gemini"
