"""Tests for article summaries and chat."""

from typing import Any, List, Optional, Sequence

import pytest

from newsrelay.application.cache import InMemoryCacheStore
from newsrelay.application.chat import ChatService
from newsrelay.application.orchestrator import FetchOrchestrator
from newsrelay.application.quota import InMemoryQuotaTracker, QuotaLimits
from newsrelay.application.summaries import (
    SummaryService,
    fallback_summary,
    summary_key,
)
from newsrelay.domain.exceptions import (
    InvalidQueryError,
    InvalidResponseError,
    QuotaExceededError,
    RateLimitedError,
    UnauthenticatedError,
)
from newsrelay.domain.models import ChatMessage
from newsrelay.enums import ProviderName


class FakeGenerator:
    name = ProviderName.GEMINI

    def __init__(self) -> None:
        self.outputs: List[Any] = []
        self.calls = 0
        self.history: Optional[Sequence[ChatMessage]] = None

    def _next(self) -> Any:
        self.calls += 1
        item = self.outputs.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def generate_structured(self, prompt: str, expect: type = list) -> Any:
        return self._next()

    async def generate_text(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> str:
        self.history = history
        return self._next()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def orchestrator(clock) -> FetchOrchestrator:
    return FetchOrchestrator(
        cache=InMemoryCacheStore(clock=clock),
        quota=InMemoryQuotaTracker(clock=clock),
        limits=QuotaLimits(window_max=2, daily_max=100),
        clock=clock,
    )


@pytest.fixture
def summaries(orchestrator, generator) -> SummaryService:
    return SummaryService(orchestrator, generator, ttl_seconds=12 * 3600)


@pytest.fixture
def chat(orchestrator, generator, clock) -> ChatService:
    return ChatService(orchestrator, generator, model_name="gemini-2.5-flash", clock=clock)


ARTICLE = {
    "title": "Central bank holds rates",
    "description": "The central bank left rates unchanged on Thursday.",
    "url": "https://example.com/rates",
}


class TestFallbackSummary:
    def test_truncates_title_and_description(self):
        summary = fallback_summary("t" * 60, "d" * 200)
        assert summary.title == "t" * 50 + "..."
        assert summary.content == "d" * 150 + "..."

    def test_short_values_kept(self):
        summary = fallback_summary("Short", "Brief")
        assert summary.title == "Short"
        assert summary.content == "Brief"

    def test_missing_description_uses_placeholder(self):
        summary = fallback_summary("Short", None)
        assert summary.content
        assert summary.content != "Short"


class TestSummaryService:
    @pytest.mark.anyio
    async def test_generates_and_caches(self, summaries, generator):
        generator.outputs = [{"title": "Rates held", "content": "No change."}]

        first = await summaries.summarize("alice", **ARTICLE)
        second = await summaries.summarize("bob", **ARTICLE)

        assert first.from_cache is False
        assert first.key == summary_key(ARTICLE["url"])
        assert first.payload == {
            "summary": {"title": "Rates held", "content": "No change."},
            "usedFallback": False,
        }
        assert second.from_cache is True
        assert generator.calls == 1

    @pytest.mark.anyio
    async def test_unparseable_output_falls_back(self, summaries, generator):
        generator.outputs = [InvalidResponseError("not json")]

        resolution = await summaries.summarize("alice", **ARTICLE)

        assert resolution.payload["usedFallback"] is True
        assert resolution.payload["summary"]["title"] == ARTICLE["title"]
        assert resolution.payload["summary"]["content"] == ARTICLE["description"]

    @pytest.mark.anyio
    async def test_wrong_shape_falls_back(self, summaries, generator):
        generator.outputs = [{"headline": "x"}]

        resolution = await summaries.summarize("alice", **ARTICLE)

        assert resolution.payload["usedFallback"] is True

    @pytest.mark.anyio
    async def test_upstream_failure_is_not_masked(self, summaries, generator):
        generator.outputs = [RateLimitedError("busy", retry_after=10)]

        with pytest.raises(RateLimitedError):
            await summaries.summarize("alice", **ARTICLE)

    @pytest.mark.anyio
    @pytest.mark.parametrize("missing", ["title", "url"])
    async def test_required_fields(self, summaries, missing):
        article = {**ARTICLE, missing: "  "}
        with pytest.raises(InvalidQueryError) as exc_info:
            await summaries.summarize("alice", **article)
        assert exc_info.value.field == missing

    @pytest.mark.anyio
    async def test_requires_identity(self, summaries):
        with pytest.raises(UnauthenticatedError):
            await summaries.summarize(None, **ARTICLE)


class TestChatService:
    @pytest.mark.anyio
    async def test_chat_turn(self, chat, generator, clock):
        generator.outputs = ["Hello there"]

        result = await chat.chat(
            "alice",
            " Hi ",
            [{"role": "user", "content": "earlier"}, {"role": "assistant", "content": "reply"}],
        )

        assert result["response"] == "Hello there"
        assert result["timestamp"] == clock().isoformat()
        assert result["metadata"] == {"model": "gemini-2.5-flash", "historyLength": 2}
        assert [m.role for m in generator.history] == ["user", "assistant"]

    @pytest.mark.anyio
    async def test_chat_is_not_cached(self, chat, generator, orchestrator):
        generator.outputs = ["one", "two"]

        assert (await chat.chat("alice", "Hi"))["response"] == "one"
        assert (await chat.chat("alice", "Hi"))["response"] == "two"
        assert len(orchestrator.cache) == 0

    @pytest.mark.anyio
    async def test_chat_charges_quota(self, chat, generator):
        generator.outputs = ["one", "two", "three"]
        await chat.chat("alice", "Hi")
        await chat.chat("alice", "Hi")

        with pytest.raises(QuotaExceededError):
            await chat.chat("alice", "Hi")
        assert generator.calls == 2

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "history",
        ["text", [{"role": "system", "content": "x"}], [{"role": "user"}]],
    )
    async def test_invalid_history(self, chat, history):
        with pytest.raises(InvalidQueryError) as exc_info:
            await chat.chat("alice", "Hi", history)
        assert exc_info.value.field == "history"

    @pytest.mark.anyio
    async def test_message_required(self, chat):
        with pytest.raises(InvalidQueryError) as exc_info:
            await chat.chat("alice", "   ")
        assert exc_info.value.field == "message"
