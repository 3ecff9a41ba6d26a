"""Cached per-article summaries with a deterministic fallback."""

import hashlib
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .orchestrator import FetchOrchestrator
from ..constants import (
    DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
    FALLBACK_CONTENT_CHARS,
    FALLBACK_CONTENT_PLACEHOLDER,
    FALLBACK_TITLE_CHARS,
    SUMMARY_PROMPT_TEMPLATE,
)
from ..domain.exceptions import InvalidQueryError, InvalidResponseError
from ..domain.models import ArticleSummary, Resolution
from ..enums import ProviderName
from ..infrastructure.providers.base import TextGenerator
from ..logging import info, LogRecord, LogEvent

SUMMARY_KEY_PREFIX = "summary:"


def summary_key(url: str) -> str:
    return SUMMARY_KEY_PREFIX + hashlib.sha256(url.strip().encode()).hexdigest()


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def fallback_summary(title: str, description: Optional[str]) -> ArticleSummary:
    """Summary built from the article's own title and description."""
    content = (
        _truncate(description.strip(), FALLBACK_CONTENT_CHARS)
        if description and description.strip()
        else FALLBACK_CONTENT_PLACEHOLDER
    )
    return ArticleSummary(title=_truncate(title.strip(), FALLBACK_TITLE_CHARS), content=content)


class SummaryService:
    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        generator: TextGenerator,
        ttl_seconds: float = DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
    ):
        self._orchestrator = orchestrator
        self._generator = generator
        self._ttl = ttl_seconds

    async def summarize(
        self,
        identity: Optional[str],
        title: Optional[str],
        description: Optional[str],
        url: Optional[str],
        request_id: Optional[str] = None,
    ) -> Resolution:
        identity = self._orchestrator.require_identity(identity, request_id)
        if not title or not title.strip():
            raise InvalidQueryError("title is required", field="title", request_id=request_id)
        if not url or not url.strip():
            raise InvalidQueryError("url is required", field="url", request_id=request_id)

        return await self._orchestrator.resolve_with(
            identity,
            summary_key(url),
            lambda: self.produce_summary(title, description, request_id),
            ttl_seconds=self._ttl,
            provider_name=ProviderName.GEMINI.value,
            request_id=request_id,
        )

    async def produce_summary(
        self,
        title: str,
        description: Optional[str],
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Generate a summary, degrading to the fallback on unusable output.

        Only :class:`InvalidResponseError` degrades; transport and quota
        failures propagate so the orchestrator can serve stale data instead.
        """
        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            title=title.strip(),
            description=(description or "").strip() or "No description available",
        )
        try:
            raw = await self._generator.generate_structured(prompt, expect=dict)
            summary = ArticleSummary.model_validate(raw)
            used_fallback = False
        except (InvalidResponseError, ValidationError) as exc:
            info(
                LogRecord(
                    event=LogEvent.GENERATION_FALLBACK.value,
                    message="Using fallback summary",
                    request_id=request_id,
                    data={"reason": type(exc).__name__},
                )
            )
            summary = fallback_summary(title, description)
            used_fallback = True
        return {"summary": summary.model_dump(), "usedFallback": used_fallback}
