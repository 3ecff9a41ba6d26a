"""NewsAPI ``/v2/everything`` adapter."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ...application.clock import as_utc
from ...constants import NEWSAPI_TOPICS, REMOVED_ARTICLE_TITLE
from ...domain.exceptions import ProviderError
from ...domain.models import Article, ArticleQuery, ProviderResult, RateLimitInfo
from ...enums import ErrorCode, OrderBy, ProviderName
from .error_tables import (
    NEWSAPI_ERROR_CODES,
    NEWSAPI_RATE_LIMIT_HEADERS,
    NEWSAPI_STATUS_CODES,
    build_provider_error,
)
from .http_article_provider import HttpArticleProvider

_SORT_BY = {OrderBy.NEWEST: "publishedAt", OrderBy.RELEVANCE: "relevancy"}
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class NewsAPIProvider(HttpArticleProvider):
    """Keyword search over NewsAPI.

    NewsAPI reports failures both through HTTP statuses and through a
    ``{"status": "error", "code": ...}`` body; the body code wins when it is
    one we know.
    """

    name = ProviderName.NEWSAPI
    status_codes = NEWSAPI_STATUS_CODES
    rate_limit_headers = NEWSAPI_RATE_LIMIT_HEADERS

    def supports_topic(self, topic: str) -> bool:
        return topic in NEWSAPI_TOPICS

    def build_params(self, query: ArticleQuery) -> Dict[str, Any]:
        terms = [query.search] if query.search else ["news"]
        if query.topic not in ("all", "general"):
            terms.append(query.topic)
        start, end = self._time_window(query.time_range)
        return {
            "q": " ".join(terms),
            "language": "en",
            "from": start,
            "to": end,
            "sortBy": _SORT_BY[query.order_by],
            "pageSize": query.page_size,
            "page": query.page,
        }

    async def fetch_articles(self, query: ArticleQuery) -> ProviderResult:
        body, rate_limit = await self._get_json(
            "/everything",
            self.build_params(query),
            headers={"X-Api-Key": self._api_key},
        )
        articles = self._finalize(self._collect_articles(body.get("articles") or []))
        return ProviderResult(provider=self.name, articles=articles, rate_limit=rate_limit)

    def _finalize(self, articles: List[Article]) -> List[Article]:
        """De-duplicate by title, newest first, capped."""
        unique: Dict[str, Article] = {}
        for article in articles:
            unique.setdefault(article.title, article)
        ordered = sorted(
            unique.values(),
            key=lambda a: as_utc(a.published_at) if a.published_at else _EPOCH,
            reverse=True,
        )
        return ordered[: self._max_articles]

    def _article_fields(self, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        title = item.get("title")
        url = item.get("url")
        if not title or not url or title == REMOVED_ARTICLE_TITLE:
            return None
        source = item.get("source") or {}
        return {
            "title": title,
            "url": url,
            "published_at": item.get("publishedAt"),
            "description": item.get("description") or "",
            "source": source.get("name") if isinstance(source, dict) else None,
            "author": item.get("author"),
            "image_url": item.get("urlToImage"),
            "content": item.get("content"),
        }

    def _error_for(
        self,
        response: httpx.Response,
        body: Optional[Dict[str, Any]],
        rate_limit: Optional[RateLimitInfo],
    ) -> Optional[ProviderError]:
        body_failed = bool(body) and body.get("status") == "error"  # type: ignore[union-attr]
        if response.is_success and not body_failed:
            return None
        body_code = body.get("code") if body else None
        if body_code in NEWSAPI_ERROR_CODES:
            return build_provider_error(
                NEWSAPI_ERROR_CODES[body_code],
                self._error_message(body, response.status_code),
                provider_name=self.name.value,
                retry_after=rate_limit.retry_after if rate_limit else None,
                status_code=response.status_code,
                details={"status_code": response.status_code, "upstream_code": body_code},
            )
        if response.is_success:
            return build_provider_error(
                ErrorCode.UNKNOWN,
                self._error_message(body, response.status_code),
                provider_name=self.name.value,
                details={"status_code": response.status_code, "upstream_code": body_code},
            )
        return super()._error_for(response, body, rate_limit)
