"""The Guardian content API ``/search`` adapter."""

from typing import Any, Dict, Optional

from ...constants import (
    DESCRIPTION_EXCERPT_CHARS,
    GUARDIAN_SHOW_FIELDS,
    GUARDIAN_SHOW_TAGS,
    GUARDIAN_TOPIC_MAP,
)
from ...domain.exceptions import UpstreamInvalidQueryError
from ...domain.models import ArticleQuery, ProviderResult
from ...enums import ProviderName
from .error_tables import GUARDIAN_RATE_LIMIT_HEADERS, GUARDIAN_STATUS_CODES
from .http_article_provider import HttpArticleProvider

GUARDIAN_SOURCE_NAME = "The Guardian"


class GuardianProvider(HttpArticleProvider):
    name = ProviderName.GUARDIAN
    status_codes = GUARDIAN_STATUS_CODES
    rate_limit_headers = GUARDIAN_RATE_LIMIT_HEADERS

    def supports_topic(self, topic: str) -> bool:
        return topic in GUARDIAN_TOPIC_MAP

    def build_params(self, query: ArticleQuery) -> Dict[str, Any]:
        section, tag = GUARDIAN_TOPIC_MAP[query.topic]
        start, end = self._time_window(query.time_range)
        params: Dict[str, Any] = {
            "from-date": start,
            "to-date": end,
            "page-size": query.page_size,
            "page": query.page,
            "order-by": query.order_by.value,
            "show-fields": ",".join(GUARDIAN_SHOW_FIELDS),
            "show-tags": ",".join(GUARDIAN_SHOW_TAGS),
            "edition": "international",
            "format": "json",
            "api-key": self._api_key,
        }
        if query.search:
            params["q"] = query.search
        if section:
            params["section"] = section
        if tag:
            params["tag"] = tag
        return params

    async def fetch_articles(self, query: ArticleQuery) -> ProviderResult:
        body, rate_limit = await self._get_json("/search", self.build_params(query))
        payload = body.get("response") or {}
        if payload.get("status") != "ok":
            raise UpstreamInvalidQueryError(
                payload.get("message") or "Guardian rejected the query",
                provider_name=self.name.value,
                details={"status": payload.get("status")},
            )
        articles = self._collect_articles(payload.get("results") or [])
        return ProviderResult(
            provider=self.name,
            articles=articles[: self._max_articles],
            rate_limit=rate_limit,
        )

    def _article_fields(self, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        title = item.get("webTitle")
        url = item.get("webUrl")
        if not title or not url:
            return None
        fields = item.get("fields") or {}
        body = fields.get("body") or ""
        trail = fields.get("trailText") or ""
        return {
            "title": title,
            "url": url,
            "published_at": item.get("webPublicationDate"),
            "description": trail or body[:DESCRIPTION_EXCERPT_CHARS],
            "source": GUARDIAN_SOURCE_NAME,
            "author": fields.get("byline") or GUARDIAN_SOURCE_NAME,
            "image_url": fields.get("thumbnail"),
            "content": body or trail,
        }

    def _error_message(self, body: Optional[Dict[str, Any]], status_code: int) -> str:
        nested = (body or {}).get("response")
        if isinstance(nested, dict) and isinstance(nested.get("message"), str):
            return nested["message"]
        return super()._error_message(body, status_code)
