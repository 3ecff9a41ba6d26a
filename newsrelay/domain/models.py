import hashlib
import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..enums import OrderBy, ProviderName, TimeRange


class CamelModel(BaseModel):
    """Base model that serializes to the camelCase shape the UI expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArticleQuery(CamelModel):
    """Normalized article search sent to a news provider.

    Attributes:
        provider: Which article-search provider to call.
        topic: Topic keyword or section name (``all`` for no filter).
        time_range: Look-back window ending now.
        page: 1-based page number.
        page_size: Articles requested from the upstream per page.
        search: Optional free-text query.
        order_by: Upstream ordering.
    """

    provider: ProviderName = ProviderName.GUARDIAN
    topic: str = "all"
    time_range: TimeRange = TimeRange.ONE_DAY
    page: int = Field(default=1, ge=1, le=50)
    page_size: int = Field(default=20, ge=1, le=50)
    search: Optional[str] = None
    order_by: OrderBy = OrderBy.NEWEST

    def normalized(self) -> "ArticleQuery":
        """Return a copy with case and whitespace folded for key derivation."""
        search = " ".join(self.search.split()).lower() if self.search else None
        return self.model_copy(
            update={"topic": self.topic.strip().lower() or "all", "search": search or None}
        )

    def cache_key(self) -> str:
        """Deterministic key for (provider, normalized query)."""
        material = self.normalized().model_dump(mode="json", exclude={"provider"})
        digest = hashlib.sha256(
            json.dumps(material, sort_keys=True, separators=(",", ":")).encode()
        ).hexdigest()
        return f"articles:{self.provider.value}:{digest}"


class Article(CamelModel):
    """Provider-independent article shape."""

    title: str
    url: str
    published_at: Optional[datetime] = None
    description: str = ""
    source: Optional[str] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    content: Optional[str] = None


class RateLimitInfo(CamelModel):
    """Upstream rate-limit headers observed on a response."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[str] = None
    retry_after: Optional[float] = None


class ProviderResult(CamelModel):
    """Normalized result of an article-search provider call."""

    provider: ProviderName
    articles: List[Article] = Field(default_factory=list)
    rate_limit: Optional[RateLimitInfo] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class DetailCard(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)


class ArticleSummary(CamelModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class Resolution(BaseModel):
    """Outcome of one orchestrated request.

    Attributes:
        key: Cache key the request resolved against.
        payload: The cached or freshly produced payload.
        from_cache: True when served from the cache store.
        stale: True when the payload is past its soft TTL.
        cached_at: When the served payload was produced.
        note: Human-readable explanation for degraded responses.
    """

    key: str
    payload: Dict[str, Any]
    from_cache: bool
    stale: bool = False
    cached_at: Optional[datetime] = None
    note: Optional[str] = None

    def envelope(self) -> Dict[str, Any]:
        """Freshness fields shared by every success response body."""
        body: Dict[str, Any] = {
            "success": True,
            "fromCache": self.from_cache,
            "cachedAt": self.cached_at.isoformat() if self.cached_at else None,
        }
        if self.stale:
            body["stale"] = True
        if self.note:
            body["note"] = self.note
        return body
