from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from ....domain.models import ArticleQuery
from ....enums import OrderBy, ProviderName, TimeRange
from ..dependencies import get_components, get_identity, get_request_id

router = APIRouter()


@router.get("/v1/news")
async def get_news(
    request: Request,
    provider: ProviderName = ProviderName.GUARDIAN,
    topic: str = "all",
    time: TimeRange = TimeRange.ONE_DAY,
    page: int = Query(default=1, ge=1, le=50),
    page_size: int = Query(default=20, ge=1, le=50, alias="pageSize"),
    search: Optional[str] = Query(default=None, max_length=500),
    order_by: OrderBy = Query(default=OrderBy.NEWEST, alias="orderBy"),
) -> Dict[str, Any]:
    """Search articles through the cache, quota and provider pipeline.

    Returns the article list together with the freshness envelope
    (``fromCache``, ``cachedAt`` and, when degraded, ``stale`` and ``note``).
    """
    request_id = get_request_id(request)
    query = ArticleQuery(
        provider=provider,
        topic=topic,
        time_range=time,
        page=page,
        page_size=page_size,
        search=search,
        order_by=order_by,
    ).normalized()

    resolution = await get_components(request).orchestrator.resolve(
        query, get_identity(request), request_id=request_id
    )
    articles = resolution.payload.get("articles", [])
    body: Dict[str, Any] = {
        **resolution.envelope(),
        "articles": articles,
        "count": len(articles),
        "filters": {
            "provider": query.provider.value,
            "topic": query.topic,
            "time": query.time_range.value,
            "page": query.page,
            "search": query.search,
            "orderBy": query.order_by.value,
        },
    }
    if resolution.payload.get("rateLimit"):
        body["rateLimitInfo"] = resolution.payload["rateLimit"]
    return body
