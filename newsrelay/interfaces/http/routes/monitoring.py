"""Monitoring endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from ....logging import info, LogRecord, LogEvent
from ..dependencies import get_components, get_request_id

router = APIRouter()


@router.get("/v1/metrics/cache")
async def get_cache_stats(request: Request) -> ORJSONResponse:
    """Get cache hit, stale, miss, write and purge counters."""
    storage = get_components(request).storage
    return ORJSONResponse(
        content={
            "backend": storage.backend,
            "cache": storage.cache.statistics.get_stats(),
        }
    )


@router.post("/v1/cache/purge")
async def purge_cache(request: Request) -> ORJSONResponse:
    """Delete every hard-expired cache entry now."""
    request_id = get_request_id(request)
    purged = await get_components(request).storage.cache.purge_expired()
    info(
        LogRecord(
            event=LogEvent.CACHE_EVENT.value,
            message="Expired cache entries purged",
            request_id=request_id,
            data={"purged": purged},
        )
    )
    return ORJSONResponse(content={"status": "ok", "purged": purged})
