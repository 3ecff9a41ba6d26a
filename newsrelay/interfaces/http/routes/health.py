from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from ....application.clock import utc_now
from ....logging import debug, LogRecord, LogEvent
from ..dependencies import get_components

router = APIRouter()


@router.get("/", include_in_schema=False)
async def root_health_check(request: Request) -> ORJSONResponse:
    """Check basic API health and availability.

    Returns:
        ORJSONResponse: status, current UTC timestamp, storage backend and the
            providers that have credentials configured.
    """
    components = get_components(request)
    debug(LogRecord(event=LogEvent.HEALTH_CHECK.value, message="Health check"))
    return ORJSONResponse(
        {
            "status": "ok",
            "timestamp": utc_now().isoformat(),
            "version": request.app.version,
            "storage": components.storage.backend,
            "providers": components.providers.names,
        }
    )
