import math
import time
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import ORJSONResponse

from ...domain.exceptions import (
    InvalidQueryError,
    NewsRelayError,
    ProviderError,
    QuotaExceededError,
)
from ...enums import ErrorCode
from ...logging import error, warning, LogRecord, LogEvent


ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.INVALID_QUERY: 400,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.UNAUTHORIZED: 502,
    ErrorCode.UPSTREAM_UNAVAILABLE: 503,
    ErrorCode.INVALID_RESPONSE: 502,
    ErrorCode.UNKNOWN: 500,
}


def status_for(code: ErrorCode) -> int:
    return ERROR_STATUS_MAP.get(code, 500)


def build_error_payload(exc: NewsRelayError) -> Dict[str, Any]:
    """Error body shared by every failing route."""
    payload: Dict[str, Any] = {
        "success": False,
        "error": exc.message,
        "code": exc.code.value,
    }
    if exc.retry_after is not None:
        payload["retryAfter"] = math.ceil(exc.retry_after)
    if isinstance(exc, QuotaExceededError):
        payload["scope"] = exc.scope.value
    if isinstance(exc, ProviderError) and exc.provider_name:
        payload["provider"] = exc.provider_name
    if isinstance(exc, InvalidQueryError) and exc.field:
        payload["field"] = exc.field
    return payload


async def log_and_return_error_response(
    request: Request,
    exc: NewsRelayError,
    caught_exception: Optional[BaseException] = None,
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    start_time_mono = getattr(request.state, "start_time_monotonic", time.monotonic())
    duration_ms = (time.monotonic() - start_time_mono) * 1000
    status_code = status_for(exc.code)

    log_data: Dict[str, Any] = {
        "status_code": status_code,
        "duration_ms": duration_ms,
        "code": exc.code.value,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    if exc.details:
        log_data["details"] = exc.details
    if isinstance(exc, ProviderError) and exc.provider_name:
        log_data["provider_name"] = exc.provider_name

    record = LogRecord(
        event=LogEvent.REQUEST_FAILURE.value,
        message=f"Request failed: {exc.message}",
        request_id=request_id,
        data=log_data,
    )
    # Caller mistakes and quota rejections are expected traffic
    if status_code >= 500:
        error(record, exc=caught_exception or exc)
    else:
        warning(record)

    headers = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(math.ceil(exc.retry_after))
    return ORJSONResponse(
        status_code=status_code, content=build_error_payload(exc), headers=headers
    )
