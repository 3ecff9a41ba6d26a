"""Table-driven classification of upstream failures.

Each provider has one table mapping what it reports (a body ``code``, an HTTP
status or an SDK exception class) to an :class:`ErrorCode`. Adapters look the
failure up and raise the matching exception; nothing inspects message text.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

import openai

from ...domain.exceptions import (
    InvalidResponseError,
    ProviderError,
    RateLimitedError,
    UnknownProviderError,
    UpstreamInvalidQueryError,
    UpstreamUnauthorizedError,
    UpstreamUnavailableError,
)
from ...domain.models import RateLimitInfo
from ...enums import ErrorCode

NEWSAPI_ERROR_CODES: Dict[str, ErrorCode] = {
    "rateLimited": ErrorCode.RATE_LIMITED,
    "apiKeyDisabled": ErrorCode.UNAUTHORIZED,
    "apiKeyExhausted": ErrorCode.UNAUTHORIZED,
    "apiKeyInvalid": ErrorCode.UNAUTHORIZED,
    "apiKeyMissing": ErrorCode.UNAUTHORIZED,
    "parameterInvalid": ErrorCode.INVALID_QUERY,
    "parametersMissing": ErrorCode.INVALID_QUERY,
    "sourcesTooMany": ErrorCode.INVALID_QUERY,
    "sourceDoesNotExist": ErrorCode.INVALID_QUERY,
    "unexpectedError": ErrorCode.UPSTREAM_UNAVAILABLE,
}

NEWSAPI_STATUS_CODES: Dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_QUERY,
    401: ErrorCode.UNAUTHORIZED,
    426: ErrorCode.UNAUTHORIZED,
    429: ErrorCode.RATE_LIMITED,
}

GUARDIAN_STATUS_CODES: Dict[int, ErrorCode] = {
    400: ErrorCode.INVALID_QUERY,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.INVALID_QUERY,
    429: ErrorCode.RATE_LIMITED,
}

# Checked in order; subclasses come before their bases
GEMINI_EXCEPTION_CODES: List[Tuple[Type[BaseException], ErrorCode]] = [
    (openai.RateLimitError, ErrorCode.RATE_LIMITED),
    (openai.AuthenticationError, ErrorCode.UNAUTHORIZED),
    (openai.PermissionDeniedError, ErrorCode.UNAUTHORIZED),
    (openai.BadRequestError, ErrorCode.INVALID_QUERY),
    (openai.NotFoundError, ErrorCode.INVALID_QUERY),
    (openai.UnprocessableEntityError, ErrorCode.INVALID_QUERY),
    (openai.InternalServerError, ErrorCode.UPSTREAM_UNAVAILABLE),
    (openai.APITimeoutError, ErrorCode.UPSTREAM_UNAVAILABLE),
    (openai.APIConnectionError, ErrorCode.UPSTREAM_UNAVAILABLE),
    (openai.APIResponseValidationError, ErrorCode.INVALID_RESPONSE),
]

NEWSAPI_RATE_LIMIT_HEADERS: Dict[str, str] = {
    "limit": "X-RateLimit-Limit",
    "remaining": "X-RateLimit-Remaining",
    "reset": "X-RateLimit-Reset",
    "retry_after": "Retry-After",
}

GUARDIAN_RATE_LIMIT_HEADERS: Dict[str, str] = {
    "limit": "X-RateLimit-Limit-day",
    "remaining": "X-RateLimit-Remaining-day",
    "retry_after": "Retry-After",
}


def classify_status(status_code: int, table: Mapping[int, ErrorCode]) -> ErrorCode:
    """Look up an HTTP status; unmatched 5xx is UpstreamUnavailable, the rest Unknown."""
    if status_code in table:
        return table[status_code]
    if status_code >= 500:
        return ErrorCode.UPSTREAM_UNAVAILABLE
    return ErrorCode.UNKNOWN


def classify_exception(
    exc: BaseException, table: List[Tuple[Type[BaseException], ErrorCode]]
) -> ErrorCode:
    for exc_type, code in table:
        if isinstance(exc, exc_type):
            return code
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and status_code >= 500:
        return ErrorCode.UPSTREAM_UNAVAILABLE
    return ErrorCode.UNKNOWN


def build_provider_error(
    code: ErrorCode,
    message: str,
    provider_name: Optional[str] = None,
    retry_after: Optional[float] = None,
    status_code: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ProviderError:
    """Instantiate the exception class that carries ``code``."""
    if code is ErrorCode.RATE_LIMITED:
        return RateLimitedError(
            message, retry_after=retry_after, provider_name=provider_name, details=details
        )
    if code is ErrorCode.UNAUTHORIZED:
        return UpstreamUnauthorizedError(message, provider_name=provider_name, details=details)
    if code is ErrorCode.INVALID_QUERY:
        return UpstreamInvalidQueryError(message, provider_name=provider_name, details=details)
    if code is ErrorCode.UPSTREAM_UNAVAILABLE:
        return UpstreamUnavailableError(
            message, status_code=status_code, provider_name=provider_name, details=details
        )
    if code is ErrorCode.INVALID_RESPONSE:
        return InvalidResponseError(message, provider_name=provider_name, details=details)
    return UnknownProviderError(message, provider_name=provider_name, details=details)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header given as delta-seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_rate_limit_headers(
    headers: Mapping[str, str], table: Mapping[str, str]
) -> Optional[RateLimitInfo]:
    """Read rate-limit headers named by ``table``; ``None`` when none are present."""
    raw = {field: headers.get(name) for field, name in table.items()}
    if all(v is None for v in raw.values()):
        return None
    return RateLimitInfo(
        limit=_parse_int(raw.get("limit")),
        remaining=_parse_int(raw.get("remaining")),
        reset=raw.get("reset"),
        retry_after=parse_retry_after(raw.get("retry_after")),
    )
