"""
Shared plumbing for JSON-over-HTTP article providers.
Handles request logging, transport failures, rate-limit headers and
status classification; subclasses build query parameters and map articles.
"""

import time
from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple

import httpx
from pydantic import ValidationError

from ...application.clock import Clock, utc_now
from ...constants import MAX_ARTICLES, TIME_RANGE_HOURS
from ...domain.exceptions import InvalidResponseError, ProviderError, UpstreamUnavailableError
from ...domain.models import Article, RateLimitInfo
from ...enums import ErrorCode, ProviderName, TimeRange
from ...logging import debug, warning, LogRecord, LogEvent
from .error_tables import build_provider_error, classify_status, parse_rate_limit_headers


def format_upstream_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class HttpArticleProvider:
    """Base class for article-search adapters backed by an ``httpx.AsyncClient``.

    The client is created with retries disabled; one adapter call is one
    upstream request.
    """

    name: ClassVar[ProviderName]
    status_codes: ClassVar[Mapping[int, ErrorCode]] = {}
    rate_limit_headers: ClassVar[Mapping[str, str]] = {}

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        clock: Clock = utc_now,
        max_articles: int = MAX_ARTICLES,
    ) -> None:
        if not api_key:
            raise ValueError(f"{self.name.value} requires an API key")
        self._client = client
        self._api_key = api_key
        self._clock = clock
        self._max_articles = max_articles

    async def aclose(self) -> None:
        await self._client.aclose()

    def _time_window(self, time_range: TimeRange) -> Tuple[str, str]:
        now = self._clock()
        start = now - timedelta(hours=TIME_RANGE_HOURS[time_range])
        return format_upstream_time(start), format_upstream_time(now)

    async def _get_json(
        self,
        path: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[Dict[str, Any], Optional[RateLimitInfo]]:
        provider = self.name.value
        start = time.monotonic()
        debug(
            LogRecord(
                event=LogEvent.PROVIDER_REQUEST.value,
                message=f"Calling {provider}",
                data={"provider": provider, "path": path, "params": params},
            )
        )
        try:
            response = await self._client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailableError(
                f"{provider} request timed out", provider_name=provider
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(
                f"{provider} is unreachable: {type(exc).__name__}", provider_name=provider
            ) from exc

        rate_limit = parse_rate_limit_headers(response.headers, self.rate_limit_headers)
        if rate_limit is not None:
            debug(
                LogRecord(
                    event=LogEvent.PROVIDER_RATE_LIMIT.value,
                    message=f"{provider} rate limit status",
                    data={"provider": provider, **rate_limit.model_dump(exclude_none=True)},
                )
            )

        body = self._decode_body(response)

        error = self._error_for(response, body, rate_limit)
        if error is not None:
            warning(
                LogRecord(
                    event=LogEvent.PROVIDER_ERROR_DETAILS.value,
                    message=f"{provider} returned an error",
                    data={
                        "provider": provider,
                        "status_code": response.status_code,
                        "code": error.code.value,
                        "body": body,
                    },
                )
            )
            raise error

        if body is None:
            raise InvalidResponseError(
                f"{provider} returned a non-JSON body",
                raw_text=response.text[:500],
                provider_name=provider,
            )

        debug(
            LogRecord(
                event=LogEvent.PROVIDER_RESPONSE.value,
                message=f"{provider} responded",
                data={
                    "provider": provider,
                    "status_code": response.status_code,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                },
            )
        )
        return body, rate_limit

    @staticmethod
    def _decode_body(response: httpx.Response) -> Optional[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    def _error_message(self, body: Optional[Dict[str, Any]], status_code: int) -> str:
        if body and isinstance(body.get("message"), str):
            return body["message"]
        return f"{self.name.value} returned HTTP {status_code}"

    def _error_for(
        self,
        response: httpx.Response,
        body: Optional[Dict[str, Any]],
        rate_limit: Optional[RateLimitInfo],
    ) -> Optional[ProviderError]:
        """Return the error a response represents, or ``None`` for success."""
        if response.is_success:
            return None
        code = classify_status(response.status_code, self.status_codes)
        return build_provider_error(
            code,
            self._error_message(body, response.status_code),
            provider_name=self.name.value,
            retry_after=rate_limit.retry_after if rate_limit else None,
            status_code=response.status_code,
            details={"status_code": response.status_code},
        )

    def _collect_articles(self, raw_items: Iterable[Dict[str, Any]]) -> List[Article]:
        articles: List[Article] = []
        for item in raw_items:
            fields = self._article_fields(item)
            if fields is None:
                continue
            try:
                articles.append(Article.model_validate(fields))
            except ValidationError as exc:
                debug(
                    LogRecord(
                        event=LogEvent.PROVIDER_RESPONSE.value,
                        message=f"Skipping malformed {self.name.value} article",
                        data={"errors": exc.error_count(), "url": fields.get("url")},
                    )
                )
        return articles

    def _article_fields(self, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError
