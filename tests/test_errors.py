"""Tests for mapping error codes to HTTP statuses and bodies."""

import pytest

from newsrelay.domain.exceptions import (
    InvalidQueryError,
    InvalidResponseError,
    NewsRelayError,
    QuotaExceededError,
    RateLimitedError,
    UnauthenticatedError,
    UpstreamUnauthorizedError,
    UpstreamUnavailableError,
)
from newsrelay.enums import ErrorCode, QuotaScope
from newsrelay.interfaces.http.errors import (
    ERROR_STATUS_MAP,
    build_error_payload,
    status_for,
)


class TestStatusMapping:
    def test_every_code_has_a_status(self):
        assert set(ERROR_STATUS_MAP) == set(ErrorCode)

    @pytest.mark.parametrize(
        "exc, status",
        [
            (UnauthenticatedError("who"), 401),
            (InvalidQueryError("bad"), 400),
            (QuotaExceededError("slow", scope=QuotaScope.DAY), 429),
            (RateLimitedError("slow"), 429),
            (UpstreamUnauthorizedError("key"), 502),
            (UpstreamUnavailableError("down"), 503),
            (InvalidResponseError("garbled"), 502),
            (NewsRelayError("?"), 500),
        ],
    )
    def test_status_for(self, exc, status):
        assert status_for(exc.code) == status


class TestErrorPayload:
    def test_minimal(self):
        assert build_error_payload(UnauthenticatedError("Missing identity")) == {
            "success": False,
            "error": "Missing identity",
            "code": "Unauthenticated",
        }

    def test_quota_rounds_retry_after_up(self):
        payload = build_error_payload(
            QuotaExceededError("Quota exceeded", scope=QuotaScope.WINDOW, retry_after=12.2)
        )
        assert payload["retryAfter"] == 13
        assert payload["scope"] == "window"

    def test_provider_and_field(self):
        assert build_error_payload(
            RateLimitedError("busy", retry_after=5, provider_name="newsapi")
        )["provider"] == "newsapi"
        assert build_error_payload(InvalidQueryError("bad", field="topic"))["field"] == "topic"
