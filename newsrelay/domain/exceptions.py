"""Custom exception hierarchy for NewsRelay.

Every failure that can reach a caller is one of these types. Each class
carries a stable :class:`~newsrelay.enums.ErrorCode`, so callers branch on the
type or its ``code`` and never on message text.
"""

from typing import Any, Dict, Optional

from ..enums import ErrorCode, QuotaScope


class NewsRelayError(Exception):
    """Base exception for all NewsRelay-specific exceptions."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}
        self.retry_after: Optional[float] = None


class UnauthenticatedError(NewsRelayError):
    """Raised when a call arrives without an authenticated identity."""

    code = ErrorCode.UNAUTHENTICATED


class InvalidQueryError(NewsRelayError):
    """Raised when caller input is rejected before touching cache or provider."""

    code = ErrorCode.INVALID_QUERY

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.field = field


class QuotaExceededError(NewsRelayError):
    """Raised when an identity has used up its window or daily quota."""

    code = ErrorCode.QUOTA_EXCEEDED

    def __init__(
        self,
        message: str,
        scope: QuotaScope,
        retry_after: Optional[float] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.scope = scope
        self.retry_after = retry_after


class ConfigurationError(NewsRelayError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.config_key = config_key


class ProviderError(NewsRelayError):
    """Base exception for provider-related errors."""

    def __init__(
        self,
        message: str,
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.provider_name = provider_name


class RateLimitedError(ProviderError):
    """Raised when the upstream provider itself throttles us."""

    code = ErrorCode.RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, provider_name, request_id, details)
        self.retry_after = retry_after


class UpstreamUnauthorizedError(ProviderError):
    """Raised when the upstream provider rejects our credentials."""

    code = ErrorCode.UNAUTHORIZED


class UpstreamInvalidQueryError(ProviderError):
    """Raised when the upstream provider rejects the query parameters."""

    code = ErrorCode.INVALID_QUERY


class UpstreamUnavailableError(ProviderError):
    """Raised on upstream timeouts, network failures and 5xx responses."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, provider_name, request_id, details)
        self.status_code = status_code
        self.timeout_seconds = timeout_seconds


class InvalidResponseError(ProviderError):
    """Raised when generated output cannot be parsed or has the wrong shape."""

    code = ErrorCode.INVALID_RESPONSE

    def __init__(
        self,
        message: str,
        raw_text: Optional[str] = None,
        provider_name: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, provider_name, request_id, details)
        self.raw_text = raw_text


class UnknownProviderError(ProviderError):
    """Raised for upstream failures that match no classification rule."""

    code = ErrorCode.UNKNOWN
