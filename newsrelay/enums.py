"""Enums module for NewsRelay.

Contains all enumeration classes used throughout the application.
"""

from enum import StrEnum


class CacheState(StrEnum):
    """Validity of a cache entry relative to its soft and hard TTL."""

    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


class ErrorCode(StrEnum):
    """Stable error taxonomy surfaced to callers."""

    UNAUTHENTICATED = "Unauthenticated"
    INVALID_QUERY = "InvalidQuery"
    QUOTA_EXCEEDED = "QuotaExceeded"
    RATE_LIMITED = "RateLimited"
    UNAUTHORIZED = "Unauthorized"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    INVALID_RESPONSE = "InvalidResponse"
    UNKNOWN = "Unknown"


class QuotaScope(StrEnum):
    """Which quota window rejected a request."""

    WINDOW = "window"
    DAY = "day"


class ProviderName(StrEnum):
    """Upstream providers fronted by the orchestrator."""

    NEWSAPI = "newsapi"
    GUARDIAN = "guardian"
    GEMINI = "gemini"


class TimeRange(StrEnum):
    """Look-back windows accepted for article searches."""

    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    TWELVE_HOURS = "12h"
    ONE_DAY = "24h"
    THREE_DAYS = "3d"
    ONE_WEEK = "7d"


class OrderBy(StrEnum):
    NEWEST = "newest"
    RELEVANCE = "relevance"


class MessageRoles(StrEnum):
    """Chat history roles."""

    User = "user"
    Assistant = "assistant"
