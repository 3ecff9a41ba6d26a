"""Per-identity request quota with a rolling window and a daily cap."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Optional

import anyio
from typing_extensions import Protocol

from ..clock import Clock, next_local_midnight, utc_now
from ...constants import DEFAULT_QUOTA_WINDOW_SECONDS
from ...domain.exceptions import QuotaExceededError
from ...enums import QuotaScope
from ...logging import info, LogRecord, LogEvent


@dataclass(frozen=True)
class QuotaLimits:
    """Maximum charged requests per window and per day."""

    window_max: int
    daily_max: int

    def __post_init__(self):
        if self.window_max < 1:
            raise ValueError(f"window_max must be at least 1, got {self.window_max}")
        if self.daily_max < 1:
            raise ValueError(f"daily_max must be at least 1, got {self.daily_max}")


@dataclass(frozen=True)
class QuotaCounter:
    identity: str
    window_count: int
    window_reset_at: datetime
    daily_count: int
    daily_reset_at: datetime


def new_counter(
    identity: str, now: datetime, window_seconds: float, tz_name: str = "UTC"
) -> QuotaCounter:
    return QuotaCounter(
        identity=identity,
        window_count=0,
        window_reset_at=now + timedelta(seconds=window_seconds),
        daily_count=0,
        daily_reset_at=next_local_midnight(now, tz_name),
    )


def roll_counter(
    counter: QuotaCounter, now: datetime, window_seconds: float, tz_name: str = "UTC"
) -> QuotaCounter:
    """Reset each scope whose reset time has passed, leaving the other intact."""
    if now > counter.window_reset_at:
        counter = replace(
            counter,
            window_count=0,
            window_reset_at=now + timedelta(seconds=window_seconds),
        )
    if now > counter.daily_reset_at:
        counter = replace(
            counter, daily_count=0, daily_reset_at=next_local_midnight(now, tz_name)
        )
    return counter


def exceeded_scope(counter: QuotaCounter, limits: QuotaLimits) -> Optional[QuotaScope]:
    """First scope at its limit; the window is checked before the day."""
    if counter.window_count >= limits.window_max:
        return QuotaScope.WINDOW
    if counter.daily_count >= limits.daily_max:
        return QuotaScope.DAY
    return None


def quota_error(
    counter: QuotaCounter, scope: QuotaScope, now: datetime
) -> QuotaExceededError:
    reset_at = (
        counter.window_reset_at if scope is QuotaScope.WINDOW else counter.daily_reset_at
    )
    retry_after = max(0.0, (reset_at - now).total_seconds())
    return QuotaExceededError(
        f"Quota exceeded for the current {scope.value}",
        scope=scope,
        retry_after=retry_after,
        details={"identity": counter.identity, "reset_at": reset_at.isoformat()},
    )


def log_quota_rejection(error: QuotaExceededError) -> None:
    info(
        LogRecord(
            event=LogEvent.QUOTA_EVENT.value,
            message=error.message,
            data={
                "scope": error.scope.value,
                "retry_after": error.retry_after,
                **error.details,
            },
        )
    )


class QuotaTracker(Protocol):
    async def check_and_increment(
        self, identity: str, limits: QuotaLimits
    ) -> QuotaCounter: ...

    async def peek(self, identity: str) -> Optional[QuotaCounter]: ...


class InMemoryQuotaTracker:
    """
    Quota tracker holding counters in process memory.

    Check and increment happen under one lock, so two concurrent callers can
    never both take the last slot and a rejected call charges nothing.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_QUOTA_WINDOW_SECONDS,
        tz_name: str = "UTC",
        clock: Clock = utc_now,
    ):
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self._window_seconds = window_seconds
        self._tz_name = tz_name
        self._clock = clock
        self._counters: Dict[str, QuotaCounter] = {}
        self._lock = anyio.Lock()

    async def check_and_increment(
        self, identity: str, limits: QuotaLimits
    ) -> QuotaCounter:
        async with self._lock:
            now = self._clock()
            counter = self._counters.get(identity)
            if counter is None:
                counter = new_counter(identity, now, self._window_seconds, self._tz_name)
            else:
                counter = roll_counter(
                    counter, now, self._window_seconds, self._tz_name
                )

            scope = exceeded_scope(counter, limits)
            if scope is not None:
                # Rollover is kept even when rejected; counts are untouched
                self._counters[identity] = counter
                error = quota_error(counter, scope, now)
            else:
                counter = replace(
                    counter,
                    window_count=counter.window_count + 1,
                    daily_count=counter.daily_count + 1,
                )
                self._counters[identity] = counter
                return counter

        log_quota_rejection(error)
        raise error

    async def peek(self, identity: str) -> Optional[QuotaCounter]:
        async with self._lock:
            return self._counters.get(identity)
