"""Injectable time source.

Stores, the quota tracker and providers take a ``Clock`` so tests can move
time deterministically instead of sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by MongoDB) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_local_midnight(now: datetime, tz_name: str = "UTC") -> datetime:
    """First midnight strictly after ``now`` in ``tz_name``, returned in UTC."""
    tz = ZoneInfo(tz_name)
    local = as_utc(now).astimezone(tz)
    midnight = datetime.combine(
        local.date() + timedelta(days=1), datetime.min.time(), tzinfo=tz
    )
    return midnight.astimezone(timezone.utc)

