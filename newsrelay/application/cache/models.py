"""Data models for the cache module."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from ...enums import CacheState


@dataclass
class CacheEntry:
    """A payload stored under a deterministic key with soft and hard expiry.

    ``expires_at`` ends freshness; the entry stays servable as stale until
    ``purge_at``.
    """

    key: str
    payload: Dict[str, Any]
    fetched_at: datetime
    expires_at: datetime
    purge_at: datetime

    def __post_init__(self):
        if self.expires_at <= self.fetched_at:
            raise ValueError("expires_at must be after fetched_at")
        if self.purge_at < self.expires_at:
            raise ValueError("purge_at must not be before expires_at")


class CacheLookup(NamedTuple):
    entry: Optional[CacheEntry]
    state: CacheState
