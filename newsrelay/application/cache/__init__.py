"""TTL cache store with fresh/stale/absent classification."""

from .models import CacheEntry, CacheLookup
from .statistics import CacheStatistics
from .store import CacheStore, InMemoryCacheStore, build_entry, classify_entry

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheStatistics",
    "CacheStore",
    "InMemoryCacheStore",
    "build_entry",
    "classify_entry",
]
