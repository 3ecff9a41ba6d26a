"""TTL cache store contract and the in-memory backend."""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import anyio
from typing_extensions import Protocol

from .models import CacheEntry, CacheLookup
from .statistics import CacheStatistics
from ..clock import Clock, utc_now
from ...constants import DEFAULT_CACHE_HARD_TTL_SECONDS, DEFAULT_CACHE_SWEEP_EVERY_READS
from ...enums import CacheState
from ...logging import debug, LogRecord, LogEvent


def classify_entry(entry: Optional[CacheEntry], now: datetime) -> CacheState:
    """Classify an entry as FRESH, STALE or ABSENT at ``now``."""
    if entry is None or now >= entry.purge_at:
        return CacheState.ABSENT
    if now < entry.expires_at:
        return CacheState.FRESH
    return CacheState.STALE


def build_entry(
    key: str,
    payload: Dict[str, Any],
    now: datetime,
    ttl_seconds: float,
    hard_ttl_seconds: float,
) -> CacheEntry:
    """Create an entry fetched at ``now``; hard TTL never drops below soft TTL."""
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
    hard = max(hard_ttl_seconds, ttl_seconds)
    return CacheEntry(
        key=key,
        payload=payload,
        fetched_at=now,
        expires_at=now + timedelta(seconds=ttl_seconds),
        purge_at=now + timedelta(seconds=hard),
    )


class CacheStore(Protocol):
    """Keyed TTL store used by the fetch orchestrator."""

    statistics: CacheStatistics

    async def get(self, key: str) -> CacheLookup: ...

    async def put(
        self,
        key: str,
        payload: Dict[str, Any],
        ttl_seconds: float,
        hard_ttl_seconds: Optional[float] = None,
    ) -> CacheEntry: ...

    async def purge_expired(self) -> int: ...


class InMemoryCacheStore:
    """
    Process-local cache store.

    Hard-expired entries are dropped lazily when read, and every
    ``sweep_every`` reads the whole map is swept. Puts always overwrite, so
    the last writer wins.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        hard_ttl_seconds: float = DEFAULT_CACHE_HARD_TTL_SECONDS,
        sweep_every: int = DEFAULT_CACHE_SWEEP_EVERY_READS,
    ):
        if sweep_every < 1:
            raise ValueError(f"sweep_every must be positive, got {sweep_every}")
        self._clock = clock
        self._hard_ttl_seconds = hard_ttl_seconds
        self._sweep_every = sweep_every
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = anyio.Lock()
        self._read_counter = 0
        self.statistics = CacheStatistics()

    def __len__(self) -> int:
        return len(self._entries)

    def _should_sweep(self) -> bool:
        self._read_counter += 1
        return self._read_counter % self._sweep_every == 0

    def _sweep_locked(self, now: datetime) -> int:
        expired = [k for k, e in self._entries.items() if now >= e.purge_at]
        for key in expired:
            del self._entries[key]
        self.statistics.record_sweep()
        if expired:
            self.statistics.record_purge(len(expired))
        return len(expired)

    async def get(self, key: str) -> CacheLookup:
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            state = classify_entry(entry, now)

            if entry is not None and state is CacheState.ABSENT:
                del self._entries[key]
                self.statistics.record_purge()
                entry = None

            if self._should_sweep():
                purged = self._sweep_locked(now)
                if purged:
                    debug(
                        LogRecord(
                            event=LogEvent.CACHE_EVENT.value,
                            message=f"Batch sweep purged {purged} entries",
                            data={"remaining": len(self._entries)},
                        )
                    )

        if state is CacheState.FRESH:
            self.statistics.record_fresh_hit()
        elif state is CacheState.STALE:
            self.statistics.record_stale_hit()
        else:
            self.statistics.record_miss()
        return CacheLookup(entry, state)

    async def put(
        self,
        key: str,
        payload: Dict[str, Any],
        ttl_seconds: float,
        hard_ttl_seconds: Optional[float] = None,
    ) -> CacheEntry:
        hard = self._hard_ttl_seconds if hard_ttl_seconds is None else hard_ttl_seconds
        async with self._lock:
            entry = build_entry(key, payload, self._clock(), ttl_seconds, hard)
            self._entries[key] = entry
        self.statistics.record_write()
        return entry

    async def purge_expired(self) -> int:
        async with self._lock:
            return self._sweep_locked(self._clock())
