"""Tests for the TTL cache store."""

from datetime import timedelta

import anyio
import pytest

from newsrelay.application.cache import (
    CacheEntry,
    CacheStatistics,
    InMemoryCacheStore,
    build_entry,
    classify_entry,
)
from newsrelay.enums import CacheState


@pytest.fixture
def store(clock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock, hard_ttl_seconds=3600, sweep_every=100)


class TestClassifyEntry:
    def test_missing_entry_is_absent(self, clock):
        assert classify_entry(None, clock()) is CacheState.ABSENT

    def test_boundaries(self, clock):
        entry = build_entry("k", {"v": 1}, clock(), ttl_seconds=60, hard_ttl_seconds=120)

        assert classify_entry(entry, clock()) is CacheState.FRESH
        assert classify_entry(entry, entry.expires_at - timedelta(microseconds=1)) is CacheState.FRESH
        assert classify_entry(entry, entry.expires_at) is CacheState.STALE
        assert classify_entry(entry, entry.purge_at - timedelta(microseconds=1)) is CacheState.STALE
        assert classify_entry(entry, entry.purge_at) is CacheState.ABSENT


class TestBuildEntry:
    def test_rejects_non_positive_ttl(self, clock):
        with pytest.raises(ValueError):
            build_entry("k", {}, clock(), ttl_seconds=0, hard_ttl_seconds=60)

    def test_hard_ttl_never_shorter_than_soft(self, clock):
        entry = build_entry("k", {}, clock(), ttl_seconds=300, hard_ttl_seconds=60)
        assert entry.purge_at == entry.expires_at

    def test_entry_invariants_are_enforced(self, clock):
        now = clock()
        with pytest.raises(ValueError):
            CacheEntry("k", {}, fetched_at=now, expires_at=now, purge_at=now)
        with pytest.raises(ValueError):
            CacheEntry(
                "k",
                {},
                fetched_at=now,
                expires_at=now + timedelta(seconds=10),
                purge_at=now + timedelta(seconds=5),
            )


class TestInMemoryCacheStore:
    @pytest.mark.anyio
    async def test_get_on_empty_store_is_absent(self, store):
        lookup = await store.get("missing")
        assert lookup.entry is None
        assert lookup.state is CacheState.ABSENT
        assert store.statistics.cache_misses == 1

    @pytest.mark.anyio
    async def test_fresh_then_stale_then_absent(self, store, clock):
        """Entries move through fresh, stale and absent as time passes."""
        await store.put("k", {"articles": []}, ttl_seconds=60)

        lookup = await store.get("k")
        assert lookup.state is CacheState.FRESH
        assert lookup.entry.payload == {"articles": []}

        clock.advance(61)
        lookup = await store.get("k")
        assert lookup.state is CacheState.STALE
        assert lookup.entry is not None

        clock.advance(3600)
        lookup = await store.get("k")
        assert lookup.state is CacheState.ABSENT
        assert lookup.entry is None
        assert len(store) == 0
        assert store.statistics.purges == 1

    @pytest.mark.anyio
    async def test_put_overwrites_and_resets_timestamps(self, store, clock):
        first = await store.put("k", {"v": 1}, ttl_seconds=60)
        clock.advance(90)
        second = await store.put("k", {"v": 2}, ttl_seconds=60)

        lookup = await store.get("k")
        assert lookup.state is CacheState.FRESH
        assert lookup.entry.payload == {"v": 2}
        assert second.fetched_at > first.fetched_at
        assert lookup.entry.expires_at == second.expires_at

    @pytest.mark.anyio
    async def test_explicit_hard_ttl_overrides_store_default(self, store, clock):
        entry = await store.put("k", {}, ttl_seconds=10, hard_ttl_seconds=20)
        assert entry.purge_at == clock() + timedelta(seconds=20)

    @pytest.mark.anyio
    async def test_every_nth_read_sweeps_whole_store(self, clock):
        store = InMemoryCacheStore(clock=clock, hard_ttl_seconds=10, sweep_every=3)
        await store.put("a", {}, ttl_seconds=5)
        await store.put("b", {}, ttl_seconds=5)
        clock.advance(11)
        await store.put("c", {}, ttl_seconds=60)

        await store.get("c")
        await store.get("c")
        assert len(store) == 3

        await store.get("c")
        assert len(store) == 1
        assert store.statistics.sweeps == 1
        assert store.statistics.purges == 2

    @pytest.mark.anyio
    async def test_purge_expired(self, store, clock):
        await store.put("old", {}, ttl_seconds=5, hard_ttl_seconds=10)
        await store.put("new", {}, ttl_seconds=60)
        clock.advance(10)

        assert await store.purge_expired() == 1
        assert len(store) == 1

    @pytest.mark.anyio
    async def test_concurrent_puts_last_writer_wins(self, store):
        async def write(value: int) -> None:
            await store.put("k", {"v": value}, ttl_seconds=60)

        async with anyio.create_task_group() as tg:
            for i in range(10):
                tg.start_soon(write, i)

        lookup = await store.get("k")
        assert lookup.state is CacheState.FRESH
        assert lookup.entry.payload["v"] in range(10)
        assert store.statistics.writes == 10

    def test_rejects_invalid_sweep_interval(self):
        with pytest.raises(ValueError):
            InMemoryCacheStore(sweep_every=0)


class TestCacheStatistics:
    def test_hit_rate(self):
        stats = CacheStatistics()
        assert stats.hit_rate == 0.0

        stats.record_fresh_hit()
        stats.record_stale_hit()
        stats.record_miss()
        stats.record_fresh_hit()

        assert stats.hit_rate == 0.5
        data = stats.get_stats()
        assert data["fresh_hits"] == 2
        assert data["stale_hits"] == 1
        assert data["cache_misses"] == 1

    def test_reset(self):
        stats = CacheStatistics()
        stats.record_write()
        stats.record_purge(3)
        stats.reset()
        assert stats.writes == 0
        assert stats.purges == 0
