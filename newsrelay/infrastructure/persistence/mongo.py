"""
MongoDB-backed cache store and quota tracker.
Uses the async pymongo client; every write is a single server-side operation.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection

from ...application.cache import CacheEntry, CacheLookup, CacheStatistics
from ...application.cache.store import build_entry, classify_entry
from ...application.clock import Clock, as_utc, next_local_midnight, utc_now
from ...application.quota.tracker import (
    QuotaCounter,
    QuotaLimits,
    exceeded_scope,
    log_quota_rejection,
    quota_error,
)
from ...config import Settings
from ...constants import DEFAULT_CACHE_HARD_TTL_SECONDS, DEFAULT_QUOTA_WINDOW_SECONDS
from ...domain.exceptions import ConfigurationError
from ...enums import CacheState, QuotaScope

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def create_client(settings: Settings) -> AsyncMongoClient:
    if not settings.mongodb_uri:
        raise ConfigurationError("MONGODB_URI is not configured", config_key="MONGODB_URI")
    return AsyncMongoClient(
        settings.mongodb_uri, tz_aware=True, appname=settings.app_name
    )


class MongoCacheStore:
    """
    Cache entries stored as ``{_id: key, payload, fetchedAt, expiresAt, purgeAt}``.

    A TTL index on ``purgeAt`` lets the server drop hard-expired entries;
    reads also delete such entries so they are never served in between.
    """

    def __init__(
        self,
        collection: AsyncCollection,
        clock: Clock = utc_now,
        hard_ttl_seconds: float = DEFAULT_CACHE_HARD_TTL_SECONDS,
    ):
        self._collection = collection
        self._clock = clock
        self._hard_ttl_seconds = hard_ttl_seconds
        self.statistics = CacheStatistics()

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("purgeAt", expireAfterSeconds=0)

    @staticmethod
    def _to_document(entry: CacheEntry) -> Dict[str, Any]:
        return {
            "_id": entry.key,
            "payload": entry.payload,
            "fetchedAt": entry.fetched_at,
            "expiresAt": entry.expires_at,
            "purgeAt": entry.purge_at,
        }

    @staticmethod
    def _to_entry(document: Dict[str, Any]) -> CacheEntry:
        return CacheEntry(
            key=document["_id"],
            payload=document["payload"],
            fetched_at=as_utc(document["fetchedAt"]),
            expires_at=as_utc(document["expiresAt"]),
            purge_at=as_utc(document["purgeAt"]),
        )

    async def get(self, key: str) -> CacheLookup:
        document = await self._collection.find_one({"_id": key})
        entry = self._to_entry(document) if document else None
        state = classify_entry(entry, self._clock())

        if entry is not None and state is CacheState.ABSENT:
            # Match on purgeAt so a concurrent fresh put is not deleted
            await self._collection.delete_one({"_id": key, "purgeAt": document["purgeAt"]})  # type: ignore[index]
            self.statistics.record_purge()
            entry = None

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
        entry = build_entry(key, payload, self._clock(), ttl_seconds, hard)
        await self._collection.replace_one(
            {"_id": key}, self._to_document(entry), upsert=True
        )
        self.statistics.record_write()
        return entry

    async def purge_expired(self) -> int:
        result = await self._collection.delete_many({"purgeAt": {"$lte": self._clock()}})
        self.statistics.record_sweep()
        if result.deleted_count:
            self.statistics.record_purge(result.deleted_count)
        return result.deleted_count


def build_quota_pipeline(
    now: datetime,
    window_seconds: float,
    daily_reset_at: datetime,
    limits: QuotaLimits,
) -> List[Dict[str, Any]]:
    """Aggregation-pipeline update that rolls, checks and charges in one step.

    Stage one resets any scope whose reset time has passed (missing fields
    count as long expired), stage two computes ``allowed`` and stage three
    increments both counters only when allowed.
    """
    window_expired = {"$gt": [now, {"$ifNull": ["$windowResetAt", _EPOCH]}]}
    day_expired = {"$gt": [now, {"$ifNull": ["$dailyResetAt", _EPOCH]}]}
    return [
        {
            "$set": {
                "windowCount": {"$cond": [window_expired, 0, "$windowCount"]},
                "windowResetAt": {
                    "$cond": [
                        window_expired,
                        now + timedelta(seconds=window_seconds),
                        "$windowResetAt",
                    ]
                },
                "dailyCount": {"$cond": [day_expired, 0, "$dailyCount"]},
                "dailyResetAt": {"$cond": [day_expired, daily_reset_at, "$dailyResetAt"]},
            }
        },
        {
            "$set": {
                "allowed": {
                    "$and": [
                        {"$lt": ["$windowCount", limits.window_max]},
                        {"$lt": ["$dailyCount", limits.daily_max]},
                    ]
                }
            }
        },
        {
            "$set": {
                "windowCount": {
                    "$cond": ["$allowed", {"$add": ["$windowCount", 1]}, "$windowCount"]
                },
                "dailyCount": {
                    "$cond": ["$allowed", {"$add": ["$dailyCount", 1]}, "$dailyCount"]
                },
            }
        },
    ]


class MongoQuotaTracker:
    """Quota counters stored one document per identity.

    Check and increment is a single ``find_one_and_update`` with a pipeline
    update, so concurrent requests across processes are serialized by the
    server and a rejected request charges nothing.
    """

    def __init__(
        self,
        collection: AsyncCollection,
        window_seconds: float = DEFAULT_QUOTA_WINDOW_SECONDS,
        tz_name: str = "UTC",
        clock: Clock = utc_now,
    ):
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self._collection = collection
        self._window_seconds = window_seconds
        self._tz_name = tz_name
        self._clock = clock

    @staticmethod
    def _to_counter(document: Dict[str, Any]) -> QuotaCounter:
        return QuotaCounter(
            identity=document["_id"],
            window_count=int(document["windowCount"]),
            window_reset_at=as_utc(document["windowResetAt"]),
            daily_count=int(document["dailyCount"]),
            daily_reset_at=as_utc(document["dailyResetAt"]),
        )

    async def check_and_increment(
        self, identity: str, limits: QuotaLimits
    ) -> QuotaCounter:
        now = self._clock()
        pipeline = build_quota_pipeline(
            now,
            self._window_seconds,
            next_local_midnight(now, self._tz_name),
            limits,
        )
        document = await self._collection.find_one_and_update(
            {"_id": identity},
            pipeline,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        counter = self._to_counter(document)
        if document.get("allowed"):
            return counter

        scope = exceeded_scope(counter, limits) or QuotaScope.DAY
        error = quota_error(counter, scope, now)
        log_quota_rejection(error)
        raise error

    async def peek(self, identity: str) -> Optional[QuotaCounter]:
        document = await self._collection.find_one({"_id": identity})
        return self._to_counter(document) if document else None
