"""Cache statistics tracking and reporting."""

from typing import Dict, Any
import time


class CacheStatistics:
    """Tracks cache lookups, writes and purges."""

    def __init__(self):
        """Initialize cache statistics."""
        self.fresh_hits = 0
        self.stale_hits = 0
        self.cache_misses = 0
        self.writes = 0
        self.purges = 0
        self.sweeps = 0
        self.start_time = time.time()

    def record_fresh_hit(self):
        self.fresh_hits += 1

    def record_stale_hit(self):
        self.stale_hits += 1

    def record_miss(self):
        self.cache_misses += 1

    def record_write(self):
        self.writes += 1

    def record_purge(self, count: int = 1):
        """Record hard-expired entries removed from the store."""
        self.purges += count

    def record_sweep(self):
        self.sweeps += 1

    @property
    def hit_rate(self) -> float:
        """Share of lookups answered with a fresh entry."""
        total = self.fresh_hits + self.stale_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.fresh_hits / total

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "fresh_hits": self.fresh_hits,
            "stale_hits": self.stale_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, 3),
            "writes": self.writes,
            "purges": self.purges,
            "sweeps": self.sweeps,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }

    def reset(self):
        """Reset all statistics."""
        self.fresh_hits = 0
        self.stale_hits = 0
        self.cache_misses = 0
        self.writes = 0
        self.purges = 0
        self.sweeps = 0
        self.start_time = time.time()
