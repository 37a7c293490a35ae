"""
Result cache for demand fetches.

Stores the latest status snapshot per entity so that entities which are
still on screen can be rendered without spending quota.
"""

import time
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CacheEntry:
    """Represents a single snapshot with the time it was fetched."""

    def __init__(self, entity_id: str, snapshot: dict[str, Any], fetched_at: float):
        self.entity_id = entity_id
        self.snapshot = snapshot
        self.fetched_at = fetched_at

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Check if this entry is younger than the TTL."""
        return self.age(now) < ttl_seconds


class ResultCache:
    """
    In-memory snapshot cache with lazy TTL evaluation.

    Entries are never evicted in the background; a stale entry simply
    reads as a miss until a newer fetch overwrites it.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "stale": 0,
            "total_requests": 0,
        }

    def get(self, entity_id: str) -> dict[str, Any] | None:
        """
        Get a fresh snapshot from the cache.

        Args:
            entity_id: Entity identifier

        Returns:
            Cached snapshot or None if not found/stale
        """
        entry = self.get_entry(entity_id)
        return entry.snapshot if entry else None

    def get_entry(self, entity_id: str) -> CacheEntry | None:
        """Get a fresh cache entry, or None on a miss."""
        self._stats["total_requests"] += 1

        entry = self._cache.get(entity_id)
        if entry is None:
            self._stats["misses"] += 1
            return None

        if not entry.is_fresh(self._clock(), self.ttl_seconds):
            self._stats["stale"] += 1
            self._stats["misses"] += 1
            return None

        self._stats["hits"] += 1
        return entry

    def put(self, entity_id: str, snapshot: dict[str, Any]) -> None:
        """Store a snapshot fetched now, replacing any older entry."""
        self._cache[entity_id] = CacheEntry(entity_id, snapshot, self._clock())

    def is_fresh(self, entity_id: str) -> bool:
        """Check freshness without touching the hit/miss counters."""
        entry = self._cache.get(entity_id)
        return entry is not None and entry.is_fresh(self._clock(), self.ttl_seconds)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._stats["total_requests"]
        hit_rate = (
            (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0
        )

        return {
            "cache_size": len(self._cache),
            "ttl_seconds": self.ttl_seconds,
            "hit_rate_percent": round(hit_rate, 2),
            "total_requests": total_requests,
            "hits": self._stats["hits"],
            "misses": self._stats["misses"],
            "stale": self._stats["stale"],
        }
