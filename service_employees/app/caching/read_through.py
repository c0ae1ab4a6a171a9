"""
Read-through cache over the employee record store.

A hit is served from the shared cache without touching the record store. A
miss, including any CacheUnavailable, reads the full record set, populates the
data key and its cached-at companion with the configured TTL, and returns the
fresh data. Concurrent misses may each repopulate; the last writer wins.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from shared.errors import CacheUnavailable

EMPLOYEES_KEY = "employees:all"
EMPLOYEES_CACHED_AT_KEY = "employees:cached_at"
CACHE_HITS_KEY = "cache:hits"

SOURCE_CACHE = "cache"
SOURCE_STORE = "store"


@dataclass
class CachedRead:
    """Result of a read-through lookup."""
    payload: List[Dict[str, Any]]
    source: str
    cached_at: Optional[str] = None


class CacheCoherentReader:
    """Serves the employee record set through the shared cache."""

    def __init__(self, store, cache, ttl_seconds: int = 300, metrics=None):
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("employees.cache.read_through")

    async def read(self) -> CachedRead:
        """Return the record set tagged with where it came from.

        Raises StoreError if the cache misses and the record store fails;
        nothing is cached in that case.
        """
        cached = await self._lookup()
        if cached is not None:
            return cached

        self._count("cache_misses_total")

        records = await self.store.list_records()
        payload = [record.to_dict() for record in records]

        await self._populate(payload)

        self.logger.info("Served employees from record store", count=len(payload))
        return CachedRead(payload=payload, source=SOURCE_STORE)

    async def _lookup(self) -> Optional[CachedRead]:
        try:
            raw = await self.cache.get(EMPLOYEES_KEY)
            if raw is None:
                return None
            payload = json.loads(raw)
            cached_at = await self.cache.get(EMPLOYEES_CACHED_AT_KEY)
        except CacheUnavailable as e:
            self.logger.warning("Cache read error, treating as miss", error=e.message, details=e.details)
            return None
        except ValueError as e:
            self.logger.warning("Corrupt cache entry, treating as miss", key=EMPLOYEES_KEY, error=str(e))
            return None

        self._count("cache_hits_total")
        try:
            await self.cache.increment(CACHE_HITS_KEY)
        except CacheUnavailable as e:
            self.logger.debug("Cache hit counter not updated", error=e.message)

        self.logger.info("Served employees from cache", count=len(payload))
        return CachedRead(payload=payload, source=SOURCE_CACHE, cached_at=cached_at)

    async def _populate(self, payload: List[Dict[str, Any]]):
        try:
            await self.cache.set_with_ttl(EMPLOYEES_KEY, json.dumps(payload), self.ttl_seconds)
            await self.cache.set_with_ttl(EMPLOYEES_CACHED_AT_KEY, datetime.now().isoformat(), self.ttl_seconds)
            self.logger.info("Cached employees", count=len(payload), ttl=self.ttl_seconds)
        except CacheUnavailable as e:
            self.logger.warning("Cache write error", error=e.message, details=e.details)

    def _count(self, metric_name: str):
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, cache_type="employees")
