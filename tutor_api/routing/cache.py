"""
Response cache keyed by normalized query fingerprint.

Entries are JSON documents under ``response:<fingerprint>``. Freshness is
checked at read time against ``created_at`` rather than trusting the storage
TTL, so a backend that keeps expired keys around still reports a miss.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from tutor_api.config import settings
from tutor_api.models import CacheEntry
from tutor_api.routing.normalizer import fingerprint, normalize, similarity
from tutor_api.storage.base import KeyValueStore

logger = structlog.get_logger()

CACHE_KEY_PREFIX = "response:"


@dataclass(frozen=True)
class CacheLookup:
    hit: bool
    response: Optional[str] = None
    similarity: Optional[float] = None
    age_ms: Optional[int] = None


MISS = CacheLookup(hit=False)


def cache_key(query: str) -> str:
    return f"{CACHE_KEY_PREFIX}{fingerprint(normalize(query))}"


class ResponseCache:
    """
    Maps queries to previously generated answers.

    Attributes:
        store: Key-value collaborator holding the entries
        ttl_s: Freshness window in seconds
        clock: Returns the current time in seconds since the epoch
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_s: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_s = ttl_s or settings.cache_ttl_s
        self.clock = clock

    async def get(self, query: str) -> CacheLookup:
        """
        Look up the entry for a query.

        Returns a miss when nothing is stored or the entry is older than the
        freshness window; stale entries are left in place.
        """
        data = await self.store.get_json(cache_key(query))
        if data is None:
            return MISS

        entry = CacheEntry.model_validate(data)
        age_s = self.clock() - entry.created_at
        if age_s >= self.ttl_s:
            logger.info("cache_stale", key=entry.key, age_s=round(age_s, 1))
            return MISS

        return CacheLookup(
            hit=True,
            response=entry.response,
            similarity=similarity(query, entry.original_query),
            age_ms=int(age_s * 1000),
        )

    async def set(self, query: str, response: str) -> None:
        normalized = normalize(query)
        key = cache_key(query)
        entry = CacheEntry(
            key=key,
            original_query=query,
            normalized_query=normalized,
            response=response,
            created_at=self.clock(),
            hit_count=1,
        )
        await self.store.put_json(key, entry.model_dump(), ttl_s=self.ttl_s)

    async def increment(self, query: str) -> None:
        """Bump the hit counter for analytics. Never raises."""
        try:
            key = cache_key(query)
            data = await self.store.get_json(key)
            if data is None:
                return
            entry = CacheEntry.model_validate(data)
            entry.hit_count += 1
            await self.store.put_json(key, entry.model_dump(), ttl_s=self.ttl_s)
        except Exception as e:
            logger.warning("cache_increment_failed", error=str(e))
