"""
Redis-backed key-value store.

Documents are stored as plain string values; expiry uses Redis' native TTL so
stale cache entries and usage counters disappear without a cleanup job.
"""

from typing import Optional

from redis.asyncio import Redis

from tutor_api.storage.base import KeyValueStore


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def put(self, key: str, value: str, ttl_s: Optional[int] = None) -> None:
        await self.client.set(key, value, ex=ttl_s or None)

    async def list_keys(self, prefix: str) -> list[str]:
        # SCAN instead of KEYS so large keyspaces don't block the server
        keys = [key async for key in self.client.scan_iter(match=f"{prefix}*")]
        return sorted(keys)

    async def ping(self) -> bool:
        return bool(await self.client.ping())
