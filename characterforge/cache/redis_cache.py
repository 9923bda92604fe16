# characterforge/cache/redis_cache.py
import logging
import time
from typing import Callable, Optional

import redis.asyncio as redis

from characterforge.cache.base import (
    CACHE_EXPIRY_SECONDS,
    MAX_CACHE_SIZE,
    CacheData,
    CacheManager,
)
from characterforge.errors import CacheError

logger = logging.getLogger(__name__)


class RedisCacheManager(CacheManager):
    """
    Shares generated image URLs between processes through Redis.

    Locators are stored with a TTL; a sorted set of access times backs LRU
    eviction once more than ``max_size`` keys are cached.
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "characterforge",
        ttl_seconds: int = CACHE_EXPIRY_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self.index_key = f"{prefix}:index"

    def _key(self, key: str) -> str:
        return f"{self.prefix}:image:{key}"

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(self._key(key))
        if value is None:
            await self.client.zrem(self.index_key, key)
            return None

        await self.client.zadd(self.index_key, {key: self._clock()})
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def set(self, key: str, data: CacheData) -> str:
        if not isinstance(data, str):
            raise CacheError("Redis cache stores image URLs, not raw bytes")

        await self.client.setex(self._key(key), self.ttl_seconds, data)
        await self.client.zadd(self.index_key, {key: self._clock()})
        await self._enforce_limit()
        return data

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))
        await self.client.zrem(self.index_key, key)

    async def clear(self) -> None:
        members = await self.client.zrange(self.index_key, 0, -1)
        if members:
            await self.client.delete(*[self._key(self._decode(m)) for m in members])
        await self.client.delete(self.index_key)

    async def _enforce_limit(self) -> None:
        count = await self.client.zcard(self.index_key)
        overflow = count - self.max_size
        if overflow <= 0:
            return

        stale = [self._decode(m) for m in await self.client.zrange(self.index_key, 0, overflow - 1)]
        logger.debug(f"CACHE: Evicting {len(stale)} least recently used entries")
        await self.client.delete(*[self._key(k) for k in stale])
        await self.client.zrem(self.index_key, *stale)

    @staticmethod
    def _decode(member) -> str:
        return member.decode("utf-8") if isinstance(member, bytes) else member
