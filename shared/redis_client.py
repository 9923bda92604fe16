# shared/redis_client.py
import os
from typing import Optional

import redis.asyncio as redis

REDIS_URL = os.getenv("REDIS_URL")
if not REDIS_URL:
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
    REDIS_DB = int(os.getenv("REDIS_DB", "0"))

    if REDIS_PASSWORD:
        REDIS_URL = f"redis://:{REDIS_PASSWORD}@{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"
    else:
        REDIS_URL = f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"

_redis_client: Optional[redis.Redis] = None


async def init_redis():
    """Initialize Redis connection"""
    global _redis_client

    _redis_client = redis.from_url(
        REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
    )

    await _redis_client.ping()


async def close_redis():
    """Close Redis connection"""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def get_redis() -> redis.Redis:
    """Dependency to get Redis client"""
    if not _redis_client:
        await init_redis()
    return _redis_client


class RedisCache:
    """Namespaced helpers over a Redis client"""

    def __init__(self, client: redis.Redis, prefix: str = "cache"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            await self.client.setex(self._key(key), ttl, value)
        else:
            await self.client.set(self._key(key), value)

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """Atomically claim a key; False when another caller already holds it"""
        return bool(await self.client.set(self._key(key), value, nx=True, ex=ttl))

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))


async def get_idempotency_cache() -> RedisCache:
    """Cache used to remember processed payment events"""
    client = await get_redis()
    return RedisCache(client, "idempotency")
