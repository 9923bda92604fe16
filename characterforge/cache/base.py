# characterforge/cache/base.py
from abc import ABC, abstractmethod
from typing import Optional, Union

from characterforge.errors import CacheError

CACHE_EXPIRY_SECONDS = 7 * 24 * 60 * 60
MAX_CACHE_SIZE = 100

CacheData = Union[str, bytes]


class CacheManager(ABC):
    """Maps a cache key to a locally persisted image locator"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, data: CacheData) -> str:
        """Persist data under key and return the locator callers should use"""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    def destroy(self) -> None:
        """Release background resources; safe to call more than once"""


class NoOpCacheManager(CacheManager):
    """Cache that never stores anything"""

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, data: CacheData) -> str:
        if isinstance(data, str):
            return data
        raise CacheError("Cannot return a locator for raw image bytes without a cache backend")

    async def delete(self, key: str) -> None:
        return None

    async def clear(self) -> None:
        return None
