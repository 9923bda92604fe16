# characterforge/cache/__init__.py
import logging
import os
from pathlib import Path
from typing import Optional, Union

from characterforge.cache.base import (
    CACHE_EXPIRY_SECONDS,
    MAX_CACHE_SIZE,
    CacheManager,
    NoOpCacheManager,
)
from characterforge.cache.filesystem import FileSystemCacheManager
from characterforge.cache.redis_cache import RedisCacheManager

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path("~/.cache/characterforge")


def create_cache_manager(cache_dir: Optional[Union[str, Path]] = None) -> CacheManager:
    """Filesystem cache when a cache directory is usable, otherwise a no-op cache"""
    target = cache_dir or os.getenv("CHARACTERFORGE_CACHE_DIR") or DEFAULT_CACHE_DIR
    try:
        return FileSystemCacheManager(target)
    except OSError as e:
        logger.warning(f"⚠️ CACHE: Cache directory {target} unavailable, caching disabled: {e}")
        return NoOpCacheManager()


__all__ = [
    "CACHE_EXPIRY_SECONDS",
    "MAX_CACHE_SIZE",
    "CacheManager",
    "FileSystemCacheManager",
    "NoOpCacheManager",
    "RedisCacheManager",
    "create_cache_manager",
]
