# characterforge/cache/filesystem.py
"""
Image cache on the local filesystem.

Images live as individual files in the cache directory; ``metadata.json`` maps
each cache key to its file name and creation/access timestamps. Entries expire
after a fixed age and the total count is capped, evicting the least recently
accessed entries first.
"""

import asyncio
import base64
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from characterforge.cache.base import (
    CACHE_EXPIRY_SECONDS,
    MAX_CACHE_SIZE,
    CacheData,
    CacheManager,
)
from characterforge.errors import CacheError

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
SWEEP_INTERVAL_SECONDS = 60 * 60
DOWNLOAD_TIMEOUT = 30.0


class FileSystemCacheManager(CacheManager):
    def __init__(
        self,
        cache_dir: Union[str, Path],
        max_size: int = MAX_CACHE_SIZE,
        expiry_seconds: float = CACHE_EXPIRY_SECONDS,
        sweep_interval: Optional[float] = SWEEP_INTERVAL_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.metadata_path = self.cache_dir / METADATA_FILE
        self.max_size = max_size
        self.expiry_seconds = expiry_seconds
        self.sweep_interval = sweep_interval
        self._http_client = http_client
        self._clock = clock
        self._metadata: Optional[dict[str, dict]] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._destroyed = False

    # Metadata

    def _load_metadata(self) -> dict[str, dict]:
        if self._metadata is not None:
            return self._metadata

        try:
            if self.metadata_path.exists():
                loaded = json.loads(self.metadata_path.read_text(encoding="utf-8"))
                self._metadata = loaded if isinstance(loaded, dict) else {}
            else:
                self._metadata = {}
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ CACHE: Could not load metadata, starting empty: {e}")
            self._metadata = {}

        return self._metadata

    def _save_metadata(self) -> None:
        tmp_path = self.metadata_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(self._load_metadata()), encoding="utf-8")
        tmp_path.replace(self.metadata_path)

    def _is_expired(self, entry: dict) -> bool:
        return self._clock() - entry.get("created_at", 0) > self.expiry_seconds

    def _remove_entry(self, key: str) -> None:
        entry = self._load_metadata().pop(key, None)
        if entry:
            (self.cache_dir / entry["file_name"]).unlink(missing_ok=True)

    # Background sweep

    def start(self) -> None:
        """Start the periodic expiry sweep (also started lazily on first use)"""
        if self._destroyed or not self.sweep_interval:
            return
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                removed = self.sweep_expired()
                if removed:
                    logger.info(f"🧹 CACHE: Swept {removed} expired entries")
            except OSError as e:
                logger.warning(f"⚠️ CACHE: Expiry sweep failed: {e}")

    def sweep_expired(self) -> int:
        metadata = self._load_metadata()
        expired = [key for key, entry in metadata.items() if self._is_expired(entry)]
        for key in expired:
            self._remove_entry(key)
        if expired:
            self._save_metadata()
        return len(expired)

    def destroy(self) -> None:
        self._destroyed = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None

    # CacheManager

    async def get(self, key: str) -> Optional[str]:
        self.start()
        metadata = self._load_metadata()
        entry = metadata.get(key)
        if not entry:
            return None

        path = self.cache_dir / entry["file_name"]
        if self._is_expired(entry) or not path.exists():
            self._remove_entry(key)
            self._save_metadata()
            return None

        entry["accessed_at"] = self._clock()
        self._save_metadata()
        return str(path)

    async def set(self, key: str, data: CacheData) -> str:
        self.start()
        path = self.cache_dir / f"{uuid.uuid4().hex}.png"
        try:
            content = await self._read_content(data)
            await asyncio.to_thread(path.write_bytes, content)
        except (httpx.HTTPError, OSError, ValueError) as e:
            return self._uncached(data, e)

        metadata = self._load_metadata()
        previous = metadata.get(key)
        now = self._clock()
        metadata[key] = {
            "file_name": path.name,
            "created_at": now,
            "accessed_at": now,
        }
        try:
            self._enforce_limit()
            self._save_metadata()
        except OSError as e:
            # Keep memory consistent with disk: the new entry never happened
            if previous is not None:
                metadata[key] = previous
            else:
                metadata.pop(key, None)
            path.unlink(missing_ok=True)
            return self._uncached(data, e)

        if previous is not None:
            (self.cache_dir / previous["file_name"]).unlink(missing_ok=True)
        return str(path)

    def _uncached(self, data: CacheData, error: Exception) -> str:
        if isinstance(data, str):
            logger.warning(f"⚠️ CACHE: Failed to cache image, using remote URL: {error}")
            return data
        raise CacheError(f"Failed to cache image: {error}") from error

    async def delete(self, key: str) -> None:
        self._remove_entry(key)
        self._save_metadata()

    async def clear(self) -> None:
        for key in list(self._load_metadata()):
            self._remove_entry(key)
        self._save_metadata()

    def __len__(self) -> int:
        return len(self._load_metadata())

    def _enforce_limit(self) -> None:
        metadata = self._load_metadata()
        while len(metadata) > self.max_size:
            oldest = min(metadata, key=lambda k: metadata[k]["accessed_at"])
            logger.debug(f"CACHE: Evicting least recently used entry {oldest[:40]}")
            self._remove_entry(oldest)

    async def _read_content(self, data: CacheData) -> bytes:
        if isinstance(data, bytes):
            return data
        if data.startswith("data:"):
            _, _, encoded = data.partition(",")
            return base64.b64decode(encoded, validate=True)
        if data.startswith(("http://", "https://")):
            return await self._download(data)
        raise ValueError(f"Unsupported image locator: {data[:40]}")

    async def _download(self, url: str) -> bytes:
        if self._http_client is not None:
            response = await self._http_client.get(url)
        else:
            async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content
