# characterforge/client.py
"""
CharacterForge generation client.

Wraps ``POST /generate-character`` with a local image cache, bounded retries
and typed errors. One call to ``generate`` is one logical request; concurrent
calls for the same config are not coalesced.
"""

import asyncio
import logging
import os
import random
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from characterforge.cache import CacheManager, create_cache_manager
from characterforge.errors import (
    AuthenticationError,
    ConfigValidationError,
    GenerationError,
    NetworkError,
    error_from_response,
)
from characterforge.retry import DEFAULT_TIMEOUT, RetryConfig, RetryEngine
from characterforge.types import CharacterConfig, ConfigInput, cache_key, canonical_json

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = os.getenv("CHARACTERFORGE_BASE_URL", "https://api.characterforge.app/v1")
GENERATE_OPERATION = "generate-character"


class GenerationStatus(str, Enum):
    CHECKING_CACHE = "checking_cache"
    CACHE_HIT = "cache_hit"
    CALLING_API = "calling_api"
    CACHING_RESULT = "caching_result"
    COMPLETE = "complete"


StatusCallback = Callable[[GenerationStatus], None]


def parse_config(config: ConfigInput) -> CharacterConfig:
    """Validate raw input before anything touches the network"""
    if isinstance(config, CharacterConfig):
        return config
    try:
        return CharacterConfig.model_validate(config)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigValidationError(f"Invalid character config: {first.get('msg')}", field=field) from e


class CharacterForgeClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        cache: bool = True,
        cache_manager: Optional[CacheManager] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retry: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        if not api_key:
            raise AuthenticationError("API key is required")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache_enabled = cache
        self.cache_manager = cache_manager if cache_manager is not None else create_cache_manager()
        self.timeout = timeout
        self.retry_config = retry or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.last_retry: Optional[RetryEngine] = None

        logger.info(f"✅ CLIENT: Initialized (cache={'on' if cache else 'off'}, base_url={self.base_url})")

    async def __aenter__(self) -> "CharacterForgeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()
        self.cache_manager.destroy()

    def _emit(self, callback: Optional[StatusCallback], status: GenerationStatus) -> None:
        if callback is None:
            return
        try:
            callback(status)
        except Exception as e:
            logger.warning(f"⚠️ CLIENT: Status callback raised on {status.value}: {e}")

    async def generate(
        self, config: ConfigInput, on_status_update: Optional[StatusCallback] = None
    ) -> str:
        """Generate (or fetch from cache) the image for config and return its locator"""
        character = parse_config(config)
        key = cache_key(character)
        should_cache = self.cache_enabled and character.cache is not False

        if should_cache:
            self._emit(on_status_update, GenerationStatus.CHECKING_CACHE)
            cached = None
            try:
                cached = await self.cache_manager.get(key)
            except Exception as e:
                logger.warning(f"⚠️ CLIENT: Cache lookup failed, generating instead: {e}")

            if cached:
                logger.info("✅ CLIENT: Cache hit")
                self._emit(on_status_update, GenerationStatus.CACHE_HIT)
                return cached

        self._emit(on_status_update, GenerationStatus.CALLING_API)
        engine = RetryEngine(self.retry_config, timeout=self.timeout, sleep=self._sleep, rng=self._rng)
        self.last_retry = engine
        image_url = await engine.run(lambda: self._request_generation(character))
        logger.info(f"✅ CLIENT: Generated image after {engine.attempts} attempt(s)")

        if should_cache:
            self._emit(on_status_update, GenerationStatus.CACHING_RESULT)
            try:
                await self.cache_manager.set(key, image_url)
            except Exception as e:
                logger.warning(f"⚠️ CLIENT: Failed to cache generated image: {e}")

        self._emit(on_status_update, GenerationStatus.COMPLETE)
        return image_url

    async def _request_generation(self, config: CharacterConfig) -> str:
        try:
            response = await self._http.post(
                f"{self.base_url}/{GENERATE_OPERATION}",
                content=canonical_json(config),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
        except httpx.TimeoutException:
            raise NetworkError("Request timeout") from None
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            raise error_from_response(response.status_code, data, GENERATE_OPERATION)

        image = data.get("image") if isinstance(data, dict) else None
        if not image:
            raise GenerationError("No image URL in response")
        return image

    async def clear_cache(self) -> None:
        logger.info("🧹 CLIENT: Clearing cache")
        await self.cache_manager.clear()


def create_character_forge_client(**kwargs) -> CharacterForgeClient:
    return CharacterForgeClient(**kwargs)
