# characterforge/retry.py
"""
Bounded exponential backoff with jitter around a single outbound call.

Each attempt runs under a hard timeout. Retryable failures are retried up to
``max_retries`` times; anything else, or the last failure once the budget is
spent, propagates unchanged.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from characterforge.errors import NetworkError, is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 60.0
JITTER_RATIO = 0.3


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000


def calculate_backoff_delay(
    attempt: int, base_delay_ms: float, max_delay_ms: float, rng: Optional[random.Random] = None
) -> float:
    """Delay in milliseconds before retry number ``attempt`` (0-based)"""
    rng = rng or random
    exponential = base_delay_ms * (2**attempt)
    jitter = rng.random() * JITTER_RATIO * exponential
    return min(exponential + jitter, max_delay_ms)


class RetryEngine:
    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or RetryConfig()
        self.timeout = timeout
        self._sleep = sleep
        self._rng = rng or random.Random()
        # Introspection for the most recent run
        self.attempts = 0
        self.delays: list[float] = []

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise NetworkError("Request timeout") from None

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        self.attempts = 0
        self.delays = []
        attempt = 0

        while True:
            self.attempts += 1
            try:
                return await self._attempt(operation)
            except Exception as e:
                if attempt >= self.config.max_retries or not is_retryable_error(e):
                    raise

                delay_ms = calculate_backoff_delay(
                    attempt, self.config.base_delay_ms, self.config.max_delay_ms, self._rng
                )
                self.delays.append(delay_ms)
                logger.warning(
                    f"⏳ RETRY: Attempt {attempt + 1} failed ({e}), retrying in {delay_ms:.0f}ms"
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
