# shared/rate_limiter.py
"""
Fixed-window request limiter kept in process memory.

The counters live only as long as the process that owns the limiter: they are
lost on restart and are not shared between replicas. Services create one
limiter in their lifespan and hand it to routes through a dependency.
"""

import math
import os
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from shared.errors import RateLimitError


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """Best-effort per-key rate limiter"""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._next_prune_at = clock() + window_seconds

    def check(self, key: str) -> None:
        """Count one request for key, raising RateLimitError once the window is full"""
        now = self._clock()
        if now >= self._next_prune_at:
            # Expired windows are dropped at most once per window length
            self.prune()
            self._next_prune_at = now + self.window_seconds

        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            self._windows[key] = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
            return

        if window.count >= self.max_requests:
            retry_after = max(1, math.ceil(window.reset_at - now))
            raise RateLimitError(
                f"Rate limit exceeded. Try again in {retry_after} seconds.",
                retry_after=retry_after,
            )

        window.count += 1

    def prune(self) -> int:
        """Drop expired windows; returns how many were removed"""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)


def create_rate_limiter_from_env(default_max: int = 10, default_window: int = 60) -> InMemoryRateLimiter:
    """Limiter sized by RATE_LIMIT_MAX_REQUESTS / RATE_LIMIT_WINDOW_SECONDS"""
    return InMemoryRateLimiter(
        max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", default_max)),
        window_seconds=float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", default_window)),
    )


def get_rate_limiter(request: Request) -> InMemoryRateLimiter:
    """Dependency returning the limiter the service created in its lifespan"""
    return request.app.state.rate_limiter
