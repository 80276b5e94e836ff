"""Minimum-interval rate limiter for upstream calls."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class RateLimiter:
    """Space successive calls at least ``min_interval`` seconds apart.

    Callers are serialized through a lock so the spacing holds when
    several coroutines share one limiter.
    """

    def __init__(self, min_interval: float) -> None:
        if min_interval < 0:
            msg = f"min_interval must be >= 0, got {min_interval}"
            raise ValueError(msg)
        self._min_interval = min_interval
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Wait out the remaining interval, then await ``fn()``."""
        async with self._lock:
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                if elapsed < self._min_interval:
                    await asyncio.sleep(self._min_interval - elapsed)
            self._last_call = time.monotonic()
        return await fn()
