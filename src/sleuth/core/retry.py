"""Retry with exponential backoff for upstream calls."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from sleuth.core.errors import ProviderRateLimitError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry with backoff.

    ``max_retries`` counts additional attempts, so the operation runs at
    most ``max_retries + 1`` times.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: bool = False
    retry_on: tuple[type[Exception], ...] = (Exception,)


def is_retryable(error: Exception, config: RetryConfig | None = None) -> bool:
    """Check if an error should trigger a retry."""
    cfg = config or RetryConfig()
    return isinstance(error, cfg.retry_on)


def _compute_delay(
    attempt: int,
    config: RetryConfig,
    error: Exception,
) -> float:
    """Compute backoff delay (seconds) for a retry attempt."""
    # Use retry_after from rate limit errors if available
    if isinstance(error, ProviderRateLimitError) and error.retry_after is not None:
        return min(error.retry_after, config.max_delay)

    # Exponential backoff: base_delay * 2^attempt
    delay: float = config.base_delay * (2**attempt)
    delay = min(delay, config.max_delay)

    # Add jitter (±50% of delay)
    if config.jitter:
        delay *= random.uniform(0.5, 1.5)

    return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Execute fn with retry and exponential backoff.

    Attempts are strictly sequential. No delay is spent after the final
    attempt: once the budget is exhausted the last error is re-raised.

    Args:
        fn: Zero-arg callable returning an awaitable.
        config: Retry configuration. Uses defaults if None.
        on_retry: Optional callback(attempt, delay, error) before each retry.

    Returns:
        The result of fn().

    Raises:
        The last error after retries are exhausted, or immediately for
        errors outside ``config.retry_on``.
    """
    cfg = config or RetryConfig()

    for attempt in range(cfg.max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e, cfg):
                raise
            if attempt >= cfg.max_retries:
                raise
            delay = _compute_delay(attempt, cfg, e)
            if on_retry is not None:
                on_retry(attempt + 1, delay, e)
            await asyncio.sleep(delay)

    # Unreachable, but satisfies mypy
    msg = f"Retry loop exited unexpectedly (max_retries={cfg.max_retries})"
    raise RuntimeError(msg)
