"""Core errors and shared async utilities."""

from sleuth.core.batch import batch_process, chunk
from sleuth.core.errors import (
    ConfigError,
    ContentExtractionError,
    FetchError,
    ModelNotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    SearchProviderError,
    SleuthError,
    ToolError,
    ToolTimeoutError,
)
from sleuth.core.ratelimit import RateLimiter
from sleuth.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "ConfigError",
    "ContentExtractionError",
    "FetchError",
    "ModelNotFoundError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "RateLimiter",
    "RetryConfig",
    "SearchProviderError",
    "SleuthError",
    "ToolError",
    "ToolTimeoutError",
    "batch_process",
    "chunk",
    "is_retryable",
    "retry_with_backoff",
]
