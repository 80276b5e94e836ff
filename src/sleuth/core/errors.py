"""Exception hierarchy for sleuth.

Every module imports from here. The hierarchy is:

    SleuthError
    ├── ConfigError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError
    │   ├── ModelNotFoundError
    │   └── SearchProviderError
    └── ToolError
        ├── ToolTimeoutError(timeout_ms)
        ├── FetchError(url)
        └── ContentExtractionError

Input validation and disabled-tool failures are not exceptions: the
tool lifecycle reports them as failed ``ToolResult`` values.
"""

from __future__ import annotations


class SleuthError(Exception):
    """Base exception for all sleuth errors."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(SleuthError):
    """Invalid configuration."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(SleuthError):
    """Base for upstream provider errors (completion or search)."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing API key."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Upstream call timed out."""


class ProviderOverloadedError(ProviderError):
    """Provider is overloaded (529, 503)."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this provider."""


class SearchProviderError(ProviderError):
    """Search backend failed or returned a malformed payload."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(SleuthError):
    """Base for errors raised inside tool logic."""


class ToolTimeoutError(ToolError):
    """Tool execution exceeded its time budget."""

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Timeout after {timeout_ms}ms")


class FetchError(ToolError):
    """HTTP retrieval failed."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"Failed to fetch {url}: {message}")


class ContentExtractionError(ToolError):
    """Main-content extraction from a fetched page failed."""
