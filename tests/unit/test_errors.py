"""Tests for the sleuth exception hierarchy."""

from __future__ import annotations

import pytest

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

# ─── Hierarchy ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "cls",
    [
        ProviderAuthError,
        ProviderTimeoutError,
        ProviderOverloadedError,
        ModelNotFoundError,
        SearchProviderError,
    ],
)
def test_provider_errors_share_base(cls):
    err = cls("anthropic", "boom")
    assert isinstance(err, ProviderError)
    assert isinstance(err, SleuthError)
    assert err.provider_id == "anthropic"
    assert str(err) == "[anthropic] boom"


def test_config_error_is_sleuth_error():
    assert issubclass(ConfigError, SleuthError)


def test_tool_errors_share_base():
    for cls in (ToolTimeoutError, FetchError, ContentExtractionError):
        assert issubclass(cls, ToolError)
        assert issubclass(cls, SleuthError)


# ─── Payloads ─────────────────────────────────────────────────


class TestRateLimit:
    def test_without_retry_after(self):
        err = ProviderRateLimitError("tavily")
        assert err.retry_after is None
        assert str(err) == "[tavily] Rate limited"

    def test_with_retry_after(self):
        err = ProviderRateLimitError("tavily", retry_after=2.5)
        assert err.retry_after == 2.5
        assert "retry after 2.5s" in str(err)


def test_tool_timeout_message():
    err = ToolTimeoutError(1500)
    assert err.timeout_ms == 1500
    assert str(err) == "Timeout after 1500ms"


def test_fetch_error_carries_url():
    err = FetchError("https://example.com", "HTTP 404")
    assert err.url == "https://example.com"
    assert str(err) == "Failed to fetch https://example.com: HTTP 404"
