"""Upstream completion and search adapters."""

from sleuth.providers.base import (
    CompletionProvider,
    CompletionResponse,
    PromptMessage,
    TokenUsage,
)
from sleuth.providers.tavily import (
    ProviderSearchResult,
    SearchClient,
    SearchResponse,
    TavilySearchClient,
)

__all__ = [
    "CompletionProvider",
    "CompletionResponse",
    "PromptMessage",
    "ProviderSearchResult",
    "SearchClient",
    "SearchResponse",
    "TavilySearchClient",
    "TokenUsage",
]
