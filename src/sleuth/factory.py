"""Composition root: build a populated :class:`ToolRegistry` from config.

Tools whose upstream credentials are missing are skipped with a
warning rather than failing the whole build. Clients may be injected
for tests or for substituting other backends.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sleuth.core.ratelimit import RateLimiter
from sleuth.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from sleuth.config.schema import ProviderConfig, SleuthConfig
    from sleuth.providers.base import CompletionProvider
    from sleuth.providers.tavily import SearchClient

logger = logging.getLogger(__name__)


def _rate_limiter(prov_config: ProviderConfig) -> RateLimiter | None:
    if prov_config.min_interval <= 0:
        return None
    return RateLimiter(prov_config.min_interval)


def _setup_completion(config: SleuthConfig) -> CompletionProvider | None:
    """Build the Anthropic completion provider if it is enabled and keyed."""
    prov_config = config.providers.get("anthropic")
    if prov_config is None or not prov_config.enabled or not prov_config.api_key:
        return None

    from sleuth.providers.anthropic import AnthropicCompletionProvider

    return AnthropicCompletionProvider(
        api_key=prov_config.api_key, rate_limiter=_rate_limiter(prov_config)
    )


def _setup_search(config: SleuthConfig) -> SearchClient | None:
    """Build the Tavily client if it is enabled and a key is configured."""
    prov_config = config.providers.get("tavily")
    api_key = config.tools.search.api_key
    if not api_key or (prov_config is not None and not prov_config.enabled):
        return None

    from sleuth.providers.tavily import TAVILY_SEARCH_URL, TavilySearchClient

    if prov_config is None:
        return TavilySearchClient(api_key)
    return TavilySearchClient(
        api_key,
        base_url=prov_config.base_url or TAVILY_SEARCH_URL,
        rate_limiter=_rate_limiter(prov_config),
    )


def build_registry(
    config: SleuthConfig,
    *,
    completion: CompletionProvider | None = None,
    search_client: SearchClient | None = None,
) -> ToolRegistry:
    """Register every tool the config and available credentials allow.

    Categories: ``search`` (web_search), ``retrieval`` (web_fetch),
    ``analysis`` (content_analyzer) and ``synthesis`` (synthesizer).
    """
    registry = ToolRegistry(
        logger=logging.getLogger("sleuth.registry"),
        max_history_size=config.registry.max_history_size,
    )
    tools = config.tools

    if search_client is None:
        search_client = _setup_search(config)
    if search_client is not None:
        from sleuth.tools.web_search import SearchTool

        registry.register(
            SearchTool(tools.search, search_client=search_client),
            category="search",
            tags=["web", "search"],
        )
    else:
        logger.warning("No Tavily API key configured; web_search is unavailable")

    from sleuth.tools.web_fetch import FetchTool

    registry.register(
        FetchTool(tools.fetch),
        category="retrieval",
        tags=["web", "fetch"],
    )

    completion = completion or _setup_completion(config)
    if completion is None:
        logger.warning(
            "No completion provider configured; content_analyzer and "
            "synthesizer are unavailable"
        )
        return registry

    from sleuth.tools.analyze import AnalyzeTool
    from sleuth.tools.synthesize import SynthesizeTool

    registry.register(
        AnalyzeTool(tools.analyze, completion=completion),
        category="analysis",
        tags=["llm", "extraction"],
    )
    registry.register(
        SynthesizeTool(tools.synthesize, completion=completion),
        category="synthesis",
        tags=["llm", "citations"],
    )
    return registry
