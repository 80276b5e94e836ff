"""Web search tool backed by a :class:`SearchClient` (Tavily by default).

The upstream provider has no date filtering, so ``date_range`` is
applied client-side after the search returns. Results without a
published date are always kept.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sleuth.config.schema import SearchConfig
from sleuth.providers.tavily import TavilySearchClient
from sleuth.tools.base import (
    BaseTool,
    ToolContext,
    ToolResult,
    extract_domain,
    has_required_fields,
    is_int_in_range,
    parse_datetime,
    to_jsonable,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sleuth.providers.tavily import ProviderSearchResult, SearchClient

SEARCH_DEPTHS = ("basic", "advanced")


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A normalized search hit."""

    title: str
    url: str
    snippet: str
    domain: str
    published_date: datetime | None = None
    score: float | None = None


@dataclass(frozen=True, slots=True)
class SearchOutput:
    results: list[SearchResult] = field(default_factory=list)
    total_results: int = 0
    query: str = ""
    search_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)


def filter_by_date_range(
    results: list[SearchResult],
    start: datetime | None,
    end: datetime | None,
) -> list[SearchResult]:
    """Keep results inside ``[start, end]``; undated results always pass."""
    kept: list[SearchResult] = []
    for result in results:
        published = result.published_date
        if published is not None:
            if start is not None and published < start:
                continue
            if end is not None and published > end:
                continue
        kept.append(result)
    return kept


def _transform(raw: ProviderSearchResult) -> SearchResult:
    return SearchResult(
        title=raw.title,
        url=raw.url,
        snippet=raw.content,
        domain=extract_domain(raw.url),
        published_date=parse_datetime(raw.published_date),
        score=raw.score,
    )


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


class SearchTool(BaseTool[SearchConfig, SearchOutput]):
    """Search the web and return normalized, optionally date-filtered results.

    Pass *search_client* to use a backend other than Tavily; otherwise
    one is built from ``config.api_key``.
    """

    name = "web_search"
    description = "Search the web for information using Tavily API"
    version = "1.0.0"
    config_class = SearchConfig

    def __init__(
        self,
        config: SearchConfig | None = None,
        *,
        search_client: SearchClient | None = None,
        **overrides: Any,
    ) -> None:
        super().__init__(config, **overrides)
        if search_client is None:
            if not self.config.api_key:
                msg = "Tavily API key is required"
                raise ValueError(msg)
            search_client = TavilySearchClient(self.config.api_key)
        self._client = search_client

    async def _execute_impl(
        self,
        input: Mapping[str, Any],
        context: ToolContext,
    ) -> ToolResult[SearchOutput]:
        start = time.monotonic()
        query: str = input["query"]
        search_depth = input.get("search_depth") or self.config.default_search_depth
        max_results = input.get("max_results") or self.config.default_max_results

        context.logger.debug(
            "[%s] Executing search query=%r depth=%s max_results=%d",
            self.name,
            query,
            search_depth,
            max_results,
        )

        response = await self._with_retry(
            lambda: self._client.search(
                query,
                search_depth=search_depth,
                max_results=max_results,
                include_domains=input.get("include_domains"),
                exclude_domains=input.get("exclude_domains"),
            ),
            context,
        )

        results = [_transform(r) for r in response.results]

        date_range = input.get("date_range")
        if date_range:
            original_count = len(results)
            results = filter_by_date_range(
                results,
                parse_datetime(date_range.get("from")),
                parse_datetime(date_range.get("to")),
            )
            context.logger.debug(
                "[%s] Date filtering kept %d of %d results",
                self.name,
                len(results),
                original_count,
            )

        search_time = (time.monotonic() - start) * 1000
        output = SearchOutput(
            results=results,
            total_results=len(results),
            query=query,
            search_time=search_time,
        )
        context.logger.info(
            "[%s] Search completed: %d results for %r",
            self.name,
            len(results),
            query,
        )
        return ToolResult.ok(
            output,
            source="tavily",
            search_time=search_time,
            result_count=len(results),
        )

    async def aclose(self) -> None:
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()

    async def validate_input(self, input: Any) -> bool:
        if not isinstance(input, dict) or not has_required_fields(input, ["query"]):
            return False
        query = input["query"]
        if not isinstance(query, str) or not query.strip():
            return False

        max_results = input.get("max_results")
        if max_results is not None and not is_int_in_range(max_results, 1, 100):
            return False

        depth = input.get("search_depth")
        if depth is not None and depth not in SEARCH_DEPTHS:
            return False

        for key in ("include_domains", "exclude_domains"):
            value = input.get(key)
            if value is not None and not _is_string_list(value):
                return False

        return _valid_date_range(input.get("date_range"))

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query to execute",
                },
                "max_results": {
                    "type": "integer",
                    "description": "Maximum number of results to return (1-100)",
                    "minimum": 1,
                    "maximum": 100,
                    "default": self.config.default_max_results,
                },
                "search_depth": {
                    "type": "string",
                    "enum": list(SEARCH_DEPTHS),
                    "description": (
                        "Search depth: basic for quick results, "
                        "advanced for comprehensive search"
                    ),
                    "default": self.config.default_search_depth,
                },
                "include_domains": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Only include results from these domains",
                },
                "exclude_domains": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Exclude results from these domains",
                },
                "date_range": {
                    "type": "object",
                    "properties": {
                        "from": {
                            "type": "string",
                            "format": "date-time",
                            "description": "Start date for filtering results",
                        },
                        "to": {
                            "type": "string",
                            "format": "date-time",
                            "description": "End date for filtering results",
                        },
                    },
                },
            },
            "required": ["query"],
        }


def _valid_date_range(date_range: Any) -> bool:
    if date_range is None:
        return True
    if not isinstance(date_range, dict):
        return False
    bounds: dict[str, datetime | None] = {}
    for key in ("from", "to"):
        raw = date_range.get(key)
        if raw is None:
            bounds[key] = None
            continue
        parsed = parse_datetime(raw)
        if parsed is None:
            return False
        bounds[key] = parsed
    start, end = bounds["from"], bounds["to"]
    return not (start is not None and end is not None and start > end)
