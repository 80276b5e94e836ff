"""Search backend interface and Tavily adapter.

The search tool depends only on :class:`SearchClient`; the Tavily
adapter posts to the Tavily REST API with httpx.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

import httpx

from sleuth.core.errors import (
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    SearchProviderError,
)

if TYPE_CHECKING:
    from sleuth.core.ratelimit import RateLimiter

PROVIDER_ID = "tavily"
TAVILY_SEARCH_URL = "https://api.tavily.com/search"

logger = logging.getLogger(__name__)

SearchDepth = Literal["basic", "advanced"]


@dataclass(frozen=True, slots=True)
class ProviderSearchResult:
    """A single hit as reported by the search backend."""

    title: str
    url: str
    content: str
    published_date: str | None = None
    score: float | None = None


@dataclass(frozen=True, slots=True)
class SearchResponse:
    """Search backend response."""

    query: str
    results: list[ProviderSearchResult] = field(default_factory=list)
    response_time: float | None = None


@runtime_checkable
class SearchClient(Protocol):
    """Protocol that all search backends must satisfy."""

    async def search(
        self,
        query: str,
        *,
        search_depth: SearchDepth = "basic",
        max_results: int = 5,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResponse:
        """Run a search query.

        Raises SearchProviderError (or another ProviderError) on failure.
        """
        ...


def _parse_result(raw: Any) -> ProviderSearchResult:
    if not isinstance(raw, dict):
        msg = f"Malformed search result: expected object, got {type(raw).__name__}"
        raise SearchProviderError(PROVIDER_ID, msg)
    score = raw.get("score")
    return ProviderSearchResult(
        title=str(raw.get("title") or ""),
        url=str(raw.get("url") or ""),
        content=str(raw.get("content") or ""),
        published_date=raw.get("published_date") or None,
        score=float(score) if isinstance(score, int | float) else None,
    )


class TavilySearchClient:
    """Search client for the Tavily API.

    Implements the :class:`SearchClient` protocol.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = TAVILY_SEARCH_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        if not api_key:
            msg = "Tavily API key is required"
            raise ValueError(msg)
        self._api_key = api_key
        self._base_url = base_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._rate_limiter = rate_limiter

    async def search(
        self,
        query: str,
        *,
        search_depth: SearchDepth = "basic",
        max_results: int = 5,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
    ) -> SearchResponse:
        payload: dict[str, Any] = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": search_depth,
            "max_results": max_results,
        }
        if include_domains:
            payload["include_domains"] = include_domains
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains

        request = functools.partial(self._client.post, self._base_url, json=payload)
        try:
            if self._rate_limiter is not None:
                response = await self._rate_limiter.execute(request)
            else:
                response = await request()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(PROVIDER_ID, str(e)) from e
        except httpx.HTTPError as e:
            raise SearchProviderError(PROVIDER_ID, f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(PROVIDER_ID, response.text)
        if response.status_code == 429:
            raise ProviderRateLimitError(PROVIDER_ID)
        if not response.is_success:
            msg = f"HTTP {response.status_code}: {response.text}"
            raise SearchProviderError(PROVIDER_ID, msg)

        try:
            data = response.json()
        except ValueError as e:
            raise SearchProviderError(PROVIDER_ID, f"Invalid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(
            data.get("results", []), list
        ):
            msg = "Malformed search payload: missing 'results' list"
            raise SearchProviderError(PROVIDER_ID, msg)

        results = [_parse_result(r) for r in data.get("results", [])]
        logger.debug("Tavily returned %d results for %r", len(results), query)
        return SearchResponse(
            query=query,
            results=results,
            response_time=data.get("response_time"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
