"""Web fetch tool: retrieve a URL and extract its readable content.

HTML goes through trafilatura's main-content extractor, with a
BeautifulSoup heuristic when trafilatura finds nothing usable. Other
content types are returned verbatim. Results are cached per URL in a
:class:`BoundedTTLCache`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import trafilatura
from bs4 import BeautifulSoup

from sleuth.config.schema import FetchConfig
from sleuth.core.errors import ContentExtractionError, FetchError
from sleuth.tools.base import (
    BaseTool,
    ToolContext,
    ToolResult,
    has_required_fields,
    is_int_in_range,
    is_valid_url,
    parse_datetime,
    to_jsonable,
)
from sleuth.tools.cache import BoundedTTLCache

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

logger = logging.getLogger(__name__)

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.9"

MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 120_000

_BOILERPLATE = "script, style, nav, footer, aside, header, .ad, .advertisement"
_CONTAINERS = ("article", "main", ".content", ".post", ".entry-content", "body")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class FetchedContent:
    """Extracted content of one URL."""

    url: str
    content: str
    content_type: str
    content_length: int
    title: str | None = None
    published_date: datetime | None = None
    author: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FetchOutput:
    content: FetchedContent
    fetch_time: float
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)


def is_html(content_type: str) -> bool:
    return "text/html" in content_type or "application/xhtml" in content_type


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _soup_fallback(html: str) -> tuple[str | None, str]:
    """Strip boilerplate and take the first structural container's text."""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(strip=True) if h1 else ""

    for node in soup.select(_BOILERPLATE):
        node.decompose()

    for selector in _CONTAINERS:
        container = soup.select_one(selector)
        if container is not None:
            return title or None, _collapse(container.get_text(" "))
    return title or None, _collapse(soup.get_text(" "))


def extract_html_content(html: str, url: str) -> FetchedContent:
    """Extract the main readable text of an HTML page.

    Raises:
        ContentExtractionError: If extraction fails outright.
    """
    try:
        text = trafilatura.extract(
            html, url=url, include_comments=False, include_tables=True
        )
        if text and text.strip():
            doc = trafilatura.extract_metadata(html)
            title = doc.title if doc is not None and doc.title else None
            if title is None:
                title, _ = _soup_fallback(html)
            content = text.strip()
        else:
            title, content = _soup_fallback(html)
    except Exception as e:
        msg = f"Failed to extract HTML content: {e}"
        raise ContentExtractionError(msg) from e

    return FetchedContent(
        url=url,
        title=title,
        content=content,
        content_type="text/html",
        content_length=len(content),
    )


def _meta(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    value = tag.get("content")
    return value if isinstance(value, str) and value else None


def extract_metadata(html: str) -> dict[str, Any]:
    """Read meta, Open Graph and Twitter tags; ``{}`` if the page can't be parsed."""
    try:
        soup = BeautifulSoup(html, "html.parser")
        keywords = _meta(soup, name="keywords")
        html_tag = soup.find("html")
        lang = html_tag.get("lang") if html_tag is not None else None

        metadata: dict[str, Any] = {
            "description": _meta(soup, name="description")
            or _meta(soup, property="og:description"),
            "keywords": [k.strip() for k in keywords.split(",")] if keywords else None,
            "author": _meta(soup, name="author")
            or _meta(soup, property="article:author"),
            "published_date": _meta(soup, property="article:published_time")
            or _meta(soup, name="date")
            or _meta(soup, name="publish_date"),
            "language": lang or _meta(soup, **{"http-equiv": "content-language"}),
            "og_title": _meta(soup, property="og:title"),
            "og_description": _meta(soup, property="og:description"),
            "og_image": _meta(soup, property="og:image"),
            "twitter_card": _meta(soup, name="twitter:card"),
        }
    except Exception as e:
        logger.debug("Metadata extraction failed: %s", e)
        return {}
    return {k: v for k, v in metadata.items() if v is not None}


class FetchTool(BaseTool[FetchConfig, FetchOutput]):
    """Fetch a URL, extract readable content and page metadata.

    *client* and *cache* may be injected; otherwise an
    ``httpx.AsyncClient`` and a :class:`BoundedTTLCache` are built from
    the config.
    """

    name = "web_fetch"
    description = "Fetch and extract content from web URLs"
    version = "1.0.0"
    config_class = FetchConfig

    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        cache: BoundedTTLCache[str, FetchedContent] | None = None,
        **overrides: Any,
    ) -> None:
        super().__init__(config, **overrides)
        self._headers = {
            "User-Agent": self.config.user_agent,
            "Accept": ACCEPT,
            "Accept-Language": ACCEPT_LANGUAGE,
        }
        self._client = client or httpx.AsyncClient(
            follow_redirects=self.config.follow_redirects,
            max_redirects=self.config.max_redirects,
            verify=self.config.validate_ssl,
        )
        if cache is None:
            cache = BoundedTTLCache(
                capacity=self.config.max_cache_size,
                ttl_ms=self.config.cache_ttl,
            )
        self._cache = cache

    @property
    def cache(self) -> BoundedTTLCache[str, FetchedContent]:
        return self._cache

    async def _execute_impl(
        self,
        input: Mapping[str, Any],
        context: ToolContext,
    ) -> ToolResult[FetchOutput]:
        start = time.monotonic()
        url: str = input["url"]

        if self.config.cache_enabled:
            cached = self._cache.get(url)
            if cached is not None:
                context.logger.debug("[%s] Cache hit for %s", self.name, url)
                output = FetchOutput(
                    content=cached, fetch_time=_since(start), cached=True
                )
                return ToolResult.ok(output, url=url, cached=True)

        context.logger.debug("[%s] Fetching %s", self.name, url)
        timeout_ms = input.get("timeout") or self.config.timeout
        response = await self._with_retry(lambda: self._get(url, timeout_ms), context)

        content_type = response.headers.get("content-type", "")
        html = is_html(content_type)
        body = response.text

        if html and input.get("extract_content") is not False:
            loop = asyncio.get_running_loop()
            content = await loop.run_in_executor(None, extract_html_content, body, url)
        else:
            content = FetchedContent(
                url=url,
                content=body,
                content_type=content_type,
                content_length=len(body),
            )

        if html and input.get("include_metadata") is not False:
            content = _with_page_metadata(content, extract_metadata(body))

        if self.config.cache_enabled:
            self._cache.set(url, content)

        fetch_time = _since(start)
        context.logger.info(
            "[%s] Fetched %s (%d chars, %s)",
            self.name,
            url,
            content.content_length,
            content.content_type or "unknown type",
        )
        return ToolResult.ok(
            FetchOutput(content=content, fetch_time=fetch_time),
            url=url,
            fetch_time=fetch_time,
            content_length=content.content_length,
        )

    async def _get(self, url: str, timeout_ms: int | None) -> httpx.Response:
        timeout = timeout_ms / 1000 if timeout_ms else None
        try:
            response = await self._client.get(
                url,
                headers=self._headers,
                follow_redirects=self.config.follow_redirects,
                timeout=timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e
        return response

    async def validate_input(self, input: Any) -> bool:
        if not isinstance(input, dict) or not has_required_fields(input, ["url"]):
            return False
        if not is_valid_url(input["url"]):
            return False
        timeout = input.get("timeout")
        if timeout is not None and not is_int_in_range(
            timeout, MIN_TIMEOUT_MS, MAX_TIMEOUT_MS
        ):
            return False
        for flag in ("extract_content", "include_metadata"):
            value = input.get(flag)
            if value is not None and not isinstance(value, bool):
                return False
        return True

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The URL to fetch content from",
                    "format": "uri",
                },
                "extract_content": {
                    "type": "boolean",
                    "description": (
                        "Extract main content from HTML "
                        "(removes navigation, ads, etc.)"
                    ),
                    "default": True,
                },
                "include_metadata": {
                    "type": "boolean",
                    "description": "Extract metadata like title, author, publish date",
                    "default": True,
                },
                "timeout": {
                    "type": "integer",
                    "description": "Timeout in milliseconds (1000-120000)",
                    "minimum": MIN_TIMEOUT_MS,
                    "maximum": MAX_TIMEOUT_MS,
                },
            },
            "required": ["url"],
        }

    # ── Cache maintenance ─────────────────────────────────────

    def clear_cache(self) -> None:
        self._cache.clear()

    def clear_expired_cache(self) -> int:
        """Drop expired cache entries; return how many were removed."""
        return self._cache.clear_expired()

    async def aclose(self) -> None:
        await self._client.aclose()


def _with_page_metadata(
    content: FetchedContent, metadata: dict[str, Any]
) -> FetchedContent:
    """Attach *metadata*, promoting author and date when not already set."""
    updates: dict[str, Any] = {"metadata": metadata}
    if not content.author and metadata.get("author"):
        updates["author"] = metadata["author"]
    if content.published_date is None and metadata.get("published_date"):
        updates["published_date"] = parse_datetime(metadata["published_date"])
    return dataclasses.replace(content, **updates)


def _since(start: float) -> float:
    return (time.monotonic() - start) * 1000
