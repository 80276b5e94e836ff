"""Tool protocol, result types, and the shared execution lifecycle.

Defines the ``Tool`` protocol every capability satisfies, the
``ToolResult`` envelope it returns, the per-call ``ToolContext``, and
``BaseTool``, which implements the common lifecycle:

    validate -> enabled check -> timeout-bounded run -> normalized result

Concrete tools override ``_execute_impl``, ``validate_input`` and
``get_input_schema`` only. Failures never escape ``execute``; they come
back as ``ToolResult(success=False, error=...)``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Generic,
    Protocol,
    TypeVar,
    runtime_checkable,
)
from urllib.parse import urlparse

from sleuth.config.schema import ToolConfig
from sleuth.core.errors import ToolTimeoutError
from sleuth.core.retry import RetryConfig, retry_with_backoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")
R = TypeVar("R")
ConfigT = TypeVar("ConfigT", bound=ToolConfig)
OutputT = TypeVar("OutputT")

DEFAULT_TIMEOUT_MS = 30_000
INVALID_INPUT = "Invalid input provided"
TOOL_DISABLED = "Tool is disabled"

_default_logger = logging.getLogger("sleuth.tools")


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, datetimes and containers into JSON-ready values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set):
        return [to_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class ToolResult(Generic[T]):
    """Uniform success/error envelope returned by every tool.

    ``success=True`` carries ``data``; ``success=False`` carries ``error``.
    ``metadata`` holds ``duration`` (ms) plus tool-specific keys.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ToolResult[T]:
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> ToolResult[T]:
        return cls(success=False, error=error, metadata=metadata)

    def with_metadata(self, **extra: Any) -> ToolResult[T]:
        """Return a copy with *extra* merged into ``metadata``."""
        return dataclasses.replace(self, metadata={**self.metadata, **extra})

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = to_jsonable(self.data)
        if self.error is not None:
            out["error"] = self.error
        out["metadata"] = to_jsonable(self.metadata)
        return out


@dataclass
class ToolContext:
    """Per-call execution context.

    ``timeout`` is in milliseconds and, like ``max_retries``, overrides
    the tool's configured value for this call only.
    """

    logger: logging.Logger = field(default_factory=lambda: _default_logger)
    session_id: str | None = None
    user_id: str | None = None
    max_retries: int | None = None
    timeout: int | None = None


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    config: ToolConfig

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def version(self) -> str:
        """Tool version for tracking changes."""
        ...

    async def execute(
        self, input: Any, context: ToolContext | None = None
    ) -> ToolResult[Any]:
        """Run the tool. Never raises; failures come back as results."""
        ...

    async def validate_input(self, input: Any) -> bool:
        """Return True when *input* is acceptable."""
        ...

    def get_input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input, for LLM tool selection."""
        ...


# ─── Helpers ──────────────────────────────────────────────────


def has_required_fields(obj: Mapping[str, Any], fields: list[str]) -> bool:
    """True when every field is present and not None or ``""``."""
    return all(obj.get(f) not in (None, "") for f in fields)


def is_valid_url(url: Any) -> bool:
    """True for absolute URLs with a scheme and a host."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def extract_domain(url: str) -> str:
    """Return the URL's hostname, or ``""`` if it cannot be parsed."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def truncate_text(text: str, max_length: int, ellipsis: str = "...") -> str:
    """Cut *text* to *max_length* characters, ending with *ellipsis*."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ellipsis)] + ellipsis


def is_int_in_range(value: Any, low: int, high: int) -> bool:
    """True for integers (not bools) within ``[low, high]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return low <= value <= high


def parse_datetime(value: Any) -> datetime | None:
    """Parse a date string, ``date`` or ``datetime`` into an aware datetime.

    Strings may be ISO-8601 or RFC 2822 (``Mon, 01 Jan 2018 10:00:00 GMT``).
    Naive values are taken to be UTC. Returns None for anything else,
    including malformed strings.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# ─── Lifecycle ────────────────────────────────────────────────


class BaseTool(ABC, Generic[ConfigT, OutputT]):
    """Reusable execution lifecycle for concrete tools.

    Subclasses set ``name``, ``description``, ``version`` and
    ``config_class``, and implement ``_execute_impl`` and
    ``get_input_schema``. ``validate_input`` should be overridden; the
    default only requires a mapping.

    Config is merged at construction: *config* (or the subclass
    defaults) with keyword *overrides* validated on top.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    version: ClassVar[str] = "1.0.0"
    config_class: ClassVar[type[ToolConfig]] = ToolConfig

    # Seconds; the first retry waits this long, then doubles.
    retry_base_delay: float = 1.0

    def __init__(self, config: ConfigT | None = None, **overrides: Any) -> None:
        base = config if config is not None else self.config_class()
        if overrides:
            base = self.config_class.model_validate({**base.model_dump(), **overrides})
        self.config: ConfigT = base  # type: ignore[assignment]

    async def execute(
        self,
        input: Any,
        context: ToolContext | None = None,
    ) -> ToolResult[OutputT]:
        """Validate, gate, run under a timeout, and normalize the result."""
        ctx = context or ToolContext()
        start = time.monotonic()

        try:
            ctx.logger.debug("[%s] Starting execution", self.name)

            if not await self.validate_input(input):
                ctx.logger.debug("[%s] Rejected invalid input", self.name)
                return self._error_result(INVALID_INPUT, start)

            if self.config.enabled is False:
                ctx.logger.debug("[%s] Tool is disabled", self.name)
                return self._error_result(TOOL_DISABLED, start)

            timeout_ms = ctx.timeout or self.config.timeout or DEFAULT_TIMEOUT_MS
            result = await self._run_with_timeout(input, ctx, timeout_ms)

            duration = _elapsed_ms(start)
            ctx.logger.info(
                "[%s] Execution completed in %.0fms (success=%s)",
                self.name,
                duration,
                result.success,
            )
            return result.with_metadata(duration=duration)
        except Exception as e:
            ctx.logger.error("[%s] Execution failed: %s", self.name, e)
            return self._error_result(str(e) or type(e).__name__, start)

    async def _run_with_timeout(
        self,
        input: Any,
        context: ToolContext,
        timeout_ms: int,
    ) -> ToolResult[OutputT]:
        """Run ``_execute_impl``; raise ToolTimeoutError if it overruns."""
        try:
            async with asyncio.timeout(timeout_ms / 1000) as deadline:
                return await self._execute_impl(input, context)
        except TimeoutError as e:
            if deadline.expired():
                raise ToolTimeoutError(timeout_ms) from e
            raise

    @abstractmethod
    async def _execute_impl(
        self,
        input: Any,
        context: ToolContext,
    ) -> ToolResult[OutputT]:
        """Tool-specific logic. Runs only on validated input."""

    async def validate_input(self, input: Any) -> bool:
        return isinstance(input, Mapping)

    @abstractmethod
    def get_input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input."""

    # ── Helpers for subclasses ────────────────────────────────

    async def _with_retry(
        self,
        fn: Callable[[], Awaitable[R]],
        context: ToolContext,
        *,
        max_retries: int | None = None,
    ) -> R:
        """Retry *fn* with exponential backoff.

        The budget is *max_retries*, else ``context.max_retries``, else
        ``config.max_retries``.
        """
        if max_retries is None:
            max_retries = (
                context.max_retries
                if context.max_retries is not None
                else self.config.max_retries
            )

        def _log_retry(attempt: int, delay: float, error: Exception) -> None:
            context.logger.warning(
                "[%s] Attempt %d failed (%s); retrying in %.2fs",
                self.name,
                attempt,
                error,
                delay,
            )

        return await retry_with_backoff(
            fn,
            RetryConfig(max_retries=max_retries, base_delay=self.retry_base_delay),
            on_retry=_log_retry,
        )

    def _error_result(self, error: str, start: float) -> ToolResult[OutputT]:
        return ToolResult.fail(error, duration=_elapsed_ms(start))


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
