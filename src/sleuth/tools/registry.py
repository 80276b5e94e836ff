"""Tool registry: registration, discovery, execution, usage tracking.

Executions are recorded in a bounded history from which per-tool
statistics are derived. Counters and history are plain attributes
updated between awaits; they rely on running in a single event loop.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sleuth.tools.base import ToolResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sleuth.tools.base import Tool, ToolContext

DEFAULT_MAX_HISTORY_SIZE = 1000


@dataclass(slots=True)
class ToolMetadata:
    """Registry-side bookkeeping for one tool."""

    category: str = "general"
    tags: list[str] = field(default_factory=list)
    enabled: bool = True
    usage_count: int = 0
    last_used: datetime | None = None


@dataclass(slots=True)
class ToolRegistryEntry:
    tool: Tool
    metadata: ToolMetadata


@dataclass(frozen=True, slots=True)
class ToolExecutionLog:
    """One recorded execution; ``duration`` is in milliseconds."""

    tool_name: str
    input: Any
    output: ToolResult[Any]
    start_time: datetime
    end_time: datetime
    duration: float
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ToolStatistics:
    usage_count: int
    last_used: datetime | None
    success_rate: float
    average_duration: float


class ToolRegistry:
    """Registry for managing available tools.

    Supports registration with category and tags, lookup, schema export
    for LLM tool selection, and execution by name. ``execute_tool``
    never raises; every outcome is a :class:`ToolResult`.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
    ) -> None:
        if max_history_size < 1:
            msg = f"max_history_size must be >= 1, got {max_history_size}"
            raise ValueError(msg)
        self._logger = logger or logging.getLogger(__name__)
        self._tools: dict[str, ToolRegistryEntry] = {}
        self._history: deque[ToolExecutionLog] = deque(maxlen=max_history_size)

    @property
    def max_history_size(self) -> int:
        return self._history.maxlen or DEFAULT_MAX_HISTORY_SIZE

    # ── Registration ──────────────────────────────────────────

    def register(
        self,
        tool: Tool,
        *,
        category: str = "general",
        tags: Iterable[str] | None = None,
        enabled: bool = True,
    ) -> None:
        """Register a tool. An existing tool of the same name is replaced."""
        if tool.name in self._tools:
            self._logger.warning(
                "Tool %s is already registered. Overwriting.", tool.name
            )
        self._tools[tool.name] = ToolRegistryEntry(
            tool=tool,
            metadata=ToolMetadata(
                category=category,
                tags=list(tags or []),
                enabled=enabled,
            ),
        )
        self._logger.info(
            "Registered tool: %s (version %s, category %s)",
            tool.name,
            tool.version,
            category,
        )

    def unregister(self, name: str) -> bool:
        if self._tools.pop(name, None) is None:
            self._logger.warning("Tool not found: %s", name)
            return False
        self._logger.info("Unregistered tool: %s", name)
        return True

    # ── Discovery ─────────────────────────────────────────────

    def get_tool(self, name: str) -> Tool | None:
        entry = self._tools.get(name)
        return entry.tool if entry is not None else None

    def get_metadata(self, name: str) -> ToolMetadata | None:
        entry = self._tools.get(name)
        return entry.metadata if entry is not None else None

    def get_all_tools(self) -> list[Tool]:
        return [entry.tool for entry in self._tools.values()]

    def get_enabled_tools(self) -> list[Tool]:
        return [e.tool for e in self._tools.values() if e.metadata.enabled]

    def get_tools_by_category(self, category: str) -> list[Tool]:
        return [e.tool for e in self._tools.values() if e.metadata.category == category]

    def get_tools_by_tag(self, tag: str) -> list[Tool]:
        return [e.tool for e in self._tools.values() if tag in e.metadata.tags]

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    # ── Execution ─────────────────────────────────────────────

    async def execute_tool(
        self,
        name: str,
        input: Any,
        context: ToolContext | None = None,
    ) -> ToolResult[Any]:
        """Execute a tool by name and record the outcome.

        Unknown and registry-disabled tools fail without being recorded.
        """
        entry = self._tools.get(name)
        if entry is None:
            self._logger.error("Tool not found: %s", name)
            return ToolResult.fail(f"Tool not found: {name}")
        if not entry.metadata.enabled:
            self._logger.warning("Tool is disabled: %s", name)
            return ToolResult.fail(f"Tool is disabled: {name}")

        start_time = datetime.now(UTC)
        start = time.monotonic()
        try:
            result = await entry.tool.execute(input, context)
        except Exception as e:
            self._logger.error("Tool execution failed: %s: %s", name, e)
            result = ToolResult.fail(str(e) or type(e).__name__)

        entry.metadata.usage_count += 1
        entry.metadata.last_used = datetime.now(UTC)
        self._history.append(
            ToolExecutionLog(
                tool_name=name,
                input=input,
                output=result,
                start_time=start_time,
                end_time=entry.metadata.last_used,
                duration=(time.monotonic() - start) * 1000,
                success=result.success,
                error=result.error,
            )
        )
        return result

    # ── Management ────────────────────────────────────────────

    def enable_tool(self, name: str) -> bool:
        return self._set_enabled(name, enabled=True)

    def disable_tool(self, name: str) -> bool:
        return self._set_enabled(name, enabled=False)

    def _set_enabled(self, name: str, *, enabled: bool) -> bool:
        entry = self._tools.get(name)
        if entry is None:
            return False
        entry.metadata.enabled = enabled
        self._logger.info("%s tool: %s", "Enabled" if enabled else "Disabled", name)
        return True

    # ── Schemas ───────────────────────────────────────────────

    @staticmethod
    def _schema(tool: Tool) -> dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.get_input_schema(),
        }

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """Schemas of enabled tools, in Anthropic tool-use format."""
        return [self._schema(tool) for tool in self.get_enabled_tools()]

    def get_tool_schemas_by_name(self, names: Iterable[str]) -> list[dict[str, Any]]:
        """Schemas for the named tools; unknown names are skipped."""
        tools = (self.get_tool(name) for name in names)
        return [self._schema(tool) for tool in tools if tool is not None]

    # ── Statistics and history ────────────────────────────────

    def get_tool_statistics(self, name: str) -> ToolStatistics | None:
        """Usage statistics for *name*, computed over the retained history."""
        entry = self._tools.get(name)
        if entry is None:
            return None
        runs = [log for log in self._history if log.tool_name == name]
        successes = sum(1 for log in runs if log.success)
        return ToolStatistics(
            usage_count=entry.metadata.usage_count,
            last_used=entry.metadata.last_used,
            success_rate=successes / len(runs) if runs else 0.0,
            average_duration=(
                sum(log.duration for log in runs) / len(runs) if runs else 0.0
            ),
        )

    def get_execution_history(
        self,
        tool_name: str | None = None,
        limit: int | None = None,
        success_only: bool = False,
    ) -> list[ToolExecutionLog]:
        """Recorded executions, oldest first; *limit* keeps the newest."""
        history = list(self._history)
        if tool_name:
            history = [log for log in history if log.tool_name == tool_name]
        if success_only:
            history = [log for log in history if log.success]
        if limit:
            history = history[-limit:]
        return history

    def clear_history(self) -> None:
        self._history.clear()
        self._logger.info("Cleared execution history")
