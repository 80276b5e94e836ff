"""Tests for the tool registry."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from sleuth.config.schema import ToolConfig
from sleuth.tools.base import BaseTool, ToolContext, ToolResult
from sleuth.tools.registry import ToolRegistry

# ─── Test tools ───────────────────────────────────────────────


class StubTool(BaseTool[ToolConfig, str]):
    """Succeeds unless the input asks it to fail."""

    description = "Stub tool for registry tests"

    def __init__(self, name: str = "stub", **overrides: Any) -> None:
        super().__init__(**overrides)
        self.name = name  # type: ignore[misc]
        self.seen: list[Any] = []

    async def _execute_impl(self, input, context):
        self.seen.append(input)
        if input.get("fail"):
            msg = "asked to fail"
            raise RuntimeError(msg)
        return ToolResult.ok(f"done:{input.get('q', '')}")

    def get_input_schema(self):
        return {"type": "object", "properties": {"q": {"type": "string"}}}


class ExplodingTool(StubTool):
    """Violates the no-raise contract of ``execute``."""

    async def execute(self, input, context=None):
        msg = "escaped"
        raise RuntimeError(msg)


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(logger=logging.getLogger("test.registry"))


# ─── Registration ─────────────────────────────────────────────


class TestRegistration:
    def test_register_and_lookup(self, registry):
        tool = StubTool("alpha")
        registry.register(tool, category="search", tags=["web"])
        assert registry.get_tool("alpha") is tool
        assert "alpha" in registry
        assert len(registry) == 1
        meta = registry.get_metadata("alpha")
        assert meta.category == "search"
        assert meta.tags == ["web"]
        assert meta.enabled is True
        assert meta.usage_count == 0
        assert meta.last_used is None

    def test_defaults(self, registry):
        registry.register(StubTool())
        meta = registry.get_metadata("stub")
        assert meta.category == "general"
        assert meta.tags == []

    def test_overwrite_warns(self, registry, caplog):
        registry.register(StubTool("alpha"))
        replacement = StubTool("alpha")
        with caplog.at_level(logging.WARNING, logger="test.registry"):
            registry.register(replacement)
        assert registry.get_tool("alpha") is replacement
        assert len(registry) == 1
        assert "already registered" in caplog.text

    def test_unregister(self, registry):
        registry.register(StubTool("alpha"))
        assert registry.unregister("alpha") is True
        assert registry.unregister("alpha") is False
        assert registry.get_tool("alpha") is None

    def test_unknown_lookups(self, registry):
        assert registry.get_tool("nope") is None
        assert registry.get_metadata("nope") is None
        assert registry.get_tool_statistics("nope") is None

    def test_invalid_history_size(self):
        with pytest.raises(ValueError, match="max_history_size"):
            ToolRegistry(max_history_size=0)


# ─── Discovery ────────────────────────────────────────────────


class TestDiscovery:
    def test_filters(self, registry):
        registry.register(StubTool("a"), category="search", tags=["web"])
        registry.register(StubTool("b"), category="analysis", tags=["llm"])
        registry.register(StubTool("c"), category="search", tags=["web", "llm"])

        assert registry.list_names() == ["a", "b", "c"]
        assert [t.name for t in registry.get_tools_by_category("search")] == ["a", "c"]
        assert [t.name for t in registry.get_tools_by_tag("llm")] == ["b", "c"]
        assert registry.get_tools_by_tag("missing") == []

    def test_enable_disable(self, registry):
        registry.register(StubTool("a"))
        registry.register(StubTool("b"), enabled=False)
        assert [t.name for t in registry.get_enabled_tools()] == ["a"]

        assert registry.enable_tool("b") is True
        assert registry.disable_tool("a") is True
        assert [t.name for t in registry.get_enabled_tools()] == ["b"]
        assert registry.enable_tool("nope") is False

    def test_schemas_only_for_enabled_tools(self, registry):
        registry.register(StubTool("a"))
        registry.register(StubTool("b"), enabled=False)
        schemas = registry.get_tool_schemas()
        assert schemas == [
            {
                "name": "a",
                "description": "Stub tool for registry tests",
                "input_schema": {
                    "type": "object",
                    "properties": {"q": {"type": "string"}},
                },
            }
        ]

    def test_schemas_by_name_skips_unknown(self, registry):
        registry.register(StubTool("a"))
        registry.register(StubTool("b"))
        names = [s["name"] for s in registry.get_tool_schemas_by_name(["b", "zzz"])]
        assert names == ["b"]


# ─── Execution ────────────────────────────────────────────────


class TestExecuteTool:
    async def test_success_updates_usage(self, registry):
        tool = StubTool()
        registry.register(tool)
        result = await registry.execute_tool("stub", {"q": "x"})

        assert result.success is True
        assert result.data == "done:x"
        meta = registry.get_metadata("stub")
        assert meta.usage_count == 1
        assert meta.last_used is not None
        history = registry.get_execution_history()
        assert len(history) == 1
        log = history[0]
        assert log.tool_name == "stub"
        assert log.input == {"q": "x"}
        assert log.output is result
        assert log.success is True
        assert log.error is None
        assert log.start_time <= log.end_time
        assert log.duration >= 0

    async def test_unknown_tool(self, registry):
        result = await registry.execute_tool("missing", {})
        assert result.success is False
        assert result.error == "Tool not found: missing"
        assert registry.get_execution_history() == []

    async def test_disabled_tool_not_executed_or_recorded(self, registry):
        tool = StubTool()
        registry.register(tool, enabled=False)
        result = await registry.execute_tool("stub", {"q": "x"})
        assert result.error == "Tool is disabled: stub"
        assert tool.seen == []
        assert registry.get_metadata("stub").usage_count == 0
        assert registry.get_execution_history() == []

    async def test_tool_failure_recorded(self, registry):
        registry.register(StubTool())
        result = await registry.execute_tool("stub", {"fail": True})
        assert result.success is False
        assert result.error == "asked to fail"
        log = registry.get_execution_history()[0]
        assert log.success is False
        assert log.error == "asked to fail"

    async def test_raising_tool_is_contained(self, registry):
        registry.register(ExplodingTool("boom"))
        result = await registry.execute_tool("boom", {})
        assert result.success is False
        assert result.error == "escaped"
        assert registry.get_metadata("boom").usage_count == 1

    async def test_context_passed_through(self, registry):
        registry.register(StubTool(timeout=60_000))
        ctx = ToolContext(session_id="s-1", timeout=5)
        result = await registry.execute_tool("stub", {"q": "x"}, ctx)
        assert result.success is True


# ─── Statistics and history ───────────────────────────────────


class TestStatistics:
    async def test_success_rate_and_usage(self, registry):
        registry.register(StubTool())
        for payload in ({"q": "1"}, {"fail": True}, {"q": "2"}, {"q": "3"}):
            await registry.execute_tool("stub", payload)

        stats = registry.get_tool_statistics("stub")
        assert stats.usage_count == 4
        assert stats.success_rate == 0.75
        assert stats.average_duration >= 0
        assert stats.last_used == registry.get_metadata("stub").last_used

    def test_unused_tool(self, registry):
        registry.register(StubTool())
        stats = registry.get_tool_statistics("stub")
        assert stats.usage_count == 0
        assert stats.success_rate == 0.0
        assert stats.average_duration == 0.0
        assert stats.last_used is None

    async def test_history_bounded_oldest_dropped(self):
        registry = ToolRegistry(max_history_size=3)
        registry.register(StubTool())
        for i in range(5):
            await registry.execute_tool("stub", {"q": str(i)})
        history = registry.get_execution_history()
        assert registry.max_history_size == 3
        assert [log.input["q"] for log in history] == ["2", "3", "4"]
        # usage counts every run, not just retained ones
        assert registry.get_metadata("stub").usage_count == 5

    async def test_history_filters(self, registry):
        registry.register(StubTool("a"))
        registry.register(StubTool("b"))
        await registry.execute_tool("a", {"q": "1"})
        await registry.execute_tool("b", {"q": "2"})
        await registry.execute_tool("a", {"fail": True})
        await registry.execute_tool("a", {"q": "3"})

        assert len(registry.get_execution_history(tool_name="a")) == 3
        ok = registry.get_execution_history(tool_name="a", success_only=True)
        assert [log.input["q"] for log in ok] == ["1", "3"]
        latest = registry.get_execution_history(limit=2)
        assert [log.tool_name for log in latest] == ["a", "a"]
        assert latest[-1].input == {"q": "3"}

    async def test_clear_history(self, registry):
        registry.register(StubTool())
        await registry.execute_tool("stub", {"q": "x"})
        registry.clear_history()
        assert registry.get_execution_history() == []
        assert registry.get_metadata("stub").usage_count == 1
