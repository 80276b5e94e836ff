"""Tests for the CLI commands: argument parsing, output formatting, errors."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sleuth.cli.app import cli
from sleuth.tools.registry import ToolRegistry
from sleuth.tools.web_search import SearchTool
from tests.fixtures.providers import FakeSearchClient


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def search_registry(make_search_result: Any) -> ToolRegistry:
    registry = ToolRegistry()
    client = FakeSearchClient(
        [make_search_result(url="https://arxiv.org/abs/1", published_date="2024-01-05")]
    )
    registry.register(SearchTool(search_client=client), category="search")
    return registry


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "tool execution layer" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "sleuth" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("tools", "schemas", "run"):
            assert command in result.output

    def test_missing_config_file(self, runner: CliRunner, isolated_env: Any) -> None:
        result = runner.invoke(cli, ["--config", "nope.toml", "tools"])
        assert result.exit_code == 2

    def test_invalid_config_file(self, runner: CliRunner, isolated_env: Any) -> None:
        (isolated_env / "bad.toml").write_text("[tools\n")
        result = runner.invoke(cli, ["--config", "bad.toml", "tools"])
        assert result.exit_code == 1
        assert "Error: Invalid TOML" in result.output


# ── tools command ────────────────────────────────────────────────


class TestToolsCommand:
    def test_lists_fetch_without_credentials(
        self, runner: CliRunner, isolated_env: Any
    ) -> None:
        result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        assert "Registered tools" in result.stdout
        assert "web_fetch" in result.stdout
        assert "web_search" not in result.stdout

    def test_lists_all_with_keys(
        self, runner: CliRunner, isolated_env: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-test")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        for name in ("web_search", "web_fetch", "content_analyzer", "synthesizer"):
            assert name in result.stdout

    def test_empty_registry(self, runner: CliRunner, isolated_env: Any) -> None:
        with patch("sleuth.cli.app.build_registry", return_value=ToolRegistry()):
            result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        assert "No tools registered." in result.stdout


# ── schemas command ──────────────────────────────────────────────


class TestSchemasCommand:
    def test_prints_enabled_schemas(
        self, runner: CliRunner, isolated_env: Any
    ) -> None:
        result = runner.invoke(cli, ["schemas"])
        assert result.exit_code == 0
        schemas = json.loads(result.stdout)
        assert [s["name"] for s in schemas] == ["web_fetch"]
        assert schemas[0]["input_schema"]["required"] == ["url"]

    def test_filter_by_name(
        self, runner: CliRunner, isolated_env: Any, search_registry: ToolRegistry
    ) -> None:
        with patch("sleuth.cli.app.build_registry", return_value=search_registry):
            result = runner.invoke(
                cli, ["schemas", "--name", "web_search", "--name", "missing"]
            )
        assert result.exit_code == 0
        assert [s["name"] for s in json.loads(result.stdout)] == ["web_search"]


# ── run command ──────────────────────────────────────────────────


class TestRunCommand:
    def test_runs_tool_and_prints_json(
        self, runner: CliRunner, isolated_env: Any, search_registry: ToolRegistry
    ) -> None:
        with patch("sleuth.cli.app.build_registry", return_value=search_registry):
            result = runner.invoke(
                cli, ["run", "web_search", "--input", '{"query": "qubits"}']
            )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        hit = payload["data"]["results"][0]
        assert hit["domain"] == "arxiv.org"
        assert hit["published_date"] == "2024-01-05T00:00:00+00:00"
        assert payload["metadata"]["result_count"] == 1

    def test_tool_failure_exits_nonzero(
        self, runner: CliRunner, isolated_env: Any, search_registry: ToolRegistry
    ) -> None:
        with patch("sleuth.cli.app.build_registry", return_value=search_registry):
            result = runner.invoke(cli, ["run", "web_search"])
        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload == {
            "success": False,
            "error": "Invalid input provided",
            "metadata": payload["metadata"],
        }

    def test_unknown_tool(
        self, runner: CliRunner, isolated_env: Any, search_registry: ToolRegistry
    ) -> None:
        with patch("sleuth.cli.app.build_registry", return_value=search_registry):
            result = runner.invoke(cli, ["run", "nope"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "Tool not found: nope"

    def test_invalid_json(self, runner: CliRunner, isolated_env: Any) -> None:
        result = runner.invoke(cli, ["run", "web_fetch", "--input", "{not json"])
        assert result.exit_code == 1
        assert "Invalid JSON input" in result.output

    def test_missing_tool_name(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["run"])
        assert result.exit_code != 0
        assert "Missing argument" in result.output
