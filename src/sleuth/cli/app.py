"""Click CLI application for sleuth.

Operator commands for inspecting and exercising the tool registry:
``tools`` lists registered tools, ``schemas`` prints their input
schemas, and ``run`` executes one tool and prints its result as JSON.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TYPE_CHECKING, Any

import click

from sleuth import __version__
from sleuth.config.loader import load_config
from sleuth.core.errors import ConfigError, SleuthError
from sleuth.core.log import configure_logging
from sleuth.factory import build_registry

if TYPE_CHECKING:
    from sleuth.config.schema import SleuthConfig
    from sleuth.tools.base import ToolResult
    from sleuth.tools.registry import ToolRegistry


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> SleuthConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _setup(ctx: click.Context) -> ToolRegistry:
    config = _load_config(ctx.obj["config_path"])
    configure_logging(config.logging)
    try:
        return build_registry(config)
    except (SleuthError, ValueError) as e:
        _error(str(e))
        raise  # unreachable


async def _close_tools(registry: ToolRegistry) -> None:
    for tool in registry.get_all_tools():
        close = getattr(tool, "aclose", None)
        if close is not None:
            await close()


async def _run_async(
    registry: ToolRegistry, tool_name: str, payload: Any
) -> ToolResult[Any]:
    try:
        return await registry.execute_tool(tool_name, payload)
    finally:
        await _close_tools(registry)


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


# ── Commands ─────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="sleuth")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """sleuth - tool execution layer for a research agent.

    Search, fetch, analyze and synthesize through one registry.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List registered tools."""
    from sleuth.cli.display import ToolDisplay

    registry = _setup(ctx)
    ToolDisplay().show_tools(registry)


@cli.command()
@click.option(
    "--name",
    "names",
    multiple=True,
    help="Only print schemas for these tools (repeatable).",
)
@click.pass_context
def schemas(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Print input schemas of enabled tools as JSON."""
    registry = _setup(ctx)
    if names:
        click.echo(_dump(registry.get_tool_schemas_by_name(names)))
    else:
        click.echo(_dump(registry.get_tool_schemas()))


@cli.command()
@click.argument("tool_name")
@click.option(
    "--input",
    "input_json",
    default="{}",
    show_default=True,
    help="Tool input as a JSON object.",
)
@click.pass_context
def run(ctx: click.Context, tool_name: str, input_json: str) -> None:
    """Execute TOOL_NAME and print its result as JSON.

    Exits with status 1 when the tool reports failure.
    """
    try:
        payload = json.loads(input_json)
    except json.JSONDecodeError as e:
        _error(f"Invalid JSON input: {e}")
        return  # unreachable

    registry = _setup(ctx)
    result = asyncio.run(_run_async(registry, tool_name, payload))
    click.echo(_dump(result.to_dict()))
    if not result.success:
        sys.exit(1)
