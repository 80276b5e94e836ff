"""Rich rendering for the ``sleuth`` CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from sleuth.tools.registry import ToolRegistry

_DESCRIPTION_LEN = 60


def _truncate(text: str, limit: int = _DESCRIPTION_LEN) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class ToolDisplay:
    """Render registry contents.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def show_tools(self, registry: ToolRegistry) -> None:
        """Print a table of registered tools."""
        if not len(registry):
            self._console.print("No tools registered.")
            return

        table = Table(title="Registered tools")
        table.add_column("Name", style="bold cyan")
        table.add_column("Version")
        table.add_column("Category")
        table.add_column("Enabled")
        table.add_column("Description")

        for tool in registry.get_all_tools():
            metadata = registry.get_metadata(tool.name)
            enabled = bool(metadata and metadata.enabled and tool.config.enabled)
            table.add_row(
                tool.name,
                tool.version,
                metadata.category if metadata else "",
                "[green]yes[/green]" if enabled else "[red]no[/red]",
                _truncate(tool.description),
            )
        self._console.print(table)
