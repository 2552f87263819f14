"""Rich components for the CLI.

Kept apart from the commands so `init` and `doctor` share the same tables.
"""

from __future__ import annotations

from pathlib import Path

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from openapi_ts_sync.core.config import SyncConfig


def print_banner(console: Console) -> None:
    title = Text("openapi-ts-sync", style="bold cyan")
    subtitle = Text("OpenAPI spec -> TypeScript types, kept in sync", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_config_table(config: SyncConfig, *, source: Path | None = None) -> Table:
    """Key/value table of a config, in the file's key names."""

    title = f"Configuration ({source})" if source else "Configuration"
    table = Table(title=title)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in config.to_file_dict().items():
        table.add_row(key, str(value))
    table.add_row("trigger", config.trigger_mode.value, style="dim")
    return table


def build_checks_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")
    return table
