"""Command line entry point.

- no subcommand / `start`: serve `/types` and keep regenerating.
- `generate`: regenerate once; exit 0 on success, 1 on failure.
- `init`: write `ts-openapi.config.json` interactively.
- `doctor`: environment diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import NoReturn, TypeVar

import typer
from rich.console import Console

from openapi_ts_sync.adapters.json_exporter import export_config_json
from openapi_ts_sync.cli import doctor
from openapi_ts_sync.cli.ui_components import build_config_table, print_banner
from openapi_ts_sync.core.config import (
    CONFIG_FILE_NAME,
    RuntimeSettings,
    SyncConfig,
    check_output_file_path,
    check_spec_url,
    load_config,
    parse_config,
)
from openapi_ts_sync.core.domain.models import Environment, LogLevel
from openapi_ts_sync.core.errors import BootstrapError, ConfigError
from openapi_ts_sync.core.log_setup import configure_logging
from openapi_ts_sync.core.services.lifecycle import SyncService

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Keep TypeScript types in sync with a remote OpenAPI specification.",
    add_completion=False,
)
app.command(name="doctor")(doctor.run)

_console = Console()
_err_console = Console(stderr=True)

E = TypeVar("E", bound=Enum)


def _config_option() -> Path:
    return typer.Option(CONFIG_FILE_NAME, "--config", "-c", help="Path of the config file.")


def _exit_on_config_error(exc: ConfigError) -> NoReturn:
    _err_console.print(f"[red]{exc}[/red]")
    for problem in exc.problems:
        _err_console.print(f"  - {problem}")
    _err_console.print("Run [bold]openapi-ts-sync init[/bold] to create a valid configuration.")
    raise typer.Exit(code=1) from exc


def _load_or_exit(path: Path) -> SyncConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        _exit_on_config_error(exc)


def _serve(config_path: Path) -> None:
    config = _load_or_exit(config_path)
    configure_logging(config.log_level)
    service = SyncService(config, RuntimeSettings())
    try:
        code = asyncio.run(service.run())
    except ConfigError as exc:
        _exit_on_config_error(exc)
    except BootstrapError as exc:
        logger.error("Could not start the types server: %s", exc)
        raise typer.Exit(code=1) from exc
    raise typer.Exit(code=code)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, config_path: Path = _config_option()) -> None:
    """Without a command: serve the generated types and keep them up to date."""

    if ctx.invoked_subcommand is None:
        _serve(config_path)


@app.command()
def start(config_path: Path = _config_option()) -> None:
    """Serve the generated types and keep them up to date."""

    _serve(config_path)


@app.command()
def generate(config_path: Path = _config_option()) -> None:
    """Fetch the spec and generate types once."""

    config = _load_or_exit(config_path)
    configure_logging(config.log_level)
    service = SyncService(config, RuntimeSettings())
    raise typer.Exit(code=asyncio.run(service.generate_once()))


def _prompt_valid(label: str, default: str, check: Callable[[str], str]) -> str:
    while True:
        value = str(typer.prompt(label, default=default)).strip()
        try:
            return check(value)
        except ValueError as exc:
            _console.print(f"[red]Invalid value:[/red] {exc}")


def _prompt_choice(label: str, choices: type[E], default: E) -> E:
    options = ", ".join(item.value for item in choices)
    while True:
        value = str(typer.prompt(f"{label} ({options})", default=default.value)).strip().lower()
        try:
            return choices(value)
        except ValueError:
            _console.print(f"[red]Choose one of:[/red] {options}")


def _check_port(value: str) -> str:
    if not value.isdigit() or not 0 < int(value) <= 65535:
        raise ValueError("port must be an integer between 1 and 65535")
    return value


def _check_interval(value: str) -> str:
    if value and (not value.isdigit() or int(value) <= 0):
        raise ValueError("interval must be a positive number of milliseconds")
    return value


@app.command()
def init(config_path: Path = _config_option()) -> None:
    """Interactively create the config file."""

    print_banner(_console)
    if config_path.exists() and not typer.confirm(f"{config_path} already exists. Overwrite?", default=False):
        _console.print("[yellow]Keeping the existing configuration.[/yellow]")
        raise typer.Exit(code=0)

    port = _prompt_valid("Enter the port number", "3000", _check_port)
    node_env = _prompt_choice("Select the environment", Environment, Environment.DEVELOPMENT)
    log_level = _prompt_choice("Select the log level", LogLevel, LogLevel.INFO)
    spec_url = _prompt_valid("Enter the OpenAPI spec URL", "http://localhost:3000/api-json", check_spec_url)
    output = _prompt_valid(
        "Enter the output file path for TypeScript types", "./src/types.ts", check_output_file_path
    )
    interval = _prompt_valid("Update interval in ms (empty: watch files instead)", "", _check_interval)

    data: dict[str, object] = {
        "PORT": int(port),
        "NODE_ENV": node_env.value,
        "LOG_LEVEL": log_level.value,
        "OPENAPI_SPEC_URL": spec_url,
        "OUTPUT_FILE_PATH": output,
    }
    if interval:
        data["UPDATE_INTERVAL"] = int(interval)
    else:
        data["WATCH_DIR"] = str(typer.prompt("Directory to watch for changes", default=".")).strip() or "."

    try:
        config = parse_config(data)
    except ConfigError as exc:
        for problem in exc.problems:
            _err_console.print(f"[red]{problem}[/red]")
        raise typer.Exit(code=1) from exc

    export_config_json(config=config, output_path=config_path)
    _console.print(build_config_table(config, source=config_path))
    _console.print(f"[green]Configuration file created:[/green] {config_path}")


def run() -> None:
    app()
