"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import typer
from rich.console import Console

from openapi_ts_sync.adapters.http_client import build_async_client
from openapi_ts_sync.adapters.server import bind_socket
from openapi_ts_sync.adapters.type_generator import OpenApiTypescriptGenerator
from openapi_ts_sync.cli.ui_components import build_checks_table
from openapi_ts_sync.core.config import CONFIG_FILE_NAME, RuntimeSettings, load_config
from openapi_ts_sync.core.errors import BootstrapError, ConfigError

_console = Console()


async def _check_http(url: str, settings: RuntimeSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return response.is_success, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


def _check_port(host: str, port: int) -> tuple[bool, str]:
    try:
        sock = bind_socket(host, port)
    except BootstrapError as exc:
        return False, str(exc)
    actual = int(sock.getsockname()[1])
    sock.close()
    if actual == port:
        return True, f"{port} is free"
    return True, f"{port} is busy; server would use {actual}"


def run(
    config_path: Path = typer.Option(CONFIG_FILE_NAME, "--config", "-c", help="Config file to check."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = RuntimeSettings()
    table = build_checks_table("openapi-ts-sync Doctor")

    generator = OpenApiTypescriptGenerator(settings.generator_command)
    executable = generator.executable()
    found = shutil.which(executable) if executable else None
    table.add_row("Generator", "OK" if found else "FAIL", found or f"{executable!r} not found on PATH")

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        details = "; ".join([str(exc), *exc.problems])
        table.add_row("Config", "FAIL", details)
        _console.print(table)
        _console.print("\n[yellow]Run `openapi-ts-sync init` to create a valid configuration.[/yellow]")
        raise typer.Exit(code=1)

    table.add_row("Config", "OK", str(config_path))
    if config.update_interval is not None:
        table.add_row("Trigger", "OK", f"periodic, every {config.update_interval} ms")
    else:
        table.add_row("Trigger", "OK", f"watch {config.watch_path.resolve()}")
        if not config.watch_path.is_dir():
            table.add_row("Watch dir", "FAIL", f"{config.watch_path} is not a directory")

    ok_http, detail_http = asyncio.run(_check_http(config.openapi_spec_url, settings))
    table.add_row("Spec source", "OK" if ok_http else "FAIL", f"{config.openapi_spec_url} ({detail_http})")

    ok_port, detail_port = _check_port(settings.host, config.port)
    table.add_row("Port", "OK" if ok_port else "FAIL", detail_port)

    if config.output_path.is_file():
        table.add_row("Artifact", "OK", str(config.output_path))
    else:
        table.add_row("Artifact", "PENDING", f"{config.output_path} not generated yet")

    _console.print(table)
