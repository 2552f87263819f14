"""Console logging (Rich).

The config file speaks winston level names; `LogLevel.to_logging_level`
maps them onto numeric levels and the extra names are registered here so
records print as `HTTP`, `VERBOSE` and `SILLY`.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from openapi_ts_sync.core.domain.models import HTTP_LEVEL, SILLY_LEVEL, VERBOSE_LEVEL, LogLevel

_CUSTOM_LEVEL_NAMES = {
    HTTP_LEVEL: "HTTP",
    VERBOSE_LEVEL: "VERBOSE",
    SILLY_LEVEL: "SILLY",
}


def register_level_names() -> None:
    for level, name in _CUSTOM_LEVEL_NAMES.items():
        logging.addLevelName(level, name)


def configure_logging(level: LogLevel | str, *, console: Console | None = None) -> RichHandler:
    """Route every logger (ours and uvicorn's) through one Rich handler."""

    register_level_names()
    numeric = LogLevel(level).to_logging_level()
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(level=numeric, handlers=[handler], force=True)
    return handler


register_level_names()
