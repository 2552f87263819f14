"""Allows `python -m openapi_ts_sync ...`."""

from __future__ import annotations

import sys

# Windows consoles default to cp1252; Rich output needs utf-8.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from openapi_ts_sync.cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
