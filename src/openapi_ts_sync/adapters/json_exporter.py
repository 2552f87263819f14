"""Persistence of the project config file."""

from __future__ import annotations

import json
from pathlib import Path

from openapi_ts_sync.core.config import SyncConfig


def export_config_json(*, config: SyncConfig, output_path: Path) -> Path:
    """Write `config` with its file key names as UTF-8 JSON (2-space indent)."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(config.to_file_dict(), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    return output_path
