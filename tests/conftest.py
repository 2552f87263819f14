from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture
def config_data() -> dict[str, object]:
    return {
        "PORT": 3000,
        "NODE_ENV": "development",
        "LOG_LEVEL": "info",
        "OPENAPI_SPEC_URL": "http://x/spec.json",
        "OUTPUT_FILE_PATH": "./types.ts",
    }


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(data: object, name: str = "ts-openapi.config.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.upper().startswith("OPENAPI_TS_SYNC_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _debug_logging(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="openapi_ts_sync")
