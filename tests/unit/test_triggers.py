from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from watchfiles import Change

from openapi_ts_sync.core.config import RuntimeSettings, parse_config
from openapi_ts_sync.core.services.triggers import (
    PeriodicTrigger,
    WatchFilter,
    WatchTrigger,
    select_trigger,
)


class ScriptedWatcher:
    """Stands in for `watchfiles.awatch`: yields the given batches, then waits for stop."""

    def __init__(self, batches):
        self.batches = list(batches)
        self.kwargs: dict[str, object] = {}
        self.path: Path | None = None

    def __call__(self, path, **kwargs):
        self.path = path
        self.kwargs = kwargs
        return self._iterate(kwargs["stop_event"])

    async def _iterate(self, stop_event):
        for batch in self.batches:
            yield batch
            await asyncio.sleep(0)
        await stop_event.wait()


@pytest.mark.asyncio
async def test_periodic_trigger_fires_immediately_then_every_interval():
    fired: list[int] = []
    sleeps: list[float] = []
    blocked = asyncio.Event()

    async def sleeper(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) >= 3:
            await blocked.wait()

    handle = PeriodicTrigger(2.5, sleeper=sleeper).start(lambda: fired.append(1))
    for _ in range(10):
        await asyncio.sleep(0)

    assert len(fired) == 3
    assert sleeps == [2.5, 2.5, 2.5]
    assert handle.running

    await handle.stop()
    assert not handle.running
    assert len(fired) == 3


@pytest.mark.asyncio
async def test_periodic_trigger_survives_callback_errors(caplog):
    calls: list[int] = []
    sleeps: list[float] = []
    blocked = asyncio.Event()

    def on_trigger() -> None:
        calls.append(1)
        raise RuntimeError("callback failed")

    async def sleeper(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) >= 2:
            await blocked.wait()

    handle = PeriodicTrigger(1.0, sleeper=sleeper).start(on_trigger)
    for _ in range(10):
        await asyncio.sleep(0)
    await handle.stop()

    assert len(calls) == 2
    assert any("periodic trigger callback failed" in r.getMessage() for r in caplog.records)


def test_periodic_trigger_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PeriodicTrigger(0)


def test_watch_filter_ignores_hidden_entries_and_descendants(tmp_path):
    f = WatchFilter(tmp_path)
    assert f(Change.modified, str(tmp_path / "src" / "api.ts"))
    assert f(Change.added, str(tmp_path / "schema.json"))
    assert not f(Change.modified, str(tmp_path / ".env"))
    assert not f(Change.modified, str(tmp_path / ".cache" / "deep" / "file.ts"))
    assert not f(Change.modified, str(tmp_path / "src" / ".types.ts.abc123.tmp"))


def test_watch_filter_ignores_deletions_and_the_artifact(tmp_path):
    artifact = tmp_path / "src" / "types.ts"
    f = WatchFilter(tmp_path, ignore_files=[artifact])
    assert not f(Change.modified, str(artifact))
    assert not f(Change.added, str(artifact))
    assert not f(Change.deleted, str(tmp_path / "src" / "api.ts"))
    assert f(Change.modified, str(tmp_path / "src" / "api.ts"))


def test_watch_filter_keeps_default_ignores(tmp_path):
    f = WatchFilter(tmp_path)
    assert not f(Change.modified, str(tmp_path / "node_modules" / "pkg" / "index.js"))
    assert not f(Change.modified, str(tmp_path / "__pycache__" / "x.pyc"))


def test_watch_filter_only_checks_parts_below_the_root(tmp_path):
    root = tmp_path / ".hidden-parent" / "project"
    f = WatchFilter(root)
    assert f(Change.modified, str(root / "api.ts"))


@pytest.mark.asyncio
async def test_watch_trigger_fires_once_per_batch(tmp_path):
    batches = [
        {(Change.modified, str(tmp_path / "a.ts")), (Change.modified, str(tmp_path / "b.ts"))},
        set(),
        {(Change.added, str(tmp_path / "c.ts"))},
    ]
    watcher = ScriptedWatcher(batches)
    fired: list[int] = []

    trigger = WatchTrigger(tmp_path, debounce_ms=50, watcher=watcher)
    handle = trigger.start(lambda: fired.append(1))
    for _ in range(20):
        await asyncio.sleep(0)

    assert fired == [1, 1]
    assert watcher.path == tmp_path
    assert watcher.kwargs["debounce"] == 50
    assert watcher.kwargs["recursive"] is True
    assert watcher.kwargs["watch_filter"] is trigger.watch_filter

    await handle.stop()
    assert not handle.running


@pytest.mark.asyncio
async def test_watch_trigger_logs_watcher_failure(tmp_path, caplog):
    def broken_watcher(path, **kwargs):
        async def _iterate():
            raise FileNotFoundError(str(path))
            yield  # pragma: no cover

        return _iterate()

    handle = WatchTrigger(tmp_path / "missing", watcher=broken_watcher).start(lambda: None)
    for _ in range(5):
        await asyncio.sleep(0)

    assert not handle.running
    assert any("stopped unexpectedly" in r.getMessage() for r in caplog.records)
    await handle.stop()


def test_select_trigger_periodic_when_interval_set(config_data):
    config_data["UPDATE_INTERVAL"] = 5000
    trigger = select_trigger(parse_config(config_data), RuntimeSettings())
    assert isinstance(trigger, PeriodicTrigger)
    assert not isinstance(trigger, WatchTrigger)


def test_select_trigger_watch_without_interval(config_data, tmp_path):
    config_data["WATCH_DIR"] = str(tmp_path)
    trigger = select_trigger(parse_config(config_data), RuntimeSettings(watch_debounce_ms=10))
    assert isinstance(trigger, WatchTrigger)
    assert not trigger.watch_filter(Change.modified, str(Path("./types.ts").resolve()))
