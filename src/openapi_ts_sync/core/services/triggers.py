"""Trigger sources.

Exactly one trigger is active per process, picked by `select_trigger`:
- `PeriodicTrigger` fires once immediately and then every interval.
- `WatchTrigger` fires once per debounced batch of file changes under the
  watch directory. Hidden entries (and everything below them), deletions and
  the generated artifact itself never count as changes.

Triggers do not know whether a run is active; dropping duplicates is the
coordinator's job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any, Protocol

from watchfiles import Change, DefaultFilter, awatch

from openapi_ts_sync.core.config import RuntimeSettings, SyncConfig
from openapi_ts_sync.core.domain.models import VERBOSE_LEVEL

logger = logging.getLogger(__name__)

OnTrigger = Callable[[], object]
Sleeper = Callable[[float], Awaitable[None]]
Watcher = Callable[..., AsyncIterator[set[tuple[Change, str]]]]


class TriggerHandle:
    """Running trigger; `stop()` ends it and waits for its task."""

    def __init__(self, name: str, task: asyncio.Task[None], stop_event: asyncio.Event) -> None:
        self.name = name
        self._task = task
        self._stop_event = stop_event

    @property
    def running(self) -> bool:
        return not self._task.done()

    async def stop(self) -> None:
        self._stop_event.set()
        if not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        logger.debug("%s trigger stopped", self.name)


class Trigger(Protocol):
    name: str

    def start(self, on_trigger: OnTrigger) -> TriggerHandle: ...


def _fire(name: str, on_trigger: OnTrigger) -> None:
    try:
        on_trigger()
    except Exception:
        logger.exception("%s trigger callback failed", name)


class PeriodicTrigger:
    name = "periodic"

    def __init__(self, interval_seconds: float, *, sleeper: Sleeper | None = None) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval = interval_seconds
        self._sleep = sleeper or asyncio.sleep

    def start(self, on_trigger: OnTrigger) -> TriggerHandle:
        stop_event = asyncio.Event()
        task = asyncio.get_running_loop().create_task(self._loop(on_trigger, stop_event))
        logger.info("Regenerating types every %s ms", int(self._interval * 1000))
        return TriggerHandle(self.name, task, stop_event)

    async def _loop(self, on_trigger: OnTrigger, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            _fire(self.name, on_trigger)
            await self._sleep(self._interval)


class WatchFilter(DefaultFilter):
    """watchfiles' default ignores plus hidden paths, deletions and ignored files."""

    def __init__(self, root: Path, *, ignore_files: Iterable[Path] = ()) -> None:
        super().__init__()
        self._root = root.resolve()
        self._ignore_files = {Path(p).resolve() for p in ignore_files}

    def __call__(self, change: Change, path: str) -> bool:
        if change == Change.deleted:
            return False
        candidate = Path(path).resolve()
        if candidate in self._ignore_files:
            return False
        try:
            parts = candidate.relative_to(self._root).parts
        except ValueError:
            parts = candidate.parts
        if any(part.startswith(".") for part in parts):
            return False
        return super().__call__(change, path)


class WatchTrigger:
    name = "watch"

    def __init__(
        self,
        watch_dir: Path,
        *,
        ignore_files: Iterable[Path] = (),
        debounce_ms: int = 1600,
        watcher: Watcher | None = None,
    ) -> None:
        self._watch_dir = watch_dir
        self._filter = WatchFilter(watch_dir, ignore_files=ignore_files)
        self._debounce_ms = debounce_ms
        self._watcher: Watcher = watcher or awatch

    @property
    def watch_filter(self) -> WatchFilter:
        return self._filter

    def start(self, on_trigger: OnTrigger) -> TriggerHandle:
        stop_event = asyncio.Event()
        task = asyncio.get_running_loop().create_task(self._loop(on_trigger, stop_event))
        logger.info("Watching %s for changes", self._watch_dir.resolve())
        return TriggerHandle(self.name, task, stop_event)

    async def _loop(self, on_trigger: OnTrigger, stop_event: asyncio.Event) -> None:
        kwargs: dict[str, Any] = {
            "watch_filter": self._filter,
            "debounce": self._debounce_ms,
            "stop_event": stop_event,
            "recursive": True,
        }
        try:
            async for changes in self._watcher(self._watch_dir, **kwargs):
                if not changes:
                    continue
                logger.log(
                    VERBOSE_LEVEL,
                    "%d change(s) detected, e.g. %s",
                    len(changes),
                    next(iter(changes))[1],
                )
                _fire(self.name, on_trigger)
        except Exception:
            logger.exception("File watcher on %s stopped unexpectedly", self._watch_dir)


def select_trigger(config: SyncConfig, settings: RuntimeSettings | None = None) -> Trigger:
    """Pick the single trigger implied by the config."""

    settings = settings or RuntimeSettings()
    interval = config.update_interval_seconds
    if interval is not None:
        return PeriodicTrigger(interval)
    return WatchTrigger(
        config.watch_path,
        ignore_files=[config.output_path],
        debounce_ms=settings.watch_debounce_ms,
    )
