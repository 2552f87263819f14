"""Domain types for type synchronization.

These describe *what* a run is and which options the config accepts; they
know nothing about HTTP, subprocesses or sockets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Environment(str, Enum):
    """Deployment environment reported in the startup log line."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log level names accepted in the config file (npm/winston naming)."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    HTTP = "http"
    VERBOSE = "verbose"
    DEBUG = "debug"
    SILLY = "silly"

    def to_logging_level(self) -> int:
        """Map onto the numeric `logging` level."""

        return _LOGGING_LEVELS[self]


HTTP_LEVEL = 17
VERBOSE_LEVEL = 15
SILLY_LEVEL = 5

_LOGGING_LEVELS: dict[LogLevel, int] = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.HTTP: HTTP_LEVEL,
    LogLevel.VERBOSE: VERBOSE_LEVEL,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.SILLY: SILLY_LEVEL,
}


class TriggerMode(str, Enum):
    """Which trigger source drives regeneration."""

    PERIODIC = "periodic"
    WATCH = "watch"


class RunState(str, Enum):
    FETCHING = "fetching"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PipelineRun:
    """One fetch-then-generate attempt. Never persisted."""

    requested_at: datetime = field(default_factory=_utcnow)
    state: RunState | None = None
    finished_at: datetime | None = None
    error: Exception | None = None

    @property
    def finished(self) -> bool:
        return self.state in (RunState.SUCCEEDED, RunState.FAILED)

    def advance(self, state: RunState) -> None:
        self.state = state

    def succeed(self) -> None:
        self.state = RunState.SUCCEEDED
        self.finished_at = _utcnow()

    def fail(self, error: Exception) -> None:
        self.state = RunState.FAILED
        self.error = error
        self.finished_at = _utcnow()

    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.requested_at).total_seconds()


@dataclass
class SyncState:
    """Mutable state shared by the lifecycle, coordinator and triggers.

    Only touched from the event loop thread, so the busy flag needs no lock.
    """

    is_running: bool = False
    runs_started: int = 0
    runs_succeeded: int = 0
    runs_failed: int = 0
    dropped_requests: int = 0
    last_run: PipelineRun | None = None
    bound_port: int | None = None
