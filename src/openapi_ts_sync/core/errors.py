"""Error taxonomy for the synchronization core.

Rules:
- Pipeline errors (`FetchError`, `GenerationError`) are recoverable: the
  coordinator logs them and waits for the next trigger.
- Startup errors (`ConfigError`, `BootstrapError`) end the process.
- `CleanupError` is only ever logged.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

_BODY_PREVIEW_CHARS = 500


class SyncError(Exception):
    """Base exception for this package."""


class PipelineError(SyncError):
    """A fetch-then-generate run failed."""


class FetchError(PipelineError):
    """Spec source unreachable or returned a non-success response."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body


class GenerationError(PipelineError):
    """The type generator failed to produce the artifact."""

    def __init__(
        self,
        message: str,
        *,
        stderr: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class CleanupError(SyncError):
    """A transient intermediate file could not be removed."""

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(message)
        self.path = path


class BootstrapError(SyncError):
    """The listener could not be bound for a reason other than address-in-use."""

    def __init__(self, message: str, *, port: int | None = None) -> None:
        super().__init__(message)
        self.port = port


class ConfigError(SyncError):
    """Configuration file missing, unreadable or invalid."""

    def __init__(self, message: str, *, problems: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.problems = list(problems)


def describe_fetch_error(error: FetchError) -> list[str]:
    """Return the log lines for a fetch failure (message first, then status/body)."""

    lines = [f"Error fetching OpenAPI spec: {error}"]
    if error.status is not None:
        body = error.body or ""
        if len(body) > _BODY_PREVIEW_CHARS:
            body = body[:_BODY_PREVIEW_CHARS] + "..."
        lines.append(f"Status: {error.status}, Data: {body}")
    return lines


__all__ = [
    "SyncError",
    "PipelineError",
    "FetchError",
    "GenerationError",
    "CleanupError",
    "BootstrapError",
    "ConfigError",
    "describe_fetch_error",
]
