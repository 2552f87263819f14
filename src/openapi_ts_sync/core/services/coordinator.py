"""Regeneration coordinator.

At most one pipeline run is in flight. A request that arrives while a run
is active is dropped: triggers recur (timer) or are user driven (file edits),
so a later trigger picks up whatever the dropped one would have. Failed
runs are logged and not retried.
"""

from __future__ import annotations

import asyncio
import logging

from openapi_ts_sync.core.domain.models import PipelineRun, SyncState
from openapi_ts_sync.core.errors import FetchError, PipelineError, describe_fetch_error
from openapi_ts_sync.core.services.pipeline import TypesPipeline

logger = logging.getLogger(__name__)


def log_pipeline_error(error: PipelineError, *, prefix: str = "Error updating types") -> None:
    if isinstance(error, FetchError):
        for line in describe_fetch_error(error):
            logger.error("%s", line)
    logger.error("%s: %s", prefix, error)


class RegenerationCoordinator:
    """Serializes pipeline runs behind the busy flag in `SyncState`."""

    def __init__(self, pipeline: TypesPipeline, state: SyncState) -> None:
        self._pipeline = pipeline
        self._state = state
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    def request_regeneration(self) -> bool:
        """Start a run unless one is active. Returns whether a run was started.

        Must be called from within the running event loop.
        """

        if self._state.is_running:
            self._state.dropped_requests += 1
            logger.debug("Regeneration already in progress; request dropped")
            return False

        self._state.is_running = True
        self._state.runs_started += 1
        run = PipelineRun()
        logger.debug("Regeneration requested at %s", run.requested_at.isoformat())
        self._task = asyncio.get_running_loop().create_task(self._execute(run))
        return True

    async def _execute(self, run: PipelineRun) -> None:
        try:
            await self._pipeline.run(run)
        except PipelineError as exc:
            self._state.runs_failed += 1
            log_pipeline_error(exc)
        except Exception as exc:
            self._state.runs_failed += 1
            if not run.finished:
                run.fail(exc)
            logger.exception("Unexpected error updating types")
        else:
            self._state.runs_succeeded += 1
            logger.info("Types updated successfully")
        finally:
            self._state.last_run = run
            self._state.is_running = False

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for the in-flight run, if any. Returns False on timeout."""

        task = self._task
        if task is None or task.done():
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done
