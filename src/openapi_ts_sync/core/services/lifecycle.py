"""Lifecycle manager.

Startup order in long-running mode:
1. bind the types server (port retry happens in the server adapter),
2. request one regeneration immediately,
3. start exactly one trigger source,
4. install SIGINT/SIGTERM handlers and wait.

Shutdown stops the trigger, closes the listener (in-flight requests drain),
then waits for an in-flight run up to `shutdown_grace_seconds`. A second
shutdown request (another Ctrl+C) skips that wait.

Unhandled faults on the event loop are logged and never stop the service.
In one-shot mode (`generate_once`) a pipeline failure is reported through
the return code instead.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from openapi_ts_sync.adapters.http_client import HttpSpecSource
from openapi_ts_sync.adapters.server import ListenerHandle, create_app, start_server
from openapi_ts_sync.adapters.type_generator import OpenApiTypescriptGenerator
from openapi_ts_sync.core.config import RuntimeSettings, SyncConfig, check_watch_dir
from openapi_ts_sync.core.domain.models import SyncState
from openapi_ts_sync.core.errors import PipelineError
from openapi_ts_sync.core.interfaces.collaborators import SpecSource, TypeGenerator
from openapi_ts_sync.core.services.coordinator import RegenerationCoordinator, log_pipeline_error
from openapi_ts_sync.core.services.pipeline import TypesPipeline
from openapi_ts_sync.core.services.triggers import Trigger, TriggerHandle, select_trigger

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def log_unhandled_fault(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Event loop exception handler: log with full detail, keep running."""

    message = context.get("message") or "Unhandled error in event loop"
    exc = context.get("exception")
    if exc is not None:
        logger.error("Unhandled error: %s", message, exc_info=exc)
    else:
        logger.error("Unhandled error: %s (%s)", message, context)


class SyncService:
    """Owns the config, the shared state and every running component."""

    def __init__(
        self,
        config: SyncConfig,
        settings: RuntimeSettings | None = None,
        *,
        source: SpecSource | None = None,
        generator: TypeGenerator | None = None,
        trigger: Trigger | None = None,
        state: SyncState | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or RuntimeSettings()
        self.state = state or SyncState()
        self.pipeline = TypesPipeline(
            source=source or HttpSpecSource(self.settings),
            generator=generator
            or OpenApiTypescriptGenerator(
                self.settings.generator_command,
                timeout_seconds=self.settings.generator_timeout_seconds,
            ),
            spec_url=config.openapi_spec_url,
            output_path=config.output_path,
        )
        self.coordinator = RegenerationCoordinator(self.pipeline, self.state)
        self.trigger = trigger or select_trigger(config, self.settings)
        self.listener: ListenerHandle | None = None
        self.trigger_handle: TriggerHandle | None = None
        self._stop_event = asyncio.Event()
        self._force_exit = asyncio.Event()

    async def generate_once(self) -> int:
        """Run the pipeline once. Returns the process exit code."""

        try:
            await self.pipeline.run()
        except PipelineError as exc:
            log_pipeline_error(exc, prefix="Error generating types")
            return 1
        except Exception:
            logger.exception("Unexpected error generating types")
            return 1
        logger.info("Types generated successfully")
        return 0

    def request_shutdown(self, signal_name: str | None = None) -> None:
        """Begin shutdown; a second request skips the grace wait."""

        if self._stop_event.is_set():
            logger.warning("Shutdown requested again; not waiting for the running regeneration")
            self._force_exit.set()
            return
        if signal_name:
            logger.info("Received %s signal, shutting down...", signal_name)
        self._stop_event.set()

    async def run(self) -> int:
        """Serve and regenerate until a shutdown is requested.

        `ConfigError` (watch directory missing) is raised before anything
        starts. `BootstrapError` from the listener propagates to the caller.
        """

        check_watch_dir(self.config)
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(log_unhandled_fault)
        installed: list[signal.Signals] = []
        replaced: dict[signal.Signals, Any] = {}
        try:
            app = create_app(self.config.output_path)
            self.listener = await start_server(
                app,
                host=self.settings.host,
                preferred_port=self.config.port,
            )
            self.state.bound_port = self.listener.port
            logger.info(
                "TypeScript types server running at %s in %s mode",
                self.listener.url,
                self.config.node_env.value,
            )

            self.coordinator.request_regeneration()
            self.trigger_handle = self.trigger.start(self.coordinator.request_regeneration)
            installed, replaced = self._install_signal_handlers(loop)
            await self._stop_event.wait()
        finally:
            await self._shutdown()
            for sig in installed:
                loop.remove_signal_handler(sig)
            for sig, previous in replaced.items():
                signal.signal(sig, previous)
            loop.set_exception_handler(previous_handler)
        return 0

    async def _shutdown(self) -> None:
        if self.trigger_handle is not None:
            await self.trigger_handle.stop()
            self.trigger_handle = None
        if self.listener is not None:
            await self.listener.close()
            self.listener = None
        if self.coordinator.is_running and not self._force_exit.is_set():
            logger.info("Waiting for the running regeneration to finish")
            idle = await self._wait_idle_or_forced(self.settings.shutdown_grace_seconds)
            if not idle and not self._force_exit.is_set():
                logger.warning(
                    "Regeneration still running after %ss; exiting anyway",
                    self.settings.shutdown_grace_seconds,
                )

    async def _wait_idle_or_forced(self, timeout: float) -> bool:
        idle = asyncio.ensure_future(self.coordinator.wait_idle(timeout))
        forced = asyncio.ensure_future(self._force_exit.wait())
        try:
            await asyncio.wait({idle, forced}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (idle, forced):
                task.cancel()
        return idle.done() and not idle.cancelled() and idle.result()

    def _install_signal_handlers(
        self, loop: asyncio.AbstractEventLoop
    ) -> tuple[list[signal.Signals], dict[signal.Signals, Any]]:
        """Route SIGINT/SIGTERM to `request_shutdown`.

        Returns the signals registered on the loop and, for the
        `signal.signal` fallback, the handlers that were replaced.
        """

        installed: list[signal.Signals] = []
        replaced: dict[signal.Signals, Any] = {}
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler.
                try:
                    previous = signal.signal(
                        sig,
                        lambda signum, _frame: loop.call_soon_threadsafe(
                            self.request_shutdown, signal.Signals(signum).name
                        ),
                    )
                except ValueError as exc:
                    logger.debug("Signal handler for %s not installed: %s", sig.name, exc)
                    continue
                if previous is not None:
                    replaced[sig] = previous
            except (RuntimeError, ValueError) as exc:
                logger.debug("Signal handler for %s not installed: %s", sig.name, exc)
            else:
                installed.append(sig)
        return installed, replaced
