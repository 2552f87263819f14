"""Fetch/generate pipeline.

One call to `TypesPipeline.run` produces an up-to-date types file or raises
a `PipelineError`. The pipeline never retries; that policy belongs to the
triggers and the coordinator.

Order inside a run: fetch, then generate, then cleanup of the temporaries.
The generator writes to a hidden staging file next to the artifact, which
replaces the artifact with `os.replace` only after the generator succeeded,
so readers never see a partial file and a failed run leaves the previous
artifact untouched.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from pathlib import Path

from openapi_ts_sync.core.domain.models import PipelineRun, RunState
from openapi_ts_sync.core.errors import CleanupError, FetchError, GenerationError
from openapi_ts_sync.core.interfaces.collaborators import SpecSource, TypeGenerator

logger = logging.getLogger(__name__)


def staging_path_for(output_path: Path) -> Path:
    """Hidden sibling of the artifact used as the generator's output."""

    token = uuid.uuid4().hex[:12]
    return output_path.with_name(f".{output_path.name}.{token}.tmp")


class TypesPipeline:
    """Fetches the OpenAPI document and regenerates the types artifact."""

    def __init__(
        self,
        *,
        source: SpecSource,
        generator: TypeGenerator,
        spec_url: str,
        output_path: Path,
        temp_dir: Path | None = None,
    ) -> None:
        self._source = source
        self._generator = generator
        self._spec_url = spec_url
        self._output_path = output_path
        self._temp_dir = temp_dir

    @property
    def output_path(self) -> Path:
        return self._output_path

    async def run(self, run: PipelineRun | None = None) -> PipelineRun:
        run = run or PipelineRun()

        run.advance(RunState.FETCHING)
        logger.debug("Fetching OpenAPI spec from %s", self._spec_url)
        try:
            document = await self._source.fetch(self._spec_url)
        except FetchError as exc:
            run.fail(exc)
            raise

        run.advance(RunState.GENERATING)
        try:
            await self._generate(document)
        except GenerationError as exc:
            run.fail(exc)
            raise

        run.succeed()
        return run

    async def _generate(self, document: object) -> None:
        spec_path = self._write_spec(document)
        staging_path = staging_path_for(self._output_path)
        try:
            result = await self._generator.generate(spec_path, staging_path)
            if result.stderr.strip():
                logger.warning("Warning during type generation: %s", result.stderr.strip())
            if result.stdout.strip():
                logger.debug("Type generation output: %s", result.stdout.strip())
            if not staging_path.is_file():
                raise GenerationError("Generator reported success but wrote no output")
            try:
                os.replace(staging_path, self._output_path)
            except OSError as exc:
                raise GenerationError(f"Could not replace {self._output_path}: {exc}") from exc
            logger.info("Successfully generated TypeScript types.")
        finally:
            _remove_quietly(spec_path)
            _remove_quietly(staging_path)

    def _write_spec(self, document: object) -> Path:
        try:
            payload = json.dumps(document, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise GenerationError(f"OpenAPI document is not JSON serializable: {exc}") from exc

        try:
            self._output_path.parent.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix="openapi-", suffix=".json", dir=self._temp_dir)
        except OSError as exc:
            raise GenerationError(f"Could not create intermediate spec file: {exc}") from exc

        spec_path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
        except OSError as exc:
            _remove_quietly(spec_path)
            raise GenerationError(f"Could not write intermediate spec file: {exc}") from exc
        return spec_path


def _remove_quietly(path: Path) -> None:
    """Best-effort removal; failures are logged as `CleanupError` warnings."""

    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        error = CleanupError(f"Could not remove temporary file {path}: {exc}", path=path)
        logger.warning("%s", error)
