"""Type generator adapter: runs `openapi-typescript` (or any compatible command).

The command is a template; `{input}` and `{output}` are replaced with the
intermediate spec file and the output path. A string template is split with
`shlex`, so quoting works the way it does in a shell.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from openapi_ts_sync.core.config import DEFAULT_GENERATOR_COMMAND
from openapi_ts_sync.core.errors import GenerationError
from openapi_ts_sync.core.interfaces.collaborators import GeneratorOutput

logger = logging.getLogger(__name__)


def build_command(template: str | Sequence[str], *, spec_path: Path, output_path: Path) -> list[str]:
    parts = shlex.split(template) if isinstance(template, str) else list(template)
    if not parts:
        raise GenerationError("Generator command is empty")
    values = {"input": str(spec_path), "output": str(output_path)}
    try:
        command = [part.format(**values) for part in parts]
    except (KeyError, IndexError, ValueError) as exc:
        raise GenerationError(f"Invalid generator command template: {exc}") from exc
    resolved = shutil.which(command[0])
    if resolved:
        command[0] = resolved
    return command


def _decode(data: bytes | None) -> str:
    return data.decode(errors="replace") if data else ""


class OpenApiTypescriptGenerator:
    """Runs the generator command as a subprocess."""

    def __init__(
        self,
        command: str | Sequence[str] = DEFAULT_GENERATOR_COMMAND,
        *,
        timeout_seconds: float | None = 300.0,
    ) -> None:
        self._command = command
        self._timeout = timeout_seconds

    def executable(self) -> str:
        """First word of the command, used by `doctor`."""

        parts = shlex.split(self._command) if isinstance(self._command, str) else list(self._command)
        return parts[0] if parts else ""

    async def generate(self, spec_path: Path, output_path: Path) -> GeneratorOutput:
        command = build_command(self._command, spec_path=spec_path, output_path=output_path)
        logger.debug("Running generator: %s", shlex.join(command))
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise GenerationError(f"Could not start generator {command[0]!r}: {exc}") from exc

        try:
            out_b, err_b = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            await _terminate(proc)
            raise GenerationError(f"Generator timed out after {self._timeout:.0f}s") from exc
        except asyncio.CancelledError:
            await _terminate(proc)
            raise

        stdout = _decode(out_b)
        stderr = _decode(err_b)
        if proc.returncode != 0:
            message = f"Command failed with exit code {proc.returncode}"
            if stderr.strip():
                message = f"{message}: {stderr.strip()}"
            raise GenerationError(message, stderr=stderr, exit_code=proc.returncode)
        return GeneratorOutput(stdout=stdout, stderr=stderr)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=2.0)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
