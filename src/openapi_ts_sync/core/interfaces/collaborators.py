"""Collaborator contracts.

The pipeline only depends on these Protocols, so tests can substitute fakes
for the HTTP source and the external generator process.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class GeneratorOutput:
    """Captured output of a successful generator invocation."""

    stdout: str = ""
    stderr: str = ""


@runtime_checkable
class SpecSource(Protocol):
    """Produces the OpenAPI document for a URL."""

    async def fetch(self, url: str) -> object:
        """Return the decoded JSON document or raise `FetchError`."""

        ...


@runtime_checkable
class TypeGenerator(Protocol):
    """Turns a serialized OpenAPI document into a type declarations file."""

    async def generate(self, spec_path: Path, output_path: Path) -> GeneratorOutput:
        """Write declarations for `spec_path` to `output_path` or raise `GenerationError`.

        Non-fatal warnings are returned in `GeneratorOutput.stderr`.
        """

        ...
