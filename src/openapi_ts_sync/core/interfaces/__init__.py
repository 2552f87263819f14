"""Contracts (Protocol) for the external collaborators of the core."""

from openapi_ts_sync.core.interfaces.collaborators import GeneratorOutput, SpecSource, TypeGenerator

__all__ = ["GeneratorOutput", "SpecSource", "TypeGenerator"]
