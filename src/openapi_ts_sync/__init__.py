"""Keep locally generated TypeScript types in sync with a remote OpenAPI spec."""

__version__ = "0.1.0"
