"""Configuration for the synchronization core.

Two layers:
- `SyncConfig`: the project file (`ts-openapi.config.json`) written by
  `init`. Immutable once loaded; keys use the uppercase names of the file.
- `RuntimeSettings`: process knobs read from `OPENAPI_TS_SYNC_*` env vars
  (pydantic-settings), e.g. the generator command or HTTP timeout.
"""

from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from openapi_ts_sync.core.domain.models import Environment, LogLevel, TriggerMode
from openapi_ts_sync.core.errors import ConfigError

CONFIG_FILE_NAME = "ts-openapi.config.json"

TYPE_DEFINITION_SUFFIXES: tuple[str, ...] = (".ts", ".mts", ".cts")

DEFAULT_GENERATOR_COMMAND = "npx openapi-typescript {input} --output {output}"


def check_spec_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an absolute http or https URL")
    return value


def check_output_file_path(value: str) -> str:
    if not value.endswith(TYPE_DEFINITION_SUFFIXES):
        suffixes = ", ".join(TYPE_DEFINITION_SUFFIXES)
        raise ValueError(f"must end with one of: {suffixes}")
    return value


class SyncConfig(BaseModel):
    """Validated contents of the project config file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    port: int = Field(
        ...,
        alias="PORT",
        strict=True,
        gt=0,
        le=65535,
        description="Preferred port for the types server.",
    )
    node_env: Environment = Field(
        ...,
        alias="NODE_ENV",
        description="Environment name shown in the startup log.",
    )
    log_level: LogLevel = Field(
        ...,
        alias="LOG_LEVEL",
        description="Minimum level for console logging.",
    )
    openapi_spec_url: str = Field(
        ...,
        alias="OPENAPI_SPEC_URL",
        description="Absolute http(s) URL of the OpenAPI JSON document.",
    )
    output_file_path: str = Field(
        ...,
        alias="OUTPUT_FILE_PATH",
        min_length=1,
        description="Where generated types are written (relative to the working directory).",
    )
    update_interval: int | None = Field(
        default=None,
        alias="UPDATE_INTERVAL",
        strict=True,
        gt=0,
        description="Periodic regeneration interval in milliseconds; disables watching.",
    )
    watch_dir: str | None = Field(
        default=None,
        alias="WATCH_DIR",
        min_length=1,
        description="Directory watched for changes when no interval is set.",
    )

    @field_validator("openapi_spec_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return check_spec_url(value)

    @field_validator("output_file_path")
    @classmethod
    def _check_output(cls, value: str) -> str:
        return check_output_file_path(value)

    @property
    def output_path(self) -> Path:
        return Path(self.output_file_path)

    @property
    def watch_path(self) -> Path:
        return Path(self.watch_dir or ".")

    @property
    def trigger_mode(self) -> TriggerMode:
        """Exactly one mode: periodic when an interval is configured, else watch."""

        if self.update_interval is not None:
            return TriggerMode.PERIODIC
        return TriggerMode.WATCH

    @property
    def update_interval_seconds(self) -> float | None:
        if self.update_interval is None:
            return None
        return self.update_interval / 1000.0

    def to_file_dict(self) -> dict[str, object]:
        """Serialize with the file's key names, omitting unset optionals."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RuntimeSettings(BaseSettings):
    """Process-level knobs that do not belong in the project file."""

    model_config = SettingsConfigDict(
        env_prefix="OPENAPI_TS_SYNC_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    host: str = Field(
        default="0.0.0.0",
        min_length=1,
        description="Interface the types server binds to.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for fetching the OpenAPI document (seconds).",
    )
    user_agent: str = Field(
        default="openapi-ts-sync/0.1",
        min_length=1,
        description="User-Agent sent to the spec source.",
    )
    generator_command: str = Field(
        default=DEFAULT_GENERATOR_COMMAND,
        min_length=1,
        description="Generator command; `{input}` and `{output}` are substituted.",
    )
    generator_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound for one generator invocation (seconds).",
    )
    watch_debounce_ms: int = Field(
        default=1600,
        ge=0,
        description="Changes within this window are grouped into one trigger.",
    )
    shutdown_grace_seconds: float | None = Field(
        default=30.0,
        ge=0,
        description="How long shutdown waits for an in-flight run; None waits forever.",
    )


def format_validation_errors(exc: ValidationError) -> list[str]:
    problems: list[str] = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        problems.append(f"{location}: {err.get('msg', 'invalid value')}")
    return problems


def parse_config(data: object) -> SyncConfig:
    """Validate an already-decoded config document."""

    if not isinstance(data, dict):
        raise ConfigError("Invalid configuration", problems=["<root>: expected a JSON object"])
    try:
        return SyncConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError("Invalid configuration", problems=format_validation_errors(exc)) from exc


def load_config(path: Path | str = CONFIG_FILE_NAME) -> SyncConfig:
    """Read and validate the project config file.

    Raises `ConfigError` when the file is missing, unreadable, not JSON or
    does not satisfy the schema.
    """

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Configuration file {config_path} not found")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Error reading configuration file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Configuration file {config_path} is not valid JSON: {exc}") from exc
    return parse_config(data)


def check_watch_dir(config: SyncConfig) -> None:
    """In watch mode the directory must exist before the service starts."""

    if config.trigger_mode is not TriggerMode.WATCH:
        return
    if not config.watch_path.is_dir():
        raise ConfigError(
            "Invalid configuration",
            problems=[f"WATCH_DIR: {config.watch_path} is not a directory"],
        )
