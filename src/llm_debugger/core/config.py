# src/llm_debugger/core/config.py
"""
Configuration schema and loading for the debugger and its collector.

Uses Pydantic for validation with frozen (immutable) models. Debugger
settings can come from three places:
- a query string (the way the in-page script is configured:
  ``llm-debugger.js?buffer_size=64&level=ERROR,WARNING``)
- an injected mapping
- a YAML file
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal
from urllib.parse import parse_qs, urlsplit

import yaml
from pydantic import BaseModel, Field, field_validator

from llm_debugger.contracts.enums import LogLevel
from llm_debugger.errors import ConfigurationError

DEFAULT_ENDPOINT = "http://localhost:3006/logs"
DEFAULT_CAPACITY_BYTES = 150 * 1024
DEFAULT_FLUSH_INTERVAL_MS = 5000
DEFAULT_LOG_FILENAME = "llm-debugger-logs.txt"

# sendBeacon payloads above this are rejected synchronously by browsers
BEACON_MAX_PAYLOAD_BYTES = 64 * 1024

_KNOWN_LEVELS = frozenset(level.value for level in LogLevel)


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"'{key}' must be an integer, got {raw!r}") from None


class DebuggerSettings(BaseModel):
    """In-page debugger configuration.

    Example YAML:
        endpoint: http://localhost:3006/logs
        buffer_capacity_bytes: 65536
        flush_interval_ms: 2000
        enabled_levels: [ERROR, WARNING]
        enabled_sources: [console, fetch]
        sniffers:
          console:
            logger: myapp
    """

    model_config = {"frozen": True, "extra": "forbid"}

    auto_start: bool = Field(default=True, description="Start capturing as soon as the debugger is installed")
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="Collector URL batches are POSTed to")
    buffer_capacity_bytes: int = Field(
        default=DEFAULT_CAPACITY_BYTES,
        gt=0,
        description="Byte capacity of buffered, serialized entries",
    )
    flush_interval_ms: int = Field(
        default=DEFAULT_FLUSH_INTERVAL_MS,
        ge=0,
        description="Periodic flush interval; 0 disables the timer",
    )
    enabled_levels: frozenset[LogLevel] = Field(
        default=frozenset(LogLevel),
        description="Console levels to capture",
    )
    enabled_sources: frozenset[str] | None = Field(
        default=None,
        description="Producer names to enable; None enables every registered producer",
    )
    batch_encoding: Literal["json", "text"] = Field(
        default="json",
        description="'json' sends {messages: [...]}, 'text' sends newline-joined entries",
    )
    beacon_max_bytes: int = Field(
        default=BEACON_MAX_PAYLOAD_BYTES,
        gt=0,
        description="Largest payload the primary transport accepts",
    )
    teardown_grace_ms: int = Field(
        default=2000,
        ge=0,
        description="How long process teardown waits for in-flight batches",
    )
    sniffers: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-producer options keyed by producer name",
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"endpoint must be an absolute http(s) URL, got {v!r}")
        return v

    @field_validator("enabled_levels", mode="before")
    @classmethod
    def parse_levels(cls, v: Any) -> Any:
        """Accept comma strings and drop level names that are not captured."""
        if isinstance(v, str):
            v = _split_csv(v)
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(str(item).strip().upper() for item in v if str(item).strip().upper() in _KNOWN_LEVELS)
        return v

    @field_validator("enabled_sources", mode="before")
    @classmethod
    def parse_sources(cls, v: Any) -> Any:
        if isinstance(v, str):
            return frozenset(_split_csv(v))
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(str(item).strip() for item in v if str(item).strip())
        return v

    @classmethod
    def from_query_string(cls, query: str) -> "DebuggerSettings":
        """Build settings from the script's query string.

        Accepts either the bare query or the full script URL. Recognised
        keys: auto_start, buffer_size (KiB), endpoint, level, sniffers,
        send_interval (ms). Other keys are ignored.

        Raises:
            ValueError: If a numeric key is not an integer or the resulting
                settings fail validation (pydantic.ValidationError is a
                ValueError).
        """
        if "?" in query:
            query = query.split("?", 1)[1]
        query = query.split("#", 1)[0]
        # URLSearchParams.get() semantics: first occurrence wins
        params = {key: values[0] for key, values in parse_qs(query, keep_blank_values=True).items()}

        values: dict[str, Any] = {}
        if "auto_start" in params:
            values["auto_start"] = params["auto_start"].strip().lower() != "false"
        if "buffer_size" in params:
            values["buffer_capacity_bytes"] = _parse_int("buffer_size", params["buffer_size"]) * 1024
        if "endpoint" in params:
            values["endpoint"] = params["endpoint"]
        if "level" in params:
            values["enabled_levels"] = params["level"]
        if "sniffers" in params:
            values["enabled_sources"] = params["sniffers"]
        if "send_interval" in params:
            values["flush_interval_ms"] = _parse_int("send_interval", params["send_interval"])
        return cls.model_validate(values)

    @classmethod
    def from_yaml(cls, path: Path) -> "DebuggerSettings":
        """Load settings from a YAML mapping.

        Raises:
            OSError: If the file cannot be read
            yaml.YAMLError: If the file is not valid YAML
            ValueError: If the document is not a mapping or fails validation
        """
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(document).__name__}")
        return cls.model_validate(document)


def resolve_settings(source: "DebuggerSettings | Mapping[str, Any] | str | Path | None") -> DebuggerSettings:
    """Resolve any supported settings source into DebuggerSettings.

    Args:
        source: None (defaults), a DebuggerSettings, a mapping, a query
            string / script URL, or a Path to a YAML file.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: If the source cannot be parsed or validated.
    """
    try:
        if source is None:
            return DebuggerSettings()
        if isinstance(source, DebuggerSettings):
            return source
        if isinstance(source, Path):
            return DebuggerSettings.from_yaml(source)
        if isinstance(source, str):
            return DebuggerSettings.from_query_string(source)
        if isinstance(source, Mapping):
            return DebuggerSettings.model_validate(dict(source))
    except (ValueError, OSError, yaml.YAMLError) as e:
        raise ConfigurationError("settings", str(e)) from e
    raise ConfigurationError("settings", f"Unsupported settings source type {type(source).__name__}")


class CollectorSettings(BaseModel):
    """Collector (log file server) configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(default="127.0.0.1", description="Host address to bind to")
    port: int = Field(default=3006, ge=1, le=65535, description="Port to listen on")
    path: str = Field(default="/logs", description="Route that accepts POSTed batches")
    log_file: Path = Field(
        default_factory=lambda: Path.cwd() / DEFAULT_LOG_FILENAME,
        description="Append-only file receiving one line per entry",
    )
    allow_origins: tuple[str, ...] = Field(default=("*",), description="CORS origins allowed to POST")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"path must start with '/', got {v!r}")
        return v
