"""Runtime configuration consumed by the DebuggerSession.

RuntimeDebuggerConfig is the immutable, fully-resolved form of
DebuggerSettings. Settings are what a user writes (query string, mapping,
YAML); the runtime config is what the session runs with. It is built once
at start() and never mutated while the session is Running.

Field Origins (all from DebuggerSettings):
    - endpoint: settings.endpoint (direct)
    - capacity_bytes: settings.buffer_capacity_bytes (direct)
    - flush_interval_ms: settings.flush_interval_ms (direct)
    - enabled_levels: settings.enabled_levels (direct)
    - enabled_sources: settings.enabled_sources resolved against the
      registered producer names (None -> all registered)
    - batch_encoding, beacon_max_bytes, teardown_grace_ms: direct
    - sniffer_configs: settings.sniffers converted to SnifferConfig tuples
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from llm_debugger.contracts.enums import LogLevel

if TYPE_CHECKING:
    from llm_debugger.core.config import DebuggerSettings


@dataclass(frozen=True, slots=True)
class SnifferConfig:
    """Options for one producer, keyed by the producer's registered name."""

    name: str
    options: dict[str, Any]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("sniffer name cannot be empty")


@dataclass(frozen=True, slots=True)
class RuntimeDebuggerConfig:
    """Resolved configuration for one debugger session."""

    endpoint: str
    capacity_bytes: int
    flush_interval_ms: int
    enabled_levels: frozenset[LogLevel]
    enabled_sources: frozenset[str]
    batch_encoding: Literal["json", "text"] = "json"
    beacon_max_bytes: int = 64 * 1024
    teardown_grace_ms: int = 2000
    sniffer_configs: tuple[SnifferConfig, ...] = ()

    def __post_init__(self) -> None:
        if self.capacity_bytes < 1:
            raise ValueError(f"capacity_bytes must be >= 1, got {self.capacity_bytes}")
        if self.flush_interval_ms < 0:
            raise ValueError(f"flush_interval_ms must be >= 0, got {self.flush_interval_ms}")

    @property
    def flush_interval_s(self) -> float:
        return self.flush_interval_ms / 1000

    @property
    def teardown_grace_s(self) -> float:
        return self.teardown_grace_ms / 1000

    def options_for(self, sniffer_name: str) -> dict[str, Any]:
        """Return the configured options for a producer (empty if none)."""
        for sniffer_config in self.sniffer_configs:
            if sniffer_config.name == sniffer_name:
                return dict(sniffer_config.options)
        return {}

    @classmethod
    def from_settings(
        cls,
        settings: DebuggerSettings,
        available_sources: Iterable[str],
    ) -> RuntimeDebuggerConfig:
        """Factory from DebuggerSettings.

        Source names are matched case-insensitively and normalised to the
        registered spelling, so ``sniffers=resourcecheck`` still enables the
        ``resourceCheck`` producer.

        Args:
            settings: Validated Pydantic settings model
            available_sources: Names of the registered producers

        Returns:
            RuntimeDebuggerConfig with mapped values

        Raises:
            ValueError: If a configured source or sniffer option block names
                a producer that is not registered
        """
        by_lower = {name.lower(): name for name in available_sources}

        if settings.enabled_sources is None:
            enabled_sources = frozenset(by_lower.values())
        else:
            unknown = sorted(name for name in settings.enabled_sources if name.lower() not in by_lower)
            if unknown:
                raise ValueError(f"Unknown sources {unknown}. Available sources: {sorted(by_lower.values())}")
            enabled_sources = frozenset(by_lower[name.lower()] for name in settings.enabled_sources)

        sniffer_configs = []
        for name, options in settings.sniffers.items():
            if name.lower() not in by_lower:
                raise ValueError(f"Options given for unknown sniffer '{name}'. Available sources: {sorted(by_lower.values())}")
            sniffer_configs.append(SnifferConfig(name=by_lower[name.lower()], options=dict(options)))

        return cls(
            endpoint=settings.endpoint,
            capacity_bytes=settings.buffer_capacity_bytes,
            flush_interval_ms=settings.flush_interval_ms,
            enabled_levels=frozenset(settings.enabled_levels),
            enabled_sources=enabled_sources,
            batch_encoding=settings.batch_encoding,
            beacon_max_bytes=settings.beacon_max_bytes,
            teardown_grace_ms=settings.teardown_grace_ms,
            sniffer_configs=tuple(sniffer_configs),
        )
