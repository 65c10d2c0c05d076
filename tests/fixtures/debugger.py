# tests/fixtures/debugger.py
"""Test doubles for the debugger pipeline."""

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import ConsoleEntry, LogEntry
from llm_debugger.contracts.enums import DeliveryOutcome, EntryType, LogLevel
from llm_debugger.errors import SnifferError
from llm_debugger.pipeline.protocols import SubmitFn
from llm_debugger.pipeline.serialization import byte_length, serialize_entry
from llm_debugger.pipeline.timer import ManualTimer

FIXED_TIMESTAMP = "2025-01-01T00:00:00.000Z"


def runtime_config(**overrides: Any) -> RuntimeDebuggerConfig:
    """RuntimeDebuggerConfig with test defaults (no timer, every level)."""
    values: dict[str, Any] = {
        "endpoint": "http://collector.test/logs",
        "capacity_bytes": 1024,
        "flush_interval_ms": 0,
        "enabled_levels": frozenset(LogLevel),
        "enabled_sources": frozenset(),
    }
    values.update(overrides)
    return RuntimeDebuggerConfig(**values)


# =============================================================================
# Entries
# =============================================================================


@dataclass(frozen=True, slots=True)
class PayloadEntry(LogEntry):
    """Entry with a single padding field, for exact-size tests."""

    entry_type: ClassVar[EntryType] = EntryType.CONSOLE

    payload: str = ""


def console_entry(message: str = "hello", level: LogLevel = LogLevel.DEBUG) -> ConsoleEntry:
    return ConsoleEntry(timestamp=FIXED_TIMESTAMP, level=level, message=message)


def entry_of_size(size_bytes: int, fill: str = "x") -> PayloadEntry:
    """Build an entry whose serialized form is exactly size_bytes long."""
    base = byte_length(serialize_entry(PayloadEntry(timestamp=FIXED_TIMESTAMP)))
    if size_bytes < base:
        raise ValueError(f"smallest entry is {base} bytes, asked for {size_bytes}")
    return PayloadEntry(timestamp=FIXED_TIMESTAMP, payload=fill * (size_bytes - base))


def min_entry_size() -> int:
    return byte_length(serialize_entry(PayloadEntry(timestamp=FIXED_TIMESTAMP)))


# =============================================================================
# Transport
# =============================================================================


class RecordingTransport:
    """Transport double that records every batch it is handed."""

    def __init__(self, *, outcome: DeliveryOutcome = DeliveryOutcome.PRIMARY, fail: bool = False) -> None:
        self.outcome = outcome
        self.fail = fail
        self.batches: list[list[str]] = []
        self.close_calls: list[float | None] = []
        self._lock = threading.Lock()

    def send(self, batch: Sequence[str]) -> DeliveryOutcome:
        with self._lock:
            self.batches.append(list(batch))
        if self.fail:
            raise RuntimeError("Simulated transport failure")
        return self.outcome

    def close(self, timeout: float | None = None) -> None:
        self.close_calls.append(timeout)

    @property
    def send_count(self) -> int:
        return len(self.batches)


# =============================================================================
# Timer
# =============================================================================


class ManualTimerFactory:
    """timer_factory that hands out ManualTimers and remembers them."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, interval_s: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]


# =============================================================================
# Producers
# =============================================================================


class RecordingSniffer:
    """Producer double: records lifecycle calls and emits on demand."""

    def __init__(
        self,
        name: str,
        *,
        fail_configure: bool = False,
        fail_start: bool = False,
        fail_stop: bool = False,
    ) -> None:
        self._name = name
        self._fail_configure = fail_configure
        self._fail_start = fail_start
        self._fail_stop = fail_stop
        self.options: list[dict[str, Any]] = []
        self.start_count = 0
        self.stop_count = 0
        self.config: RuntimeDebuggerConfig | None = None
        self._submit: SubmitFn | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        return self._submit is not None

    def configure(self, options: dict[str, Any]) -> None:
        if self._fail_configure:
            raise SnifferError(self._name, "Simulated configure failure")
        self.options.append(options)

    def start(self, submit: SubmitFn, config: RuntimeDebuggerConfig) -> None:
        if self._fail_start:
            raise RuntimeError(f"Simulated start failure in {self._name}")
        self.start_count += 1
        self.config = config
        self._submit = submit

    def stop(self) -> None:
        self.stop_count += 1
        self._submit = None
        if self._fail_stop:
            raise RuntimeError(f"Simulated stop failure in {self._name}")

    def emit(self, entry: LogEntry) -> None:
        if self._submit is not None:
            self._submit(entry)
