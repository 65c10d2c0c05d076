# tests/fixtures/__init__.py
"""Shared test doubles for llm-debugger tests.

Available doubles:
- RecordingTransport: records batches instead of sending them
- ManualTimerFactory: timer_factory producing ManualTimers
- RecordingSniffer: producer that emits on demand
"""

from tests.fixtures.debugger import (
    FIXED_TIMESTAMP,
    ManualTimerFactory,
    PayloadEntry,
    RecordingSniffer,
    RecordingTransport,
    console_entry,
    entry_of_size,
    min_entry_size,
    runtime_config,
)

__all__ = [
    "FIXED_TIMESTAMP",
    "ManualTimerFactory",
    "PayloadEntry",
    "RecordingSniffer",
    "RecordingTransport",
    "console_entry",
    "entry_of_size",
    "min_entry_size",
    "runtime_config",
]
