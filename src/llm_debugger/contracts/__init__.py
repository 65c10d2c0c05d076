"""Shared contracts for cross-boundary data types.

Entries, enums, and the runtime configuration cross the boundary between
producers, the buffering pipeline, and the collector, so they live here.
This package is a LEAF MODULE: it imports nothing from core/pipeline.

Import patterns:
    from llm_debugger.contracts import ConsoleEntry, LogLevel, RunState

    # Settings classes (pydantic) live in core
    from llm_debugger.core.config import DebuggerSettings
"""

from llm_debugger.contracts.config import RuntimeDebuggerConfig, SnifferConfig
from llm_debugger.contracts.entries import (
    ConsoleEntry,
    ErrorEntry,
    LogEntry,
    NetworkEntry,
    ResourceCheckEntry,
    ResourceEntry,
    utc_timestamp,
)
from llm_debugger.contracts.enums import (
    DeliveryOutcome,
    DiagnosticKind,
    EntryType,
    FlushTrigger,
    LifecycleEvent,
    LogLevel,
    RunState,
)

__all__ = [
    "ConsoleEntry",
    "DeliveryOutcome",
    "DiagnosticKind",
    "EntryType",
    "ErrorEntry",
    "FlushTrigger",
    "LifecycleEvent",
    "LogEntry",
    "LogLevel",
    "NetworkEntry",
    "ResourceCheckEntry",
    "ResourceEntry",
    "RunState",
    "RuntimeDebuggerConfig",
    "SnifferConfig",
    "utc_timestamp",
]
