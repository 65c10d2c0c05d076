# src/llm_debugger/pipeline/diagnostics.py
"""Diagnostic channel for the pipeline's own failures.

Capacity violations, serialization failures, transport failures, producer
failures, and configuration failures are recorded here instead of being
raised. Records are kept in a bounded deque and logged through structlog
under the ``llm_debugger`` namespace, which the console producer never
captures.
"""

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from llm_debugger.contracts.entries import utc_timestamp
from llm_debugger.contracts.enums import DiagnosticKind

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DiagnosticRecord:
    """One reported failure."""

    kind: DiagnosticKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)


DiagnosticListener = Callable[[DiagnosticRecord], None]


class Diagnostics:
    """Bounded, thread-safe record of pipeline failures.

    Thread Safety:
        report() may be called from producer threads, the timer thread,
        and transport worker threads. Record storage and counters are
        guarded by an internal lock; listeners run outside it.

    Example:
        diagnostics = Diagnostics()
        diagnostics.report(DiagnosticKind.CAPACITY_VIOLATION, "Entry too large", size_bytes=80)
        assert diagnostics.count(DiagnosticKind.CAPACITY_VIOLATION) == 1
    """

    def __init__(self, max_records: int = 256) -> None:
        if max_records < 1:
            raise ValueError(f"max_records must be >= 1, got {max_records}")
        self._records: deque[DiagnosticRecord] = deque(maxlen=max_records)
        self._counts: dict[DiagnosticKind, int] = dict.fromkeys(DiagnosticKind, 0)
        self._listeners: list[DiagnosticListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: DiagnosticListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def report(self, kind: DiagnosticKind, message: str, **context: Any) -> DiagnosticRecord:
        """Record and log a failure.

        Never raises: a failing listener is logged and skipped.

        Args:
            kind: Failure category
            message: Human-readable description
            **context: Structured details (sizes, names, reasons)

        Returns:
            The stored record.
        """
        record = DiagnosticRecord(kind=kind, message=message, context=context)
        with self._lock:
            self._records.append(record)
            self._counts[kind] += 1
            listeners = list(self._listeners)

        logger.warning(message, diagnostic=kind.value, **context)

        for listener in listeners:
            try:
                listener(record)
            except Exception:
                logger.exception("Diagnostic listener failed", diagnostic=kind.value)
        return record

    @property
    def records(self) -> tuple[DiagnosticRecord, ...]:
        """Snapshot of retained records, oldest first."""
        with self._lock:
            return tuple(self._records)

    def count(self, kind: DiagnosticKind) -> int:
        """Total reports of one kind, including records evicted from the deque."""
        with self._lock:
            return self._counts[kind]

    @property
    def counts(self) -> dict[str, int]:
        with self._lock:
            return {kind.value: n for kind, n in self._counts.items()}

    @property
    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._counts = dict.fromkeys(DiagnosticKind, 0)
