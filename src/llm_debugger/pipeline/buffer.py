# src/llm_debugger/pipeline/buffer.py
"""Byte-bounded buffer of serialized log entries.

Admission policy, in order:
1. If the entry would push the running total past capacity and the buffer
   is non-empty, drain the current contents and hand them to on_overflow
   before the new entry is considered.
2. If the entry on its own is larger than capacity it can never fit: it is
   discarded and reported as a capacity violation.
3. Otherwise the serialized entry is appended and its size added to the
   running total.

Checks 1 and 2 are deliberately separate. Merging them would send an
oversized entry's predecessors as a normal flush in some cases and not in
others.
"""

from collections.abc import Callable

import structlog

from llm_debugger.contracts.entries import LogEntry
from llm_debugger.contracts.enums import DiagnosticKind
from llm_debugger.pipeline.diagnostics import Diagnostics
from llm_debugger.pipeline.serialization import byte_length, serialize_entry

logger = structlog.get_logger(__name__)

OverflowHandler = Callable[[list[str]], None]
Serializer = Callable[[LogEntry], str]


class BoundedBuffer:
    """Ordered sequence of serialized entries with a byte capacity.

    Thread Safety:
        NOT thread-safe. The DebuggerSession serialises every admit() and
        drain() behind its own lock, including the re-entrant flush that
        on_overflow triggers.

    Example:
        buffer = BoundedBuffer(100, on_overflow=sent.append)
        buffer.admit(entry)
        batch = buffer.drain()
    """

    def __init__(
        self,
        capacity_bytes: int,
        *,
        on_overflow: OverflowHandler,
        serializer: Serializer = serialize_entry,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        """Initialize the buffer.

        Args:
            capacity_bytes: Maximum sum of encoded entry sizes held at once
            on_overflow: Receives the drained contents when an admission
                would exceed capacity
            serializer: Turns an entry into its wire text
            diagnostics: Where capacity violations are reported

        Raises:
            ValueError: If capacity_bytes < 1.
        """
        if capacity_bytes < 1:
            raise ValueError(f"capacity_bytes must be >= 1, got {capacity_bytes}")
        self._capacity_bytes = capacity_bytes
        self._on_overflow = on_overflow
        self._serializer = serializer
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._entries: list[str] = []
        self._total_bytes = 0
        self._rejected_count = 0

    def admit(self, entry: LogEntry) -> bool:
        """Serialize and admit one entry.

        Args:
            entry: Entry to admit

        Returns:
            True if the entry was buffered, False if it was discarded as
            larger than capacity.
        """
        text = self._serializer(entry)
        size = byte_length(text)

        if self._total_bytes + size > self._capacity_bytes and self._entries:
            logger.debug(
                "Buffer full, flushing before admission",
                buffered_bytes=self._total_bytes,
                incoming_bytes=size,
                capacity_bytes=self._capacity_bytes,
            )
            self._on_overflow(self.drain())

        if size > self._capacity_bytes:
            self._rejected_count += 1
            self._diagnostics.report(
                DiagnosticKind.CAPACITY_VIOLATION,
                "Entry larger than buffer capacity discarded",
                entry_type=str(entry.type) if isinstance(entry, LogEntry) else "unknown",
                size_bytes=size,
                capacity_bytes=self._capacity_bytes,
            )
            return False

        self._entries.append(text)
        self._total_bytes += size
        return True

    def drain(self) -> list[str]:
        """Take the full ordered contents and reset to empty.

        Returns:
            The serialized entries in admission order. Empty (with no side
            effect) if nothing is buffered.
        """
        if not self._entries:
            return []
        batch = self._entries
        self._entries = []
        self._total_bytes = 0
        return batch

    @property
    def capacity_bytes(self) -> int:
        return self._capacity_bytes

    @property
    def total_bytes(self) -> int:
        """Running total of encoded bytes currently held."""
        return self._total_bytes

    @property
    def entries(self) -> tuple[str, ...]:
        """Snapshot of buffered serialized entries."""
        return tuple(self._entries)

    @property
    def rejected_count(self) -> int:
        """Number of entries discarded for being larger than capacity."""
        return self._rejected_count

    def __len__(self) -> int:
        return len(self._entries)
