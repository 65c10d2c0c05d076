# src/llm_debugger/pipeline/__init__.py
"""Buffering and delivery pipeline.

Components:
- buffer: BoundedBuffer, byte-capped sequence of serialized entries
- serialization: serialize_entry(), encode_batch()
- transport: BeaconSender / KeepAliveSender tiers behind Transport
- timer: RepeatingTimer (production) and ManualTimer (tests)
- lifecycle: PageLifecycle and the process-exit teardown hook
- diagnostics: Diagnostics, the channel for the pipeline's own failures
- session: DebuggerSession, the start/stop state machine
- factory: producer discovery, create_session(), install()

The factory is not re-exported here: it imports the built-in producers,
which themselves depend on this package.
"""

from llm_debugger.pipeline.buffer import BoundedBuffer
from llm_debugger.pipeline.diagnostics import DiagnosticRecord, Diagnostics
from llm_debugger.pipeline.lifecycle import PageLifecycle, register_process_teardown
from llm_debugger.pipeline.protocols import SnifferProtocol, TransportProtocol
from llm_debugger.pipeline.serialization import byte_length, encode_batch, serialize_entry
from llm_debugger.pipeline.session import DebuggerSession
from llm_debugger.pipeline.timer import ManualTimer, RepeatingTimer
from llm_debugger.pipeline.transport import BeaconSender, KeepAliveSender, Transport, create_transport

__all__ = [
    "BeaconSender",
    "BoundedBuffer",
    "DebuggerSession",
    "DiagnosticRecord",
    "Diagnostics",
    "KeepAliveSender",
    "ManualTimer",
    "PageLifecycle",
    "RepeatingTimer",
    "SnifferProtocol",
    "Transport",
    "TransportProtocol",
    "byte_length",
    "create_transport",
    "encode_batch",
    "register_process_teardown",
    "serialize_entry",
]
