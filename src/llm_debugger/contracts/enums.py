"""Status codes, modes, and kinds shared across the debugger's subsystems.

Every enum here crosses a boundary: producers, the buffering pipeline, the
transport, and the collector all agree on these values. Values are the
wire strings used by the in-page debugger, so ``EntryType.RESOURCE_CHECK``
serializes as ``"resourceCheck"``.
"""

from enum import StrEnum


class EntryType(StrEnum):
    """Discriminator carried by every log entry.

    The buffer never inspects this value; only producers and the collector do.
    """

    CONSOLE = "console"
    NETWORK = "network"
    RESOURCE = "resource"
    RESOURCE_CHECK = "resourceCheck"
    ERROR = "error"


class LogLevel(StrEnum):
    """Console levels a session can capture.

    Mirrors the three intercepted console methods: log -> DEBUG,
    warn -> WARNING, error -> ERROR.
    """

    DEBUG = "DEBUG"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RunState(StrEnum):
    """Lifecycle state of a DebuggerSession."""

    STOPPED = "stopped"
    RUNNING = "running"


class FlushTrigger(StrEnum):
    """What caused a flush.

    Values:
        SIZE: Admission would have pushed the buffer over capacity
        TIMER: Periodic flush interval elapsed
        VISIBILITY: Page became hidden
        PAGEHIDE: Page is being hidden/navigated away from
        BEFOREUNLOAD: Page is about to unload
        STOP: Final flush performed by stop()
        MANUAL: Explicit flush() call from the host
    """

    SIZE = "size"
    TIMER = "timer"
    VISIBILITY = "visibility"
    PAGEHIDE = "pagehide"
    BEFOREUNLOAD = "beforeunload"
    STOP = "stop"
    MANUAL = "manual"


class LifecycleEvent(StrEnum):
    """Page lifecycle events that request a flush."""

    VISIBILITY_CHANGE = "visibilitychange"
    PAGE_HIDE = "pagehide"
    BEFORE_UNLOAD = "beforeunload"


class DiagnosticKind(StrEnum):
    """Categories reported on the diagnostic channel.

    None of these interrupt the host: each is recorded and the pipeline
    carries on.
    """

    CAPACITY_VIOLATION = "capacity_violation"
    SERIALIZATION_FAILURE = "serialization_failure"
    TRANSPORT_FAILURE = "transport_failure"
    CONFIGURATION_FAILURE = "configuration_failure"
    PRODUCER_FAILURE = "producer_failure"


class DeliveryOutcome(StrEnum):
    """Result of handing one batch to the transport.

    The outcome is informational only. A batch is considered gone once the
    transport has been invoked, whatever the outcome.
    """

    PRIMARY = "primary"
    FALLBACK = "fallback"
    FAILED = "failed"
    EMPTY = "empty"
