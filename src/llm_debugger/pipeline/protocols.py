# src/llm_debugger/pipeline/protocols.py
"""Protocol definitions for the pipeline's collaborators.

Producers (sniffers) feed entries in; transports carry batches out; timers
drive periodic flushes. Each is injectable so tests can substitute
deterministic doubles.
"""

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from llm_debugger.contracts.config import RuntimeDebuggerConfig
    from llm_debugger.contracts.entries import LogEntry
    from llm_debugger.contracts.enums import DeliveryOutcome

SubmitFn = Callable[["LogEntry"], None]


@runtime_checkable
class SnifferProtocol(Protocol):
    """Protocol for entry producers.

    Producers are discovered via the llm_debugger_get_sniffers hook and
    wired to the session's submit function on start().

    Lifecycle:
        1. Discovery: hook returns producer classes
        2. Instantiation: the factory creates one instance per class
        3. Configuration: configure() called with the producer's options
        4. Operation: start() hands over submit; entries flow until stop()
        5. Shutdown: stop() detaches from whatever was being observed

    Error handling:
        - configure() MUST raise SnifferError on invalid options
        - while running, the producer MUST NOT raise into the host program
        - start() and stop() MUST be idempotent
    """

    @property
    def name(self) -> str:
        """Producer name used in enabled_sources and per-producer options.

            sniffers: console,fetch
        """
        ...

    def configure(self, options: dict[str, Any]) -> None:
        """Apply producer-specific options.

        Called on every session start(), before start().

        Raises:
            SnifferError: If an option is unknown or invalid
        """
        ...

    def start(self, submit: SubmitFn, config: "RuntimeDebuggerConfig") -> None:
        """Begin emitting entries through submit."""
        ...

    def stop(self) -> None:
        """Stop emitting entries and release observation hooks."""
        ...


@runtime_checkable
class TransportProtocol(Protocol):
    """Carries drained batches to the collector.

    send() must never raise and never block on network completion.
    """

    def send(self, batch: Sequence[str]) -> "DeliveryOutcome":
        ...

    def close(self, timeout: float | None = None) -> None:
        ...


class PrimarySender(Protocol):
    """Survive-navigation primitive: synchronous accept/reject, async delivery."""

    def offer(self, payload: bytes, content_type: str) -> bool:
        ...

    def close(self, timeout: float | None = None) -> None:
        ...


class FallbackSender(Protocol):
    """Keep-alive request issued when the primary sender rejects a batch."""

    def send(self, payload: bytes, content_type: str) -> None:
        ...

    def close(self, timeout: float | None = None) -> None:
        ...


class TimerProtocol(Protocol):
    def start(self) -> None:
        ...

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerProtocol]
