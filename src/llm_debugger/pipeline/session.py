# src/llm_debugger/pipeline/session.py
"""DebuggerSession owns the buffer, the flush triggers, and the producers.

State machine:
    Stopped --start()--> Running --stop()--> Stopped

start() resolves configuration, builds the buffer and transport, starts
every enabled producer, arms the flush timer, registers the lifecycle
listeners, and only then enters Running. stop() undoes that in reverse and
sends one final batch.

Thread Safety:
    Producers submit from arbitrary threads and the timer fires on its own
    thread, so every buffer and run-state mutation happens under one
    re-entrant lock. The size-triggered flush runs inside admit() while that
    lock is held, which is why it must be re-entrant. Batches are handed to
    the transport under the lock as well; the transport never waits on the
    network, and doing so keeps batches leaving in submission order.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from functools import partial
from pathlib import Path
from typing import Any

import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import ConsoleEntry, LogEntry
from llm_debugger.contracts.enums import (
    DeliveryOutcome,
    DiagnosticKind,
    FlushTrigger,
    LifecycleEvent,
    RunState,
)
from llm_debugger.core.config import DebuggerSettings, resolve_settings
from llm_debugger.errors import ConfigurationError
from llm_debugger.pipeline.buffer import BoundedBuffer
from llm_debugger.pipeline.diagnostics import Diagnostics
from llm_debugger.pipeline.lifecycle import PageLifecycle
from llm_debugger.pipeline.protocols import SnifferProtocol, TimerFactory, TimerProtocol, TransportProtocol
from llm_debugger.pipeline.serialization import serialize_entry
from llm_debugger.pipeline.timer import RepeatingTimer
from llm_debugger.pipeline.transport import create_transport

logger = structlog.get_logger(__name__)

_DEFAULT_GRACE_S = 2.0


class DebuggerSession:
    """Lifecycle controller for one debugger session.

    Failure handling:
    - Invalid configuration leaves the session Stopped (start() returns False)
    - A producer that fails to configure or start is reported and skipped
    - submit() never raises into the producer that called it
    - Transport failures are reported, never retried

    Example:
        session = DebuggerSession("?buffer_size=64&sniffers=console", sniffers=[ConsoleSniffer()])
        session.start()
        session.submit(entry)
        session.flush()
        session.close()
    """

    def __init__(
        self,
        settings: DebuggerSettings | Mapping[str, Any] | str | Path | None = None,
        *,
        sniffers: Iterable[SnifferProtocol] = (),
        transport: TransportProtocol | None = None,
        page: PageLifecycle | None = None,
        timer_factory: TimerFactory = RepeatingTimer,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        """Initialize a Stopped session.

        Args:
            settings: Any source accepted by resolve_settings(). Resolved on
                every start(), not here.
            sniffers: Producer instances; enabled_sources selects among them
            transport: Injected transport. When None, start() builds one
                from configuration.
            page: Lifecycle event hub (a private one is created if omitted)
            timer_factory: Builds the periodic flush timer
            diagnostics: Shared diagnostic channel

        Raises:
            ValueError: If two producers share a name.
        """
        self._settings_source = settings
        self._sniffers: dict[str, SnifferProtocol] = {}
        for sniffer in sniffers:
            if sniffer.name in self._sniffers:
                raise ValueError(f"Duplicate sniffer name '{sniffer.name}'")
            self._sniffers[sniffer.name] = sniffer
        self._injected_transport = transport
        self._transport: TransportProtocol | None = transport
        self.page = page if page is not None else PageLifecycle()
        self._timer_factory = timer_factory
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

        self._lock = threading.RLock()
        self._state = RunState.STOPPED
        self._config: RuntimeDebuggerConfig | None = None
        self._buffer: BoundedBuffer | None = None
        self._timer: TimerProtocol | None = None
        self._active_sniffers: list[SnifferProtocol] = []
        self._listeners: list[tuple[LifecycleEvent, Any]] = []

        self._entries_submitted = 0
        self._entries_admitted = 0
        self._entries_filtered = 0
        self._batches: dict[FlushTrigger, int] = dict.fromkeys(FlushTrigger, 0)
        self._outcomes: dict[DeliveryOutcome, int] = dict.fromkeys(DeliveryOutcome, 0)

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """Enter Running. No-op (returns True) if already Running.

        Returns:
            False if configuration could not be resolved; the session then
            stays Stopped and a configuration_failure diagnostic is recorded.
        """
        with self._lock:
            if self._state is RunState.RUNNING:
                return True

            try:
                settings = resolve_settings(self._settings_source)
                config = RuntimeDebuggerConfig.from_settings(settings, self._sniffers.keys())
            except (ConfigurationError, ValueError) as e:
                self.diagnostics.report(
                    DiagnosticKind.CONFIGURATION_FAILURE,
                    "Debugger configuration invalid, staying stopped",
                    reason=str(e),
                )
                return False

            self._config = config
            if self._transport is None:
                self._transport = create_transport(config, self.diagnostics)
            self._buffer = BoundedBuffer(
                config.capacity_bytes,
                on_overflow=self._on_overflow,
                serializer=partial(serialize_entry, diagnostics=self.diagnostics),
                diagnostics=self.diagnostics,
            )

            for name, sniffer in self._sniffers.items():
                if name not in config.enabled_sources:
                    continue
                try:
                    sniffer.configure(config.options_for(name))
                    sniffer.start(self.submit, config)
                except Exception as e:
                    self.diagnostics.report(
                        DiagnosticKind.PRODUCER_FAILURE,
                        "Sniffer failed to start, skipped",
                        sniffer=name,
                        error=str(e) or type(e).__name__,
                    )
                    continue
                self._active_sniffers.append(sniffer)

            if config.flush_interval_ms > 0:
                self._timer = self._timer_factory(config.flush_interval_s, self._on_timer)
                self._timer.start()

            self._listeners = [
                (LifecycleEvent.VISIBILITY_CHANGE, self._on_visibility_change),
                (LifecycleEvent.PAGE_HIDE, self._on_page_hide),
                (LifecycleEvent.BEFORE_UNLOAD, self._on_before_unload),
            ]
            for event, listener in self._listeners:
                self.page.add_listener(event, listener)

            self._state = RunState.RUNNING

        logger.info(
            "Debugger started",
            endpoint=config.endpoint,
            capacity_bytes=config.capacity_bytes,
            flush_interval_ms=config.flush_interval_ms,
            sniffers=[s.name for s in self._active_sniffers],
        )
        return True

    def stop(self) -> None:
        """Enter Stopped, sending whatever is buffered. No-op if Stopped.

        In-flight sends are not cancelled; they complete or fail on their own.
        """
        with self._lock:
            if self._state is RunState.STOPPED:
                return

            for sniffer in reversed(self._active_sniffers):
                try:
                    sniffer.stop()
                except Exception as e:
                    self.diagnostics.report(
                        DiagnosticKind.PRODUCER_FAILURE,
                        "Sniffer failed to stop",
                        sniffer=sniffer.name,
                        error=str(e) or type(e).__name__,
                    )
            self._active_sniffers = []

            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

            for event, listener in self._listeners:
                self.page.remove_listener(event, listener)
            self._listeners = []

            self._flush_locked(FlushTrigger.STOP)
            self._state = RunState.STOPPED
            self._buffer = None

        logger.info("Debugger stopped")

    def close(self) -> None:
        """Stop, then give in-flight batches the teardown grace period."""
        self.stop()
        with self._lock:
            transport = self._transport
            grace = self._config.teardown_grace_s if self._config is not None else _DEFAULT_GRACE_S
            if self._injected_transport is None:
                # A restarted session builds a fresh transport
                self._transport = None
        if transport is not None:
            transport.close(grace)

    # -------------------------------------------------------------------------
    # Producer entry point
    # -------------------------------------------------------------------------

    def submit(self, entry: LogEntry) -> None:
        """Offer one entry to the buffer.

        Safe to call at any time from any thread. Entries submitted while
        Stopped are dropped silently. Never raises.
        """
        if self._state is not RunState.RUNNING:
            return
        try:
            with self._lock:
                if self._state is not RunState.RUNNING or self._buffer is None or self._config is None:
                    return
                self._entries_submitted += 1
                if isinstance(entry, ConsoleEntry) and entry.level not in self._config.enabled_levels:
                    self._entries_filtered += 1
                    return
                if self._buffer.admit(entry):
                    self._entries_admitted += 1
        except Exception as e:
            self.diagnostics.report(
                DiagnosticKind.SERIALIZATION_FAILURE,
                "Entry could not be admitted",
                error=str(e) or type(e).__name__,
            )

    # -------------------------------------------------------------------------
    # Flush triggers
    # -------------------------------------------------------------------------

    def flush(self, trigger: FlushTrigger = FlushTrigger.MANUAL) -> DeliveryOutcome:
        """Drain the buffer and send its contents as one batch.

        Returns:
            EMPTY if Stopped or nothing was buffered (no transport call),
            otherwise the transport's outcome.
        """
        with self._lock:
            if self._state is not RunState.RUNNING:
                return DeliveryOutcome.EMPTY
            return self._flush_locked(trigger)

    def _flush_locked(self, trigger: FlushTrigger) -> DeliveryOutcome:
        if self._buffer is None:
            return DeliveryOutcome.EMPTY
        batch = self._buffer.drain()
        if not batch:
            return DeliveryOutcome.EMPTY
        return self._dispatch(batch, trigger)

    def _dispatch(self, batch: list[str], trigger: FlushTrigger) -> DeliveryOutcome:
        self._batches[trigger] += 1
        if self._transport is None:
            outcome = DeliveryOutcome.FAILED
        else:
            try:
                outcome = self._transport.send(batch)
            except Exception as e:
                self.diagnostics.report(
                    DiagnosticKind.TRANSPORT_FAILURE,
                    "Transport raised, batch lost",
                    trigger=trigger.value,
                    entries=len(batch),
                    error=str(e) or type(e).__name__,
                )
                outcome = DeliveryOutcome.FAILED
        self._outcomes[outcome] += 1
        logger.debug(
            "Batch dispatched",
            trigger=trigger.value,
            entries=len(batch),
            outcome=outcome.value,
        )
        return outcome

    def _on_overflow(self, batch: list[str]) -> None:
        # Called from inside BoundedBuffer.admit(), lock already held
        self._dispatch(batch, FlushTrigger.SIZE)

    def _on_timer(self) -> None:
        self.flush(FlushTrigger.TIMER)

    def _on_visibility_change(self) -> None:
        if self.page.visibility_state == "hidden":
            self.flush(FlushTrigger.VISIBILITY)

    def _on_page_hide(self) -> None:
        self.flush(FlushTrigger.PAGEHIDE)

    def _on_before_unload(self) -> None:
        self.flush(FlushTrigger.BEFOREUNLOAD)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    @property
    def config(self) -> RuntimeDebuggerConfig | None:
        """Configuration resolved by the most recent successful start()."""
        return self._config

    @property
    def buffered_bytes(self) -> int:
        with self._lock:
            return self._buffer.total_bytes if self._buffer is not None else 0

    @property
    def buffered_count(self) -> int:
        with self._lock:
            return len(self._buffer) if self._buffer is not None else 0

    @property
    def sniffer_names(self) -> tuple[str, ...]:
        return tuple(self._sniffers)

    @property
    def active_sniffer_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(s.name for s in self._active_sniffers)

    def get_sniffer(self, name: str) -> SnifferProtocol | None:
        """Return the registered producer called name, if any."""
        return self._sniffers.get(name)

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Counters for operational monitoring.

        Returns:
            Dict with keys:
            - state: "running" or "stopped"
            - entries_submitted: Entries seen while Running
            - entries_admitted: Entries that made it into the buffer
            - entries_filtered: Console entries below the enabled levels
            - entries_rejected: Entries discarded as larger than capacity
            - buffered_bytes / buffered_entries: Current buffer contents
            - batches: Batches sent per trigger
            - outcomes: Batches per delivery outcome
            - diagnostics: Reports per diagnostic kind
        """
        with self._lock:
            return {
                "state": self._state.value,
                "entries_submitted": self._entries_submitted,
                "entries_admitted": self._entries_admitted,
                "entries_filtered": self._entries_filtered,
                "entries_rejected": self.diagnostics.count(DiagnosticKind.CAPACITY_VIOLATION),
                "buffered_bytes": self._buffer.total_bytes if self._buffer is not None else 0,
                "buffered_entries": len(self._buffer) if self._buffer is not None else 0,
                "batches": {trigger.value: n for trigger, n in self._batches.items()},
                "outcomes": {outcome.value: n for outcome, n in self._outcomes.items()},
                "diagnostics": self.diagnostics.counts,
            }
