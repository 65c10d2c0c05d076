# src/llm_debugger/pipeline/lifecycle.py
"""Page lifecycle events for a non-browser host.

PageLifecycle stands in for the document: it tracks a visibility state and
dispatches visibilitychange, pagehide and beforeunload to registered
listeners. A process has no page to hide, so teardown is modelled by
register_process_teardown(): at interpreter exit it calls unload(), which
dispatches the events in browser order, and then closes the session so the
last batch gets a bounded grace period to leave.
"""

from __future__ import annotations

import atexit
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

import structlog

from llm_debugger.contracts.enums import LifecycleEvent

if TYPE_CHECKING:
    from llm_debugger.pipeline.session import DebuggerSession

logger = structlog.get_logger(__name__)

VisibilityState = Literal["visible", "hidden"]
Listener = Callable[[], None]


class PageLifecycle:
    """Event hub for lifecycle listeners.

    Listener exceptions are logged and never propagate to the code that
    dispatched the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[LifecycleEvent, list[Listener]] = {event: [] for event in LifecycleEvent}
        self._visibility: VisibilityState = "visible"
        self._lock = threading.Lock()

    def add_listener(self, event: LifecycleEvent, listener: Listener) -> None:
        with self._lock:
            self._listeners[event].append(listener)

    def remove_listener(self, event: LifecycleEvent, listener: Listener) -> None:
        """Remove a listener. Removing one that is not registered is a no-op."""
        with self._lock:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

    def listener_count(self, event: LifecycleEvent) -> int:
        with self._lock:
            return len(self._listeners[event])

    def dispatch(self, event: LifecycleEvent) -> None:
        with self._lock:
            listeners = list(self._listeners[event])
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Lifecycle listener failed", lifecycle_event=event.value)

    @property
    def visibility_state(self) -> VisibilityState:
        return self._visibility

    def set_visibility(self, state: VisibilityState) -> None:
        """Change visibility; dispatches visibilitychange only on an actual change."""
        if state not in ("visible", "hidden"):
            raise ValueError(f"visibility must be 'visible' or 'hidden', got {state!r}")
        with self._lock:
            if state == self._visibility:
                return
            self._visibility = state
        self.dispatch(LifecycleEvent.VISIBILITY_CHANGE)

    def unload(self) -> None:
        """Dispatch the teardown sequence: beforeunload, pagehide, then hidden."""
        self.dispatch(LifecycleEvent.BEFORE_UNLOAD)
        self.dispatch(LifecycleEvent.PAGE_HIDE)
        self.set_visibility("hidden")


def register_process_teardown(session: DebuggerSession, page: PageLifecycle) -> Callable[[], None]:
    """Flush and close session when the interpreter exits.

    Returns:
        Callable that unregisters the hook.
    """

    def _teardown() -> None:
        try:
            page.unload()
            session.close()
        except Exception:
            logger.exception("Debugger teardown failed")

    atexit.register(_teardown)

    def _unregister() -> None:
        atexit.unregister(_teardown)

    return _unregister
