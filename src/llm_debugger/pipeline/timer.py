# src/llm_debugger/pipeline/timer.py
"""Periodic flush trigger.

Production code uses RepeatingTimer (a daemon thread, the setInterval
analogue). Tests inject ManualTimer through the session's timer_factory to
advance time without sleep().
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)


class RepeatingTimer:
    """Calls callback every interval_s seconds until cancelled.

    A callback that raises is logged and the timer keeps running.
    cancel() never joins the thread, so it is safe to call from inside the
    callback itself (e.g. a timer-triggered flush that ends up stopping the
    session).
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], None],
        *,
        name: str = "llm-debugger-flush-timer",
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        self._interval_s = interval_s
        self._callback = callback
        self._name = name
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Arm the timer. Idempotent; a cancelled timer cannot be restarted."""
        if self._thread is not None or self._cancelled.is_set():
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("Flush timer callback failed", timer=self._name)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._cancelled.is_set()


class ManualTimer:
    """Timer driven by explicit advance() calls.

    Example:
        timers = []

        def factory(interval_s, callback):
            timer = ManualTimer(interval_s, callback)
            timers.append(timer)
            return timer

        session = DebuggerSession(settings, timer_factory=factory)
        session.start()
        timers[0].advance(5.0)  # fires once
    """

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self._callback = callback
        self._elapsed = 0.0
        self.started = False
        self.cancelled = False
        self.fire_count = 0

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def advance(self, seconds: float) -> int:
        """Move time forward, firing once per elapsed interval.

        Returns:
            Number of times the callback fired.
        """
        fired = 0
        if not self.active:
            return fired
        self._elapsed += seconds
        while self._elapsed >= self.interval_s and self.active:
            self._elapsed -= self.interval_s
            self.fire()
            fired += 1
        return fired

    def fire(self) -> None:
        """Fire the callback immediately, as if one interval elapsed."""
        if not self.active:
            return
        self.fire_count += 1
        self._callback()
