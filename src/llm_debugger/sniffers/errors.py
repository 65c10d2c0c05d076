# src/llm_debugger/sniffers/errors.py
"""Error producer: uncaught exceptions and unhandled async failures.

window.onerror maps onto sys.excepthook and threading.excepthook;
unhandledrejection maps onto an asyncio loop's exception handler, installed
per loop with watch_loop(). Previous hooks are always still called, and
they are restored on stop() if nothing replaced ours in the meantime.
"""

from __future__ import annotations

import asyncio
import sys
import threading
import traceback
from collections.abc import Callable
from types import TracebackType
from typing import Any

import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import ErrorEntry, utc_timestamp
from llm_debugger.errors import SnifferError
from llm_debugger.pipeline.protocols import SubmitFn

logger = structlog.get_logger(__name__)

ExceptionHandler = Callable[[asyncio.AbstractEventLoop, dict[str, Any]], object] | None


def _location(tb: TracebackType | None) -> tuple[str | None, int | None, int | None]:
    """File, line and 1-based column of the innermost frame."""
    if tb is None:
        return None, None, None
    frames = traceback.extract_tb(tb)
    if not frames:
        return None, None, None
    innermost = frames[-1]
    column = innermost.colno + 1 if innermost.colno is not None else None
    return innermost.filename, innermost.lineno, column


def build_error_entry(sub_type: str, error: BaseException, message: str | None = None) -> ErrorEntry:
    """Build an error entry from an exception and its traceback."""
    file, line, column = _location(error.__traceback__)
    summary = "".join(traceback.format_exception_only(type(error), error)).strip()
    return ErrorEntry(
        timestamp=utc_timestamp(),
        sub_type=sub_type,
        message=f"{message}: {summary}" if message else summary,
        stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        file=file,
        line=line,
        column=column,
    )


class ErrorSniffer:
    """Capture uncaught exceptions as ``error`` entries.

    Sub types:
        uncaught: main-thread exception reaching sys.excepthook
        thread: exception escaping a threading.Thread
        unhandledrejection: exception reported by a watched asyncio loop
    """

    _name = "error"

    def __init__(self) -> None:
        self._submit: SubmitFn | None = None
        self._previous_excepthook: Any = None
        self._previous_threading_excepthook: Any = None
        self._watched_loops: list[tuple[asyncio.AbstractEventLoop, ExceptionHandler]] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        return self._submit is not None

    def configure(self, options: dict[str, Any]) -> None:
        if options:
            raise SnifferError(self._name, f"Unknown options {sorted(options)}. This sniffer takes no options")

    def start(self, submit: SubmitFn, config: RuntimeDebuggerConfig) -> None:
        with self._lock:
            if self._submit is not None:
                return
            self._submit = submit
            self._previous_excepthook = sys.excepthook
            self._previous_threading_excepthook = threading.excepthook
            sys.excepthook = self._excepthook
            threading.excepthook = self._threading_excepthook

    def stop(self) -> None:
        with self._lock:
            if self._submit is None:
                return
            self._submit = None
            if sys.excepthook == self._excepthook:
                sys.excepthook = self._previous_excepthook
            if threading.excepthook == self._threading_excepthook:
                threading.excepthook = self._previous_threading_excepthook
            watched = self._watched_loops
            self._watched_loops = []
        for loop, previous in watched:
            if not loop.is_closed():
                loop.set_exception_handler(previous)

    def watch_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Report exceptions the loop would otherwise only log.

        The loop's previous handler (or its default handler) still runs.
        """
        previous = loop.get_exception_handler()

        def handler(handled_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            self._loop_exception(handled_loop, context, previous)

        with self._lock:
            self._watched_loops.append((loop, previous))
        loop.set_exception_handler(handler)

    def _emit(self, entry: ErrorEntry) -> None:
        submit = self._submit
        if submit is not None:
            submit(entry)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc.__traceback__ is None and tb is not None:
                exc = exc.with_traceback(tb)
            self._emit(build_error_entry("uncaught", exc))
        finally:
            previous = self._previous_excepthook or sys.__excepthook__
            previous(exc_type, exc, tb)

    def _threading_excepthook(self, args: threading.ExceptHookArgs) -> None:
        try:
            if args.exc_value is not None and args.exc_type is not SystemExit:
                thread_name = args.thread.name if args.thread is not None else None
                self._emit(build_error_entry("thread", args.exc_value, f"Exception in thread {thread_name}"))
        finally:
            previous = self._previous_threading_excepthook or threading.__excepthook__
            previous(args)

    def _loop_exception(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
        previous: ExceptionHandler,
    ) -> None:
        try:
            error = context.get("exception")
            message = context.get("message", "Unhandled exception in event loop")
            if isinstance(error, BaseException):
                self._emit(build_error_entry("unhandledrejection", error, message))
            else:
                self._emit(ErrorEntry(timestamp=utc_timestamp(), sub_type="unhandledrejection", message=message))
        finally:
            if previous is not None:
                previous(loop, context)
            else:
                loop.default_exception_handler(context)
