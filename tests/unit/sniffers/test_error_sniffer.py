# tests/unit/sniffers/test_error_sniffer.py
"""Tests for ErrorSniffer: excepthooks and asyncio loop handlers."""

import asyncio
import sys
import threading
from collections.abc import Iterator
from typing import Any

import pytest

from llm_debugger.contracts.entries import ErrorEntry, LogEntry
from llm_debugger.errors import SnifferError
from llm_debugger.sniffers.errors import ErrorSniffer, build_error_entry
from tests.fixtures.debugger import runtime_config


def _raise_and_catch(error: BaseException) -> BaseException:
    try:
        raise error
    except BaseException as e:
        return e


@pytest.fixture
def previous_hooks(monkeypatch: pytest.MonkeyPatch) -> dict[str, list[Any]]:
    """Replace the interpreter hooks with recorders for the test's duration."""
    calls: dict[str, list[Any]] = {"sys": [], "threading": []}
    monkeypatch.setattr(sys, "excepthook", lambda *args: calls["sys"].append(args))
    monkeypatch.setattr(threading, "excepthook", lambda args: calls["threading"].append(args))
    return calls


@pytest.fixture
def captured() -> list[LogEntry]:
    return []


@pytest.fixture
def sniffer(previous_hooks: dict[str, list[Any]], captured: list[LogEntry]) -> Iterator[ErrorSniffer]:
    instance = ErrorSniffer()
    instance.configure({})
    instance.start(captured.append, runtime_config())
    yield instance
    instance.stop()


class TestBuildErrorEntry:
    def test_location_and_stack(self) -> None:
        error = _raise_and_catch(KeyError("missing"))

        entry = build_error_entry("uncaught", error)

        assert entry.sub_type == "uncaught"
        assert entry.message == "KeyError: 'missing'"
        assert entry.file is not None and entry.file.endswith("test_error_sniffer.py")
        assert entry.line is not None
        assert entry.column is not None and entry.column >= 1
        assert entry.stack is not None and "Traceback" in entry.stack

    def test_message_prefix(self) -> None:
        entry = build_error_entry("thread", ValueError("x"), "Exception in thread worker")

        assert entry.message == "Exception in thread worker: ValueError: x"
        assert entry.file is None


class TestExcepthook:
    def test_uncaught_exception_captured_and_chained(
        self,
        sniffer: ErrorSniffer,
        captured: list[LogEntry],
        previous_hooks: dict[str, list[Any]],
    ) -> None:
        error = _raise_and_catch(RuntimeError("crash"))

        sys.excepthook(RuntimeError, error, error.__traceback__)

        entry = captured[0]
        assert isinstance(entry, ErrorEntry)
        assert entry.sub_type == "uncaught"
        assert entry.message == "RuntimeError: crash"
        assert len(previous_hooks["sys"]) == 1

    def test_previous_hook_runs_even_if_submit_fails(self, previous_hooks: dict[str, list[Any]]) -> None:
        def failing_submit(entry: LogEntry) -> None:
            raise RuntimeError("submit broke")

        sniffer = ErrorSniffer()
        sniffer.start(failing_submit, runtime_config())
        error = _raise_and_catch(ValueError("x"))
        try:
            with pytest.raises(RuntimeError, match="submit broke"):
                sys.excepthook(ValueError, error, error.__traceback__)
        finally:
            sniffer.stop()

        assert len(previous_hooks["sys"]) == 1

    def test_thread_exception_captured(
        self,
        sniffer: ErrorSniffer,
        captured: list[LogEntry],
        previous_hooks: dict[str, list[Any]],
    ) -> None:
        def target() -> None:
            raise ValueError("in worker")

        thread = threading.Thread(target=target, name="worker-1")
        thread.start()
        thread.join()

        entry = captured[0]
        assert isinstance(entry, ErrorEntry)
        assert entry.sub_type == "thread"
        assert entry.message == "Exception in thread worker-1: ValueError: in worker"
        assert len(previous_hooks["threading"]) == 1

    def test_stop_restores_hooks(self, previous_hooks: dict[str, list[Any]]) -> None:
        original_sys, original_threading = sys.excepthook, threading.excepthook
        sniffer = ErrorSniffer()
        sniffer.start(lambda entry: None, runtime_config())
        assert sys.excepthook is not original_sys

        sniffer.stop()

        assert sys.excepthook is original_sys
        assert threading.excepthook is original_threading
        assert not sniffer.active

    def test_options_rejected(self) -> None:
        with pytest.raises(SnifferError, match="takes no options"):
            ErrorSniffer().configure({"verbose": True})


class TestWatchLoop:
    def test_loop_exception_captured_and_chained(self, sniffer: ErrorSniffer, captured: list[LogEntry]) -> None:
        loop = asyncio.new_event_loop()
        chained: list[dict[str, Any]] = []
        loop.set_exception_handler(lambda handled_loop, context: chained.append(context))
        try:
            sniffer.watch_loop(loop)
            loop.call_exception_handler({"message": "Task exception was never retrieved", "exception": OSError("gone")})
        finally:
            loop.close()

        entry = captured[0]
        assert isinstance(entry, ErrorEntry)
        assert entry.sub_type == "unhandledrejection"
        assert entry.message == "Task exception was never retrieved: OSError: gone"
        assert len(chained) == 1

    def test_context_without_exception(self, sniffer: ErrorSniffer, captured: list[LogEntry]) -> None:
        loop = asyncio.new_event_loop()
        loop.set_exception_handler(lambda handled_loop, context: None)
        try:
            sniffer.watch_loop(loop)
            loop.call_exception_handler({"message": "callback failed"})
        finally:
            loop.close()

        entry = captured[0]
        assert isinstance(entry, ErrorEntry)
        assert entry.message == "callback failed"
        assert entry.stack is None

    def test_stop_restores_loop_handler(self, captured: list[LogEntry]) -> None:
        loop = asyncio.new_event_loop()

        def original(handled_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            pass

        loop.set_exception_handler(original)
        sniffer = ErrorSniffer()
        sniffer.start(captured.append, runtime_config())
        try:
            sniffer.watch_loop(loop)
            assert loop.get_exception_handler() is not original
            sniffer.stop()
            assert loop.get_exception_handler() is original
        finally:
            loop.close()
