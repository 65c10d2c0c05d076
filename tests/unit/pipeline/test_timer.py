# tests/unit/pipeline/test_timer.py
"""Unit tests for RepeatingTimer and ManualTimer."""

import threading

import pytest

from llm_debugger.pipeline.timer import ManualTimer, RepeatingTimer


class TestManualTimer:
    def test_does_not_fire_before_start(self) -> None:
        calls: list[int] = []
        timer = ManualTimer(1.0, lambda: calls.append(1))

        assert timer.advance(10.0) == 0
        assert calls == []

    def test_fires_once_per_interval(self) -> None:
        calls: list[int] = []
        timer = ManualTimer(2.0, lambda: calls.append(1))
        timer.start()

        assert timer.advance(1.0) == 0
        assert timer.advance(1.0) == 1
        assert timer.advance(4.5) == 2
        assert timer.fire_count == 3
        assert len(calls) == 3

    def test_cancel_stops_firing(self) -> None:
        calls: list[int] = []
        timer = ManualTimer(1.0, lambda: calls.append(1))
        timer.start()
        timer.cancel()

        timer.advance(5.0)
        timer.fire()

        assert calls == []
        assert not timer.active

    def test_callback_cancelling_itself_stops_loop(self) -> None:
        timer: ManualTimer

        def callback() -> None:
            timer.cancel()

        timer = ManualTimer(1.0, callback)
        timer.start()

        assert timer.advance(10.0) == 1


class TestRepeatingTimer:
    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError, match="interval_s"):
            RepeatingTimer(0, lambda: None)

    def test_fires_until_cancelled(self) -> None:
        fired = threading.Event()
        timer = RepeatingTimer(0.01, fired.set)
        timer.start()
        try:
            assert fired.wait(timeout=5.0)
            assert timer.active
        finally:
            timer.cancel()
        assert not timer.active

    def test_callback_exception_keeps_timer_running(self) -> None:
        calls: list[int] = []
        second_call = threading.Event()

        def callback() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")
            second_call.set()

        timer = RepeatingTimer(0.01, callback)
        timer.start()
        try:
            assert second_call.wait(timeout=5.0)
        finally:
            timer.cancel()

    def test_cancelled_timer_cannot_restart(self) -> None:
        timer = RepeatingTimer(0.01, lambda: None)
        timer.cancel()
        timer.start()

        assert not timer.active
