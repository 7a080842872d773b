# tests/core/test_clock_timers.py
"""Tests for the clock and timer abstractions."""

import threading

import pytest
from structlog.testing import capture_logs

from eventgear.core.clock import MockClock, SystemClock
from eventgear.core.timers import ManualTimerFactory, ThreadingTimer, threading_timer_factory


class TestMockClock:
    """Tests for MockClock."""

    def test_starts_at_given_time(self) -> None:
        assert MockClock(start=250.0).now() == 250.0

    def test_advance(self) -> None:
        clock = MockClock()
        clock.advance(100)
        clock.advance(0.5)
        assert clock.now() == 100.5

    def test_negative_advance_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            MockClock().advance(-1)

    def test_set_may_move_backwards(self) -> None:
        clock = MockClock(start=500)
        clock.set(10)
        assert clock.now() == 10


class TestSystemClock:
    def test_monotonic_milliseconds(self) -> None:
        clock = SystemClock()
        first = clock.now()
        second = clock.now()
        assert second >= first

    def test_whole_milliseconds(self) -> None:
        clock = SystemClock()
        readings = [clock.now() for _ in range(5)]
        assert all(reading.is_integer() for reading in readings)


class TestManualTimers:
    """Ticks are delivered only by fire()."""

    def test_fire_requires_running(self) -> None:
        ticks: list[int] = []
        timers = ManualTimerFactory()
        timer = timers("tick", 100, lambda: ticks.append(1))

        assert timers.fire("tick") == 0
        timer.start()
        assert timers.fire("tick", times=3) == 3
        timer.cancel()
        assert timers.fire("tick") == 0

        assert ticks == [1, 1, 1]
        assert timer.fired_count == 3

    def test_latest_timer_per_name_kept(self) -> None:
        timers = ManualTimerFactory()
        timers("frame", 100, lambda: None)
        replacement = timers("frame", 300, lambda: None)

        assert timers.timers["frame"] is replacement
        assert timers.timers["frame"].period_ms == 300

    def test_is_running(self) -> None:
        timers = ManualTimerFactory()
        assert not timers.is_running("frame")
        timers("frame", 100, lambda: None).start()
        assert timers.is_running("frame")

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(KeyError):
            ManualTimerFactory().fire("missing")


class TestThreadingTimer:
    """Real thread-backed timer."""

    def test_invalid_period_rejected(self) -> None:
        with pytest.raises(ValueError, match="period_ms"):
            ThreadingTimer("bad", 0, lambda: None)

    @pytest.mark.slow
    def test_ticks_until_cancelled(self) -> None:
        ticked = threading.Event()
        timer = threading_timer_factory("fast", 5, ticked.set)

        timer.start()
        assert timer.running
        assert ticked.wait(timeout=2.0)
        timer.cancel()

        assert not timer.running

    @pytest.mark.slow
    def test_failing_tick_logged_and_timer_continues(self) -> None:
        calls: list[int] = []
        second_tick = threading.Event()

        def tick() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("tick bug")
            second_tick.set()

        timer = ThreadingTimer("flaky", 5, tick)
        with capture_logs() as cap_logs:
            timer.start()
            assert second_tick.wait(timeout=2.0)
            timer.cancel()

        failures = [entry for entry in cap_logs if entry["event"] == "Timer tick failed"]
        assert failures[0]["timer"] == "flaky"
        assert failures[0]["error_type"] == "RuntimeError"

    def test_cancel_before_start_is_noop(self) -> None:
        timer = ThreadingTimer("idle", 50, lambda: None)
        timer.cancel()
        assert not timer.running
