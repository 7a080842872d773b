# tests/callbacks/test_tracker.py
"""Tests for CallbackTracker check methods, ordering and isolation."""

from collections.abc import Callable
from typing import Any

import pytest
from structlog.testing import capture_logs

from eventgear.callbacks.tracker import CallbackTracker
from eventgear.contracts.enums import CheckMethod
from eventgear.contracts.errors import CallbackNotFoundError, ValidationError
from eventgear.core.clock import MockClock
from eventgear.core.timers import ManualTimerFactory
from tests.conftest import Recorder


@pytest.fixture
def tracker(clock: MockClock, timers: ManualTimerFactory) -> CallbackTracker:
    return CallbackTracker(clock=clock, timer_factory=timers)


class TestRegistration:
    """register_callback validation and updates."""

    def test_register_and_query(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True, lambda: None, priority=7, type="alerts")

        assert "a" in tracker
        assert len(tracker) == 1
        assert tracker.get_priority("a") == 7
        assert tracker.get_type("a") == "alerts"
        assert tracker.is_callback_set("a")
        assert tracker.is_check_function_set("a")
        assert tracker.get_check_method("a") is CheckMethod.DEFAULT

    def test_check_method_accepts_string(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True, check_method="customOnce")
        assert tracker.get_check_method("a") is CheckMethod.CUSTOM_ONCE

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"id": ""}, "non-empty"),
            ({"check_fn": "nope"}, "Check function must be callable"),
            ({"action_fn": 3}, "Callback must be callable"),
            ({"priority": 11}, "between 0 and 10"),
            ({"priority": -1}, "between 0 and 10"),
            ({"check_method": "weekly"}, "Invalid check method"),
            ({"threshold": float("nan")}, "threshold"),
            ({"check_method": "timeInterval", "interval": 0}, "interval > 0"),
        ],
    )
    def test_invalid_registration_rejected(self, tracker: CallbackTracker, kwargs: dict[str, Any], match: str) -> None:
        arguments: dict[str, Any] = {"id": "a", "check_fn": lambda: True, **kwargs}
        with pytest.raises(ValidationError, match=match):
            tracker.register_callback(**arguments)
        assert len(tracker) == 0

    def test_default_method_requires_check(self, tracker: CallbackTracker) -> None:
        with pytest.raises(ValidationError, match="required"):
            tracker.register_callback("a", None)

    def test_time_methods_allow_missing_check(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", None, check_method=CheckMethod.TIME_ONCE, threshold=100)
        assert not tracker.is_check_function_set("a")

    def test_reregistering_updates_and_rearms(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", lambda: True, action, check_method=CheckMethod.CUSTOM_ONCE)
        tracker.check_callbacks(0)
        tracker.register_callback("a", lambda: True, action, check_method=CheckMethod.CUSTOM_ONCE, priority=2)
        tracker.check_callbacks(0)

        assert action.count == 2
        assert len(tracker) == 1
        assert tracker.get_priority("a") == 2

    def test_remove_callback(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)

        assert tracker.remove_callback("a") is True
        assert tracker.remove_callback("a") is False
        assert "a" not in tracker


class TestCheckMethods:
    """Re-evaluation policies."""

    def test_default_runs_every_pass(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", lambda: True, action)

        for _ in range(3):
            tracker.check_callbacks(0)

        assert action.count == 3
        assert tracker.get_callback_metrics_by_id("a").check_true_count == 3

    def test_failed_check_skips_action(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", lambda: False, action)

        assert tracker.check_callbacks(0) == 0
        assert action.count == 0

    def test_custom_once_fires_once(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        check_calls = recorder(result=True)
        tracker.register_callback("a", check_calls, action, check_method=CheckMethod.CUSTOM_ONCE)

        for tick in range(10):
            tracker.check_callbacks(tick * 100)

        assert action.count == 1
        assert check_calls.count == 1
        assert tracker.get_check_true_flag("a") is True

    def test_custom_once_keeps_checking_until_true(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        results = iter([False, False, True, True])
        action = recorder()
        tracker.register_callback("a", lambda: next(results), action, check_method=CheckMethod.CUSTOM_ONCE)

        passed = [tracker.check_callbacks(0) for _ in range(4)]

        assert passed == [0, 0, 1, 0]
        assert action.count == 1

    def test_time_once_waits_for_threshold(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", None, action, check_method=CheckMethod.TIME_ONCE, threshold=500)

        tracker.check_callbacks(499)
        assert action.count == 0
        tracker.check_callbacks(500)
        tracker.check_callbacks(1000)
        assert action.count == 1

    def test_time_once_with_check(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        gate = {"open": False}
        action = recorder()
        tracker.register_callback("a", lambda: gate["open"], action, check_method=CheckMethod.TIME_ONCE, threshold=100)

        tracker.check_callbacks(200)
        gate["open"] = True
        tracker.check_callbacks(300)
        tracker.check_callbacks(400)

        assert action.count == 1

    def test_time_interval_overshoot_fires_once(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", None, action, check_method=CheckMethod.TIME_INTERVAL, interval=100)

        tracker.check_callbacks(350)

        assert action.count == 1
        assert tracker.get_threshold("a") == 400
        assert tracker.get_threshold("a") >= 350

    def test_time_interval_renews(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", None, action, check_method=CheckMethod.TIME_INTERVAL, threshold=100, interval=100)

        for now in (50, 100, 150, 200, 250, 300):
            tracker.check_callbacks(now)

        assert action.count == 3
        assert tracker.get_threshold("a") == 400

    def test_inactive_check_is_skipped(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        check = recorder(result=True)
        tracker.register_callback("a", check, check_active=False)

        tracker.check_callbacks(0)
        assert check.count == 0

    def test_inactive_callback_still_counts_pass(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", lambda: True, action, callback_active=False)

        assert tracker.check_callbacks(0) == 1
        assert action.count == 0


class TestOrderingAndIsolation:
    """Priority order and failure isolation."""

    def test_priority_order_highest_first(self, tracker: CallbackTracker) -> None:
        order: list[str] = []
        tracker.register_callback("low", lambda: True, lambda: order.append("low"), priority=1)
        tracker.register_callback("high", lambda: True, lambda: order.append("high"), priority=9)
        tracker.register_callback("mid-a", lambda: True, lambda: order.append("mid-a"), priority=5)
        tracker.register_callback("mid-b", lambda: True, lambda: order.append("mid-b"), priority=5)

        tracker.check_callbacks(0)

        assert order == ["high", "mid-a", "mid-b", "low"]
        assert tracker.callback_ids == ["high", "mid-a", "mid-b", "low"]

    def test_raising_check_counts_as_false(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        def broken() -> bool:
            raise RuntimeError("check exploded")

        other = recorder()
        tracker.register_callback("broken", broken, priority=9)
        tracker.register_callback("other", lambda: True, other)

        with capture_logs() as logs:
            passed = tracker.check_callbacks(0)

        assert passed == 1
        assert other.count == 1
        failure = next(log for log in logs if log["event"] == "Callback check failed")
        assert failure["callback"] == "broken"
        assert failure["error_type"] == "RuntimeError"

    def test_raising_action_does_not_stop_pass(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        def broken() -> None:
            raise ValueError("action exploded")

        other = recorder()
        tracker.register_callback("broken", lambda: True, broken, priority=9)
        tracker.register_callback("other", lambda: True, other)

        with capture_logs() as logs:
            assert tracker.check_callbacks(0) == 2

        assert other.count == 1
        assert any(log["event"] == "Callback action failed" for log in logs)

    def test_action_may_modify_tracker(self, tracker: CallbackTracker) -> None:
        def remove_self() -> None:
            tracker.remove_callback("a")

        tracker.register_callback("a", lambda: True, remove_self)
        tracker.check_callbacks(0)

        assert "a" not in tracker

    def test_current_callback_id_during_check(self, tracker: CallbackTracker) -> None:
        seen: list[str] = []

        def check() -> bool:
            seen.append(tracker.current_callback_id)
            return False

        tracker.register_callback("a", check)
        tracker.check_callbacks(0)

        assert seen == ["a"]
        assert tracker.current_callback_id == ""


class TestPropertiesAndMetrics:
    """Per-registration accessors, metrics and resets."""

    def test_unknown_id_raises(self, tracker: CallbackTracker) -> None:
        with pytest.raises(CallbackNotFoundError, match="missing"):
            tracker.get_priority("missing")

    def test_default_id_outside_check_raises(self, tracker: CallbackTracker) -> None:
        with pytest.raises(CallbackNotFoundError):
            tracker.get_priority()

    def test_set_callback_properties(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        tracker.set_callback_properties("a", priority=3, type="x", check_active=False)

        assert tracker.get_priority("a") == 3
        assert tracker.get_type("a") == "x"
        assert tracker.get_check_active("a") is False

    def test_set_callback_properties_rejects_unknown(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        with pytest.raises(ValidationError, match="Unknown callback properties"):
            tracker.set_callback_properties("a", colour="red")

    def test_individual_setters(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        tracker.set_priority(8, "a")
        tracker.set_callback_active(False, "a")
        tracker.set_threshold(250, "a")
        tracker.set_threshold_interval(50, "a")
        tracker.set_check_method("timeOnce", "a")

        assert tracker.get_priority("a") == 8
        assert tracker.get_callback_active("a") is False
        assert tracker.get_threshold("a") == 250
        assert tracker.get_threshold_interval("a") == 50
        assert tracker.get_check_method("a") is CheckMethod.TIME_ONCE

    def test_function_and_flag_setters(self, tracker: CallbackTracker, recorder: Callable[..., Recorder]) -> None:
        action = recorder()
        tracker.register_callback("a", lambda: False)

        tracker.set_check_function(lambda: True, "a")
        tracker.set_callback(action, "a")
        tracker.set_type("alerts", "a")
        tracker.set_check_active(False, "a")
        tracker.set_check_true_flag(True, "a")

        assert tracker.is_check_function_set("a")
        assert tracker.is_callback_set("a")
        assert tracker.get_type("a") == "alerts"
        assert tracker.get_check_active("a") is False
        assert tracker.get_check_true_flag("a") is True

        tracker.set_check_active(True, "a")
        tracker.check_callbacks(0)
        assert action.count == 1

    def test_removing_check_function_needs_time_method(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)

        with pytest.raises(ValidationError, match="Check function is required"):
            tracker.set_check_function(None, "a")

        tracker.set_check_method(CheckMethod.TIME_ONCE, "a")
        tracker.set_check_function(None, "a")
        assert not tracker.is_check_function_set("a")

    def test_metrics_recorded(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True, lambda: None)
        tracker.check_callbacks(123)

        assert tracker.total_check_execution_time >= 0
        assert tracker.total_callback_execution_time >= 0

        metrics = tracker.get_callback_metrics_by_id("a")
        assert metrics.check_true_count == 1
        assert metrics.last_check_true_timestamp == 123
        assert metrics.total_check_duration >= 0
        assert [m.id for m in tracker.get_callback_metrics()] == ["a"]

    def test_reset_metrics_keeps_registrations(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        tracker.check_callbacks(0)
        tracker.reset_metrics()

        assert "a" in tracker
        assert tracker.get_callback_metrics_by_id("a").check_true_count == 0
        assert tracker.total_check_execution_time == 0

    def test_reset_metrics_by_id(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        tracker.register_callback("b", lambda: True)
        tracker.check_callbacks(0)
        tracker.reset_metrics_by_id("a")

        assert tracker.get_callback_metrics_by_id("a").check_true_count == 0
        assert tracker.get_callback_metrics_by_id("b").check_true_count == 1

    def test_reset_removes_everything(self, tracker: CallbackTracker) -> None:
        tracker.register_callback("a", lambda: True)
        tracker.reset()
        assert len(tracker) == 0


class TestSelfDrivenTimer:
    """interval_duration_ms drives passes from a periodic timer."""

    def test_timer_runs_passes_on_clock(
        self,
        clock: MockClock,
        timers: ManualTimerFactory,
        recorder: Callable[..., Recorder],
    ) -> None:
        action = recorder()
        tracker = CallbackTracker(interval_duration_ms=100, clock=clock, timer_factory=timers)
        tracker.register_callback("a", None, action, check_method=CheckMethod.TIME_ONCE, threshold=200)

        clock.advance(100)
        timers.fire(CallbackTracker.TIMER_NAME)
        assert action.count == 0
        clock.advance(100)
        timers.fire(CallbackTracker.TIMER_NAME)
        assert action.count == 1

    def test_zero_stops_timer(self, clock: MockClock, timers: ManualTimerFactory) -> None:
        tracker = CallbackTracker(interval_duration_ms=100, clock=clock, timer_factory=timers)
        assert timers.is_running(CallbackTracker.TIMER_NAME)

        tracker.set_interval_duration(0)

        assert not timers.is_running(CallbackTracker.TIMER_NAME)
        assert tracker.interval_duration_ms == 0

    def test_negative_interval_rejected(self, tracker: CallbackTracker) -> None:
        with pytest.raises(ValidationError, match=">= 0"):
            tracker.set_interval_duration(-5)

    def test_reset_stops_timer(self, clock: MockClock, timers: ManualTimerFactory) -> None:
        tracker = CallbackTracker(interval_duration_ms=100, clock=clock, timer_factory=timers)
        tracker.reset()
        assert not timers.is_running(CallbackTracker.TIMER_NAME)
