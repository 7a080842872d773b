# tests/engine/test_alarms.py
"""Tests for one-shot, interval and band alarm state."""

import pytest

from eventgear.contracts.enums import AlarmKind, ThresholdDirection
from eventgear.contracts.errors import ValidationError
from eventgear.engine.alarms import BandAlarm, IntervalAlarm, OneShotAlarm, validate_threshold


def _noop() -> None:
    pass


class TestValidateThreshold:
    """Threshold coercion."""

    @pytest.mark.parametrize(("value", "expected"), [(5, 5.0), (0, 0.0), (-3, 0.0), (2.5, 2.5)])
    def test_non_positive_means_disabled(self, value: float, expected: float) -> None:
        assert validate_threshold("x", value) == expected

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), "5", None, True])
    def test_invalid_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError, match="finite number"):
            validate_threshold("x", value)


class TestOneShotAlarm:
    """Fires the first time the threshold is reached."""

    def test_fires_once(self) -> None:
        alarm = OneShotAlarm(AlarmKind.TOTAL_COUNT)
        alarm.configure(5, _noop)

        results = [alarm.check(value) for value in (3, 4, 5, 6, 7)]

        assert results == [False, False, True, False, False]
        assert alarm.triggered

    def test_reconfigure_rearms(self) -> None:
        alarm = OneShotAlarm(AlarmKind.TOTAL_COUNT)
        alarm.configure(1, _noop)
        alarm.check(1)
        alarm.configure(2, _noop)

        assert not alarm.triggered
        assert alarm.check(2)

    def test_zero_threshold_disables(self) -> None:
        alarm = OneShotAlarm(AlarmKind.TOTAL_TIME)
        alarm.configure(0, None)

        assert not alarm.enabled
        assert alarm.callback is None
        assert alarm.check(100) is False

    def test_enabled_requires_callable(self) -> None:
        alarm = OneShotAlarm(AlarmKind.TOTAL_TIME)
        with pytest.raises(ValidationError, match="callable"):
            alarm.configure(5, "not callable")
        assert not alarm.enabled

    def test_clear(self) -> None:
        alarm = OneShotAlarm(AlarmKind.TOTAL_COUNT)
        alarm.configure(1, _noop)
        alarm.clear()
        assert alarm.threshold == 0 and alarm.callback is None


class TestIntervalAlarm:
    """Self-renewing thresholds."""

    def test_fires_every_interval(self) -> None:
        alarm = IntervalAlarm(AlarmKind.INTERVAL_COUNT)
        alarm.configure(3, _noop, current=0)

        fired = [value for value in range(1, 10) if alarm.check(value)]

        assert fired == [3, 6, 9]
        assert alarm.next_threshold == 12

    def test_overshoot_fires_once(self) -> None:
        alarm = IntervalAlarm(AlarmKind.INTERVAL_TIME)
        alarm.configure(1.0, _noop, current=0.0)

        assert alarm.check(3.5) is True
        assert alarm.next_threshold == 4.0
        assert alarm.check(3.9) is False

    def test_based_on_current_value(self) -> None:
        alarm = IntervalAlarm(AlarmKind.INTERVAL_COUNT)
        alarm.configure(10, _noop, current=25)
        assert alarm.next_threshold == 35

    def test_inactive_pauses(self) -> None:
        alarm = IntervalAlarm(AlarmKind.INTERVAL_COUNT)
        alarm.configure(1, _noop, current=0)
        alarm.active = False

        assert alarm.check(5) is False
        alarm.active = True
        assert alarm.check(5) is True

    def test_disabled(self) -> None:
        alarm = IntervalAlarm(AlarmKind.INTERVAL_COUNT)
        alarm.configure(0, None, current=0)

        assert not alarm.enabled
        assert alarm.next_threshold == 0
        assert alarm.check(100) is False


class TestBandAlarm:
    """Lower/upper exceedance counting."""

    def test_upper_crossing(self) -> None:
        alarm = BandAlarm(AlarmKind.JITTER)
        alarm.configure(0, 10, _noop)

        assert alarm.crossings(9.9) == []
        assert alarm.crossings(10) == [(ThresholdDirection.UPPER, 10.0)]
        assert alarm.upper_count == 1
        assert alarm.lower_count == 0

    def test_lower_and_upper(self) -> None:
        alarm = BandAlarm(AlarmKind.FREQUENCY)
        alarm.configure(5, 20, _noop)

        alarm.crossings(3)
        alarm.crossings(25)
        alarm.crossings(10)

        assert alarm.lower_count == 1
        assert alarm.upper_count == 1

    def test_disabled_band_never_crosses(self) -> None:
        alarm = BandAlarm(AlarmKind.MAX_EVENTS_PER_FRAME)
        alarm.configure(0, 0, None)

        assert alarm.crossings(0) == []
        assert alarm.callback is None

    def test_reset_counts_keeps_thresholds(self) -> None:
        alarm = BandAlarm(AlarmKind.MAX_EVENTS_PER_FRAME)
        alarm.configure(0, 1, _noop)
        alarm.crossings(5)
        alarm.reset_counts()

        assert alarm.upper_count == 0
        assert alarm.upper == 1.0
