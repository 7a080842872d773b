# src/eventgear/engine/alarms.py
"""Alarm threshold state owned by a TelemetryEngine.

Three shapes of alarm:

- OneShotAlarm: fires the first time a value reaches its threshold, then
  never again until reconfigured (total event count, total running time).
- IntervalAlarm: fires each time a value reaches its next threshold and
  re-arms by whole intervals past the current value, so one check that
  overshot several periods fires once (event-count and running-time
  intervals).
- BandAlarm: evaluated on frame closure against a lower and/or upper
  threshold, counting every exceedance (jitter, frequency, events per
  frame).

A threshold <= 0 disables an alarm and clears its callback. The objects
only decide whether to fire; invoking the callback is the engine's job.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from numbers import Real
from typing import Any

from eventgear.contracts.enums import AlarmKind, ThresholdDirection
from eventgear.contracts.errors import ValidationError
from eventgear.metrics.calculations import next_interval_threshold

AlarmCallback = Callable[..., Any]


def validate_threshold(name: str, value: object) -> float:
    """Return ``value`` as float, with anything <= 0 meaning disabled.

    Raises:
        ValidationError: If value is not a finite number.
    """
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise ValidationError(f"{name} threshold must be a finite number, got {value!r}")
    return max(float(value), 0.0)


def validate_alarm_callback(name: str, callback: object, enabled: bool) -> AlarmCallback | None:
    """Return the callback for an enabled alarm, None for a disabled one.

    Raises:
        ValidationError: Enabled alarm without a callable callback.
    """
    if not enabled:
        return None
    if not callable(callback):
        raise ValidationError(f"{name} alarm requires a callable callback")
    return callback


@dataclass
class OneShotAlarm:
    """Fires once when the observed value first reaches ``threshold``."""

    kind: AlarmKind
    threshold: float = 0.0
    callback: AlarmCallback | None = None
    triggered: bool = False

    @property
    def enabled(self) -> bool:
        return self.threshold > 0 and self.callback is not None

    def configure(self, threshold: object, callback: object) -> None:
        """Set threshold and callback; re-arms the alarm.

        Raises:
            ValidationError: Invalid threshold, or missing callback.
        """
        value = validate_threshold(self.kind.value, threshold)
        self.callback = validate_alarm_callback(self.kind.value, callback, value > 0)
        self.threshold = value
        self.triggered = False

    def check(self, value: float) -> bool:
        """Return True exactly once, the first time ``value >= threshold``."""
        if not self.enabled or self.triggered or value < self.threshold:
            return False
        self.triggered = True
        return True

    def clear(self) -> None:
        self.threshold = 0.0
        self.callback = None
        self.triggered = False


@dataclass
class IntervalAlarm:
    """Self-renewing alarm firing every ``interval`` units of a value.

    ``active`` pauses evaluation without losing configuration.
    """

    kind: AlarmKind
    interval: float = 0.0
    next_threshold: float = 0.0
    callback: AlarmCallback | None = None
    active: bool = True

    @property
    def enabled(self) -> bool:
        return self.interval > 0 and self.next_threshold > 0 and self.callback is not None

    def configure(self, interval: object, callback: object, current: float) -> None:
        """Arm the alarm to fire next at ``current + interval``.

        Raises:
            ValidationError: Invalid interval, or missing callback.
        """
        value = validate_threshold(self.kind.value, interval)
        self.callback = validate_alarm_callback(self.kind.value, callback, value > 0)
        self.interval = value
        self.next_threshold = current + value if value > 0 else 0.0

    def check(self, value: float) -> bool:
        """Fire when ``value`` reached the next threshold, then re-arm past it."""
        if not self.active or not self.enabled or value < self.next_threshold:
            return False
        self.next_threshold = next_interval_threshold(value, self.interval, self.next_threshold)
        return True

    def clear(self) -> None:
        self.interval = 0.0
        self.next_threshold = 0.0
        self.callback = None


@dataclass
class BandAlarm:
    """Frame-scoped alarm with optional lower and upper thresholds.

    Lower crossings are ``value <= lower``, upper crossings
    ``value >= upper``. Each crossing increments its exceedance counter.
    """

    kind: AlarmKind
    lower: float = 0.0
    upper: float = 0.0
    callback: AlarmCallback | None = None
    lower_count: int = 0
    upper_count: int = 0

    def configure(self, lower: object, upper: object, callback: object) -> None:
        """Raises:
        ValidationError: Invalid threshold, or missing callback.
        """
        lower_value = validate_threshold(f"{self.kind.value} lower", lower)
        upper_value = validate_threshold(f"{self.kind.value} upper", upper)
        enabled = lower_value > 0 or upper_value > 0
        self.callback = validate_alarm_callback(self.kind.value, callback, enabled)
        self.lower = lower_value
        self.upper = upper_value

    def crossings(self, value: float) -> list[tuple[ThresholdDirection, float]]:
        """Record and return every threshold ``value`` crossed."""
        crossed: list[tuple[ThresholdDirection, float]] = []
        if self.lower > 0 and value <= self.lower:
            self.lower_count += 1
            crossed.append((ThresholdDirection.LOWER, self.lower))
        if self.upper > 0 and value >= self.upper:
            self.upper_count += 1
            crossed.append((ThresholdDirection.UPPER, self.upper))
        return crossed

    def reset_counts(self) -> None:
        self.lower_count = 0
        self.upper_count = 0

    def clear(self) -> None:
        self.lower = 0.0
        self.upper = 0.0
        self.callback = None
