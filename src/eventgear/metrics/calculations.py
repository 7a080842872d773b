# src/eventgear/metrics/calculations.py
"""Pure rate and dispersion helpers shared by every metric object.

No state, no clock access. Inputs in seconds/milliseconds exactly as
documented per function.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from numbers import Real

import numpy as np

from eventgear.contracts.errors import ValidationError
from eventgear.contracts.metrics import BufferEntry


def _require_non_negative(name: str, value: object) -> float:
    # bool is an int subclass but never a valid count or duration
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0, got {value}")
    return float(value)


def calculate_frequency(count: float, seconds: float) -> float:
    """Events per second, 0 when no time has elapsed.

    Raises:
        ValidationError: If either argument is negative or not a number.
    """
    count_f = _require_non_negative("count", count)
    seconds_f = _require_non_negative("seconds", seconds)
    return count_f / seconds_f if seconds_f > 0 else 0.0


def calculate_interval(count: float, seconds: float) -> float:
    """Average seconds per event, 0 when there are no events.

    Raises:
        ValidationError: If either argument is negative or not a number.
    """
    count_f = _require_non_negative("count", count)
    seconds_f = _require_non_negative("seconds", seconds)
    return seconds_f / count_f if count_f > 0 else 0.0


def calculate_jitter(timestamps: Sequence[float | BufferEntry]) -> float:
    """Population standard deviation of inter-event intervals.

    Accepts plain timestamps or coalesced BufferEntry values. For a coalesced
    entry the gap to its predecessor is split evenly over ``count`` events,
    contributing ``count`` equal intervals.

    Args:
        timestamps: Chronologically ordered timestamps (any consistent unit)

    Returns:
        Jitter in the unit of the timestamps, 0 for fewer than two intervals.
    """
    if len(timestamps) < 2:
        return 0.0

    intervals: list[float] = []
    repeats: list[int] = []
    previous: float | None = None
    for item in timestamps:
        if isinstance(item, BufferEntry):
            timestamp, count = item.timestamp, item.count
        else:
            timestamp, count = item, 1
        if previous is not None and count > 0:
            intervals.append((timestamp - previous) / count)
            repeats.append(count)
        previous = timestamp

    expanded = np.repeat(np.asarray(intervals, dtype=np.float64), repeats)
    if expanded.size < 2:
        return 0.0
    return max(float(np.std(expanded)), 0.0)


def next_interval_threshold(
    current: float,
    interval: float,
    threshold: float,
    *,
    add: bool = True,
) -> float:
    """Advance a self-renewing threshold past ``current``.

    The threshold moves by whole multiples of ``interval`` so that a value
    that overshot several periods still yields exactly one crossing:
    ``next_interval_threshold(350, 100, 0) == 400``.

    Args:
        current: Value compared against the threshold
        interval: Step size, must be non-zero
        threshold: Current threshold
        add: Move upwards (True) or downwards (False)

    Returns:
        ``threshold`` unchanged if not yet crossed, otherwise the first
        stepped value strictly beyond ``current``. NaN for non-finite input.

    Raises:
        ValidationError: If interval is 0.
    """
    if interval == 0:
        raise ValidationError("interval must be non-zero")
    if not (math.isfinite(current) and math.isfinite(threshold) and math.isfinite(interval)):
        return math.nan

    if (add and current < threshold) or (not add and current > threshold):
        return threshold

    step = abs(interval)
    candidate = threshold + step if add else threshold - step
    if (add and candidate > current) or (not add and candidate < current):
        return candidate

    adjustment = (math.floor(abs(current - threshold) / step) + 1) * step
    return threshold + adjustment if add else threshold - adjustment
