# src/eventgear/metrics/counter.py
"""Running-total event counter.

EventCounter is the smallest metric object: count, elapsed seconds,
frequency, interval and the highest frequency ever seen, all measured from
the first timestamp it was given. MicroMetrics composes one instead of
subclassing it; both satisfy MetricsRecorder.
"""

from __future__ import annotations

from numbers import Real
from typing import Protocol, runtime_checkable

from eventgear.contracts.errors import TimestampError, ValidationError
from eventgear.contracts.metrics import MetricsSnapshot
from eventgear.metrics.calculations import calculate_frequency, calculate_interval


@runtime_checkable
class MetricsRecorder(Protocol):
    """Shared add/update contract of EventCounter and MicroMetrics."""

    def add(self, timestamp: float, count: int = 1) -> None:
        """Record ``count`` events at ``timestamp`` and refresh metrics."""
        ...

    def update(self, timestamp: float) -> None:
        """Refresh time-dependent metrics at ``timestamp``."""
        ...

    def reset(self) -> None:
        """Clear every field, including the anchor timestamp."""
        ...


class EventCounter:
    """Counts events and derives rates from a first timestamp.

    Timestamps are monotonic milliseconds. The first ``add`` or ``update``
    anchors the counter; every later timestamp must be >= the last one seen.

    Example:
        counter = EventCounter()
        counter.add(0.0)
        counter.add(500.0)
        counter.snapshot().frequency  # 4.0 events/s
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._timestamp_first: float | None = None
        self._timestamp_last: float | None = None
        self._events = 0
        self._seconds = 0.0
        self._interval = 0.0
        self._frequency = 0.0
        self._frequency_max = 0.0

    def validate_timestamp(self, timestamp: object) -> float:
        """Return ``timestamp`` as float or raise TimestampError.

        Raises:
            TimestampError: If not a real number, or earlier than the anchor
                or the last timestamp seen.
        """
        if isinstance(timestamp, bool) or not isinstance(timestamp, Real):
            raise TimestampError(f"Timestamp must be a number, got {type(timestamp).__name__}")
        value = float(timestamp)
        if self._timestamp_last is not None and value < self._timestamp_last:
            raise TimestampError(f"Timestamp {value} is earlier than last recorded timestamp {self._timestamp_last}")
        if self._timestamp_first is not None and value < self._timestamp_first:
            raise TimestampError(f"Timestamp {value} is earlier than initial timestamp {self._timestamp_first}")
        return value

    def add(self, timestamp: float, count: int = 1) -> None:
        """Add ``count`` events at ``timestamp``.

        Raises:
            TimestampError: Invalid or non-monotonic timestamp.
            ValidationError: ``count`` negative or not an integer.
        """
        value = self.validate_timestamp(timestamp)
        _validate_count(count)
        if self._timestamp_first is None:
            self._timestamp_first = value
        self._events += count
        self.update(value)

    def update(self, timestamp: float) -> None:
        value = self.validate_timestamp(timestamp)
        if self._timestamp_first is None:
            self._timestamp_first = value
        self._seconds = (value - self._timestamp_first) / 1000
        self._interval = calculate_interval(self._events, self._seconds)
        self._frequency = calculate_frequency(self._events, self._seconds)
        if self._frequency > self._frequency_max:
            self._frequency_max = self._frequency
        self._timestamp_last = value

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            events=self._events,
            seconds=self._seconds,
            interval=self._interval,
            frequency=self._frequency,
            frequency_max=self._frequency_max,
            timestamp_first=self._timestamp_first,
            timestamp_last=self._timestamp_last,
        )

    @property
    def events(self) -> int:
        return self._events

    @property
    def seconds(self) -> float:
        return self._seconds

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def frequency(self) -> float:
        return self._frequency

    @property
    def frequency_max(self) -> float:
        return self._frequency_max

    @property
    def timestamp_first(self) -> float | None:
        return self._timestamp_first

    @property
    def timestamp_last(self) -> float | None:
        return self._timestamp_last


def _validate_count(count: object) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError(f"count must be an integer, got {type(count).__name__}")
    if count < 0:
        raise ValidationError(f"count must be >= 0, got {count}")
