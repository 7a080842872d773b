# src/eventgear/metrics/micro.py
"""Millisecond-bucket metrics for high-frequency event streams.

A bucket is every event sharing one clock reading. Under a millisecond
clock, bursts faster than 1 kHz land in one bucket and a naive
events/seconds would report 0 or infinity. MicroMetrics keeps two views:

- "now": the bucket still receiving events. In estimation mode its elapsed
  time is estimated as ``events * interval_micro`` (the average interval of
  the previous bucket), giving a live frequency inside one clock tick.
- "last": the most recently closed bucket, measured against real time.

Closing a bucket compares estimate and reality; the normalised difference
is the pseudo-jitter ``jitter_last``. It is a cheap per-bucket dispersion
signal, not classical jitter (see calculate_jitter for that).
"""

from __future__ import annotations

from collections.abc import Callable

from eventgear.contracts.errors import ValidationError
from eventgear.contracts.metrics import MetricsSnapshot, MicroSnapshot
from eventgear.metrics.calculations import calculate_frequency, calculate_interval
from eventgear.metrics.counter import EventCounter

ClosureCallback = Callable[[MicroSnapshot], None]


class MicroMetrics:
    """Running totals plus "now"/"last" bucket metrics.

    Composes an EventCounter for the totals and validation, and satisfies
    the same MetricsRecorder contract.

    The optional closure callback runs synchronously each time a bucket
    closes and receives the full snapshot. It is engine code, not user
    code: exceptions it raises propagate to the caller of add/update.

    Args:
        on_close: Called with a MicroSnapshot on every bucket closure
        estimate_now: Estimate "now" seconds from the previous bucket interval
    """

    def __init__(self, on_close: ClosureCallback | None = None, *, estimate_now: bool = True) -> None:
        self._counter = EventCounter()
        self._on_close: ClosureCallback | None = None
        self.set_on_close(on_close)
        self._estimate_now = estimate_now
        self._frequency_max = 0.0
        self._seconds = 0.0
        self._interval = 0.0
        self._frequency = 0.0
        self._bucket_timestamp: float | None = None
        self.reset_micro_metrics()

    def reset(self) -> None:
        """Clear totals, the anchor and both bucket views."""
        self._counter.reset()
        self._frequency_max = 0.0
        self._seconds = 0.0
        self._interval = 0.0
        self._frequency = 0.0
        self._bucket_timestamp = None
        self.reset_micro_metrics()

    def reset_micro_metrics(self) -> None:
        """Clear the "now"/"last" views, keeping totals."""
        self._interval_micro = 0.0
        self._events_now = 0
        self._seconds_now = 0.0
        self._interval_now = 0.0
        self._frequency_now = 0.0
        self._events_last = 0
        self._seconds_last = 0.0
        self._interval_last = 0.0
        self._frequency_last = 0.0
        self._difference_last = 0.0
        self._jitter_last = 0.0

    def set_on_close(self, callback: ClosureCallback | None) -> None:
        """Replace the bucket closure callback, None removes it.

        Raises:
            ValidationError: If callback is neither callable nor None.
        """
        if callback is not None and not callable(callback):
            raise ValidationError("Closure callback must be callable or None")
        self._on_close = callback

    def add(self, timestamp: float, count: int = 1) -> None:
        """Add ``count`` events at ``timestamp``.

        Raises:
            TimestampError: Invalid or non-monotonic timestamp.
            ValidationError: ``count`` negative or not an integer.
        """
        value = self._counter.validate_timestamp(timestamp)
        same_bucket = value == self._bucket_timestamp
        self._counter.add(value, count)
        self._events_now += count
        if same_bucket and self._estimate_now and self._interval_micro > 0:
            self._seconds_now += count * self._interval_micro
            self._interval_now = calculate_interval(self._events_now, self._seconds_now)
            self._frequency_now = calculate_frequency(self._events_now, self._seconds_now)
        self._advance(value)

    def update(self, timestamp: float) -> None:
        """Refresh metrics at ``timestamp``, closing the bucket if it changed."""
        value = self._counter.validate_timestamp(timestamp)
        self._counter.update(value)
        self._advance(value)

    def _advance(self, timestamp: float) -> None:
        new_bucket = timestamp != self._bucket_timestamp
        if new_bucket:
            self._close_bucket(timestamp)

        seconds = self._counter.seconds
        interval = self._counter.interval
        frequency = self._counter.frequency
        # All events within one tick: borrow the bucket view for the totals
        if frequency == 0 and self._counter.events > 0:
            if self._frequency_now == 0:
                if self._frequency_last != 0:
                    interval = self._interval_last
                    frequency = self._frequency_last
                    if seconds == 0:
                        seconds = self._seconds_last
            else:
                if seconds == 0:
                    seconds = self._seconds_now
                interval = self._interval_now
                frequency = self._frequency_now
        self._seconds = seconds
        self._interval = interval
        self._frequency = frequency
        self._frequency_max = max(self._frequency_max, frequency, self._frequency_last)

        if new_bucket and self._on_close is not None:
            self._on_close(self.snapshot())

    def _close_bucket(self, timestamp: float) -> None:
        previous = self._bucket_timestamp
        self._events_last = self._events_now
        if self._events_last > 0:
            self._seconds_last = (timestamp - previous) / 1000 if previous is not None else 0.0
            self._interval_last = calculate_interval(self._events_last, self._seconds_last)
            self._frequency_last = calculate_frequency(self._events_last, self._seconds_last)
            if self._estimate_now:
                self._interval_micro = self._interval_last
                self._difference_last = self._seconds_last - self._seconds_now
                self._jitter_last = abs(self._difference_last) / self._events_last
        else:
            self._seconds_last = 0.0
            self._interval_last = 0.0
            self._frequency_last = 0.0
            self._difference_last = 0.0

        self._events_now = 0
        if self._estimate_now:
            self._seconds_now = 0.0
            self._interval_now = 0.0
            self._frequency_now = 0.0
        self._bucket_timestamp = timestamp

    def snapshot(self) -> MicroSnapshot:
        total = MetricsSnapshot(
            events=self._counter.events,
            seconds=self._seconds,
            interval=self._interval,
            frequency=self._frequency,
            frequency_max=self._frequency_max,
            timestamp_first=self._counter.timestamp_first,
            timestamp_last=self._bucket_timestamp,
        )
        return MicroSnapshot(
            total=total,
            events_now=self._events_now,
            seconds_now=self._seconds_now,
            interval_now=self._interval_now,
            frequency_now=self._frequency_now,
            events_last=self._events_last,
            seconds_last=self._seconds_last,
            interval_last=self._interval_last,
            frequency_last=self._frequency_last,
            difference_last=self._difference_last,
            jitter_last=self._jitter_last,
            interval_micro=self._interval_micro,
        )

    @property
    def estimate_now(self) -> bool:
        return self._estimate_now

    @property
    def events(self) -> int:
        return self._counter.events

    @property
    def seconds(self) -> float:
        return self._seconds

    @property
    def frequency(self) -> float:
        return self._frequency

    @property
    def frequency_max(self) -> float:
        return self._frequency_max

    @property
    def frequency_last(self) -> float:
        return self._frequency_last

    @property
    def jitter_last(self) -> float:
        return self._jitter_last

    @property
    def timestamp_first(self) -> float | None:
        return self._counter.timestamp_first

    @property
    def timestamp_last(self) -> float | None:
        return self._bucket_timestamp

    @property
    def events_now(self) -> int:
        """Events in the bucket still open (not yet handed to on_close)."""
        return self._events_now
