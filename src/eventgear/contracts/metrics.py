# src/eventgear/contracts/metrics.py
"""Immutable metric snapshots crossing module boundaries.

Every value here is a frozen, slotted dataclass produced by one of the
metric objects (EventCounter, MicroMetrics, RollingTimestampBuffer,
ExecutionProfile, CallbackTracker) or by the TelemetryEngine on frame
closure. Callers receive snapshots, never live state.

Units:
    Timestamps are monotonic clock readings in milliseconds.
    Durations named ``seconds*`` are seconds; execution durations are ms.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eventgear.contracts.enums import CheckMethod


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    """Running totals since the first timestamp seen by an EventCounter.

    Attributes:
        events: Number of events counted
        seconds: Elapsed seconds between first and last timestamp
        interval: Average seconds per event (0 if no events)
        frequency: Events per second (0 if no time elapsed)
        frequency_max: Highest frequency ever observed, never decreases
        timestamp_first: Anchor timestamp, None before the first update
        timestamp_last: Most recent timestamp, None before the first update
    """

    events: int = 0
    seconds: float = 0.0
    interval: float = 0.0
    frequency: float = 0.0
    frequency_max: float = 0.0
    timestamp_first: float | None = None
    timestamp_last: float | None = None


@dataclass(frozen=True, slots=True)
class MicroSnapshot:
    """Totals plus the in-progress ("now") and last closed ("last") bucket.

    A bucket is the set of events sharing one clock reading. ``jitter_last``
    is a pseudo-jitter: the gap between the estimated and the real elapsed
    time of the closed bucket, divided by its event count.
    """

    total: MetricsSnapshot
    events_now: int = 0
    seconds_now: float = 0.0
    interval_now: float = 0.0
    frequency_now: float = 0.0
    events_last: int = 0
    seconds_last: float = 0.0
    interval_last: float = 0.0
    frequency_last: float = 0.0
    difference_last: float = 0.0
    jitter_last: float = 0.0
    interval_micro: float = 0.0

    @property
    def events(self) -> int:
        return self.total.events

    @property
    def seconds(self) -> float:
        return self.total.seconds

    @property
    def interval(self) -> float:
        return self.total.interval

    @property
    def frequency(self) -> float:
        return self.total.frequency

    @property
    def frequency_max(self) -> float:
        return self.total.frequency_max

    @property
    def timestamp(self) -> float | None:
        """Timestamp of the most recent bucket boundary."""
        return self.total.timestamp_last


@dataclass(frozen=True, slots=True)
class BufferEntry:
    """One rolling-buffer slot: events counted at a single timestamp."""

    timestamp: float
    count: int


@dataclass(frozen=True, slots=True)
class ExecutionDurations:
    """Processing-time overhead of the engine, split by phase (ms).

    Attributes:
        total: Sum of every phase below
        metrics: Metric objects, short-term window and frequency max
        frame: Timeframe estimation, closure and frame alarms
        alarms: Always-on alarms and embedded CallbackTracker pass
        response: Event response callback
        metadata: Metadata change callback
    """

    total: float = 0.0
    metrics: float = 0.0
    frame: float = 0.0
    alarms: float = 0.0
    response: float = 0.0
    metadata: float = 0.0


@dataclass(frozen=True, slots=True)
class TimeframeHistoryEntry:
    """Snapshot of one closed timeframe.

    ``execution_durations`` is only populated while performance metrics
    are active.
    """

    timeframe_index: int
    timestamp: float
    events: int
    frequency: float
    jitter: float
    execution_durations: ExecutionDurations | None = None


@dataclass(frozen=True, slots=True)
class ExceedanceEntry:
    """Cumulative frame-alarm exceedance counters at frame closure."""

    jitter_exceedances: int = 0
    frequency_lower_exceedances: int = 0
    frequency_upper_exceedances: int = 0
    max_events_lower_exceedances: int = 0
    max_events_upper_exceedances: int = 0


@dataclass(frozen=True, slots=True)
class CallbackMetrics:
    """Public view of one CallbackTracker registration and its counters."""

    id: str
    type: str | None
    priority: int
    check_active: bool
    callback_active: bool
    check_method: CheckMethod
    check_true_flag: bool
    threshold: float
    interval: float
    check_true_count: int = 0
    last_check_true_timestamp: float = 0.0
    last_execution_time: float = 0.0
    total_execution_time: float = 0.0
    last_check_duration: float = 0.0
    total_check_duration: float = 0.0


@dataclass(frozen=True, slots=True)
class MetadataPair:
    """Current metadata and the snapshot it replaced."""

    current: Any = None
    previous: Any = None


@dataclass(frozen=True, slots=True)
class AlarmThresholds:
    """Configured alarm thresholds. A value of 0 means disabled.

    ``interval_count_threshold`` and ``interval_time_threshold`` are the
    next values at which the self-renewing interval alarms fire.
    """

    total_count: float = 0
    total_time: float = 0
    interval_count: float = 0
    interval_count_threshold: float = 0
    interval_time: float = 0
    interval_time_threshold: float = 0
    jitter: float = 0
    frequency_lower: float = 0
    frequency_upper: float = 0
    max_events_lower: float = 0
    max_events_upper: float = 0
