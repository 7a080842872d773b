# src/eventgear/engine/engine.py
"""TelemetryEngine: event ingestion, rate metrics and alarms.

The engine owns every piece of mutable telemetry state:

- MicroMetrics for lifetime totals and millisecond buckets
- an EventCounter scoped to the current timeframe
- a RollingTimestampBuffer fed with every closed bucket
- the short-term timestamp window
- bounded frame and exceedance histories (always the same length)
- alarm thresholds and their exceedance counters
- an embedded CallbackTracker

All of it changes only inside the update pipeline, which runs under the
RegistrationGate. Event registrations queue in arrival order; the frame
timer and the independent timer skip their tick while the gate is busy.

Pipeline, shared by register_event() and both timers:

1. drop rolling-buffer entries older than a minute (or one frame, if longer)
2. update MicroMetrics and the frame counter
3. recompute short-term frequency and jitter
4. raise the engine-wide frequency maximum
5. estimate the frame frequency; close the frame when it has elapsed
6. evaluate total/interval alarms
7. run the CallbackTracker pass

Registrations then invoke the event response hook, the metadata change
hook and auto-send bridges. User callbacks never break the pipeline:
failures are logged and the next callback runs.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from collections.abc import Callable
from numbers import Real
from typing import TYPE_CHECKING, Any

import structlog

from eventgear.bridges.manager import create_bridges
from eventgear.callbacks.execution import call_isolated, fit_arguments
from eventgear.callbacks.tracker import CallbackTracker
from eventgear.contracts.enums import AlarmKind, EngineState, ThresholdDirection, ValueShortcut
from eventgear.contracts.errors import EventGearError, ValidationError
from eventgear.contracts.events import (
    AlarmTriggered,
    EngineStarted,
    EngineStopped,
    EventRegistered,
    FrameClosed,
)
from eventgear.contracts.limits import ENGINE_DEFAULTS, ENGINE_LIMITS, EngineLimits
from eventgear.contracts.metrics import (
    AlarmThresholds,
    BufferEntry,
    ExceedanceEntry,
    ExecutionDurations,
    MetadataPair,
    MetricsSnapshot,
    MicroSnapshot,
    TimeframeHistoryEntry,
)
from eventgear.core.clock import DEFAULT_CLOCK, Clock
from eventgear.core.events import SubscriberRegistry
from eventgear.core.metadata import metadata_equal, snapshot_metadata
from eventgear.core.timers import PeriodicTimer, TimerFactory, threading_timer_factory
from eventgear.engine.alarms import BandAlarm, IntervalAlarm, OneShotAlarm
from eventgear.engine.gate import RegistrationGate
from eventgear.metrics.buffer import RollingTimestampBuffer
from eventgear.metrics.calculations import calculate_frequency, calculate_jitter
from eventgear.metrics.counter import EventCounter
from eventgear.metrics.micro import MicroMetrics
from eventgear.metrics.profile import ExecutionProfile

if TYPE_CHECKING:
    from eventgear.bridges.protocols import BridgeProtocol
    from eventgear.core.config import EventGearSettings

logger = structlog.get_logger(__name__)

# Rolling buffer keeps at least this much history for the per-minute counts
_CLEANUP_WINDOW_MS = 60_000
# Short-term window must span more than this before it yields a frequency
_SHORT_TERM_MIN_SPAN_S = 0.3


def _require_finite(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _clamp_size(name: str, value: object, ceiling: int) -> int:
    """Floor ``value`` and clamp it to [0, ceiling]."""
    number = _require_finite(name, value)
    clamped = min(max(math.floor(number), 0), ceiling)
    if clamped != number:
        logger.debug("Size clamped", setting=name, requested=number, applied=clamped)
    return clamped


def _validate_smoothing_factor(value: object) -> float:
    factor = _require_finite("frequency_smoothing_factor", value)
    if not 0 < factor <= 1:
        raise ValidationError(f"frequency_smoothing_factor must be in (0, 1], got {factor}")
    return factor


def _validate_optional_callable(name: str, fn: object) -> Callable[..., Any] | None:
    if fn is not None and not callable(fn):
        raise ValidationError(f"{name} must be callable or None")
    return fn


def _perf_ms() -> float:
    return time.perf_counter() * 1000


class TelemetryEngine:
    """Coordinator of event metrics, timeframe history and alarms.

    Create, configure, start, then feed events::

        engine = TelemetryEngine(frame_duration=1.0)
        engine.set_callback_frequency(0, 50, lambda metadata: print("too fast"))
        engine.start()
        engine.register_event({"source": "sensor-1"})

    Timestamps come from ``clock`` (milliseconds); periodic work is
    scheduled through ``timer_factory``. Tests pass a MockClock and a
    ManualTimerFactory to drive both deterministically.

    Thread Safety:
        register_event() may be called from any number of threads; calls
        are serialized first come, first served. A registration issued from
        inside a callback of a running pipeline (same thread) is queued and
        processed right after that pipeline completes.

    Args:
        frame_duration: Timeframe length in seconds, 0 disables timeframes
        max_history_size: Closed frames kept in history
        independent_interval_ms: Period of the independent update timer,
            <= 0 disables it
        short_term_buffer_size: Timestamps in the short-term window
        frequency_smoothing_factor: Weight of the raw frame frequency in
            (0, 1]; 1 disables smoothing
        performance_metrics: Record pipeline execution durations
        rolling_buffer_capacity: Slots in the rolling timestamp buffer
        inactivity_threshold_ms: Silence that clears the short-term window
        limits: Ceilings the size setters clamp to
        clock: Monotonic millisecond clock
        timer_factory: Builds the frame and independent timers
        loop: Event loop receiving awaitables returned by user callbacks
    """

    FRAME_TIMER = "frame"
    INDEPENDENT_TIMER = "independent"

    def __init__(
        self,
        frame_duration: float = 0.0,
        max_history_size: int = 100,
        *,
        independent_interval_ms: float = 200,
        short_term_buffer_size: int = 20,
        frequency_smoothing_factor: float = 0.8,
        performance_metrics: bool = True,
        rolling_buffer_capacity: int = 60_000,
        inactivity_threshold_ms: float = 1_000,
        limits: EngineLimits = ENGINE_LIMITS,
        clock: Clock | None = None,
        timer_factory: TimerFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._limits = limits
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._timer_factory = timer_factory if timer_factory is not None else threading_timer_factory
        self._loop = loop

        self._gate = RegistrationGate()
        self._pending: deque[Any] = deque()
        self._state = EngineState.STOPPED
        self._frame_timer: PeriodicTimer | None = None
        self._independent_timer: PeriodicTimer | None = None

        # Configuration
        frame_seconds = _require_finite("frame_duration", frame_duration)
        if frame_seconds < 0:
            raise ValidationError(f"frame_duration must be >= 0, got {frame_seconds}")
        self._frame_duration = frame_seconds
        self._max_history_size = _clamp_size("max_history_size", max_history_size, limits.max_history_size)
        self._independent_interval_ms = max(_require_finite("independent_interval_ms", independent_interval_ms), 0.0)
        self._short_term_buffer_size = _clamp_size(
            "short_term_buffer_size", short_term_buffer_size, limits.max_short_term_buffer_size
        )
        self._smoothing_factor = _validate_smoothing_factor(frequency_smoothing_factor)
        self._performance_metrics = bool(performance_metrics)
        threshold = _require_finite("inactivity_threshold_ms", inactivity_threshold_ms)
        if threshold <= 0:
            raise ValidationError(f"inactivity_threshold_ms must be > 0, got {threshold}")
        self._inactivity_threshold_ms = threshold

        # Metric objects live as long as the engine; resets clear them in place
        self._micro = MicroMetrics(self._on_bucket_closed)
        self._frame = EventCounter()
        self._buffer = RollingTimestampBuffer(
            rolling_buffer_capacity,
            max_capacity=limits.max_rolling_buffer_capacity,
            clock=self._clock,
        )
        self._tracker = CallbackTracker(
            self._performance_metrics,
            clock=self._clock,
            timer_factory=self._timer_factory,
            loop=loop,
        )
        self._duration_event = ExecutionProfile()
        self._duration_total = ExecutionProfile()
        self._duration_frame = ExecutionProfile()
        self._frame_history: deque[TimeframeHistoryEntry] = deque(maxlen=self._max_history_size)
        self._exceedances_history: deque[ExceedanceEntry] = deque(maxlen=self._max_history_size)
        self._events = SubscriberRegistry()
        self._bridges: dict[str, BridgeProtocol] = {}

        # Alarms
        self._total_count_alarm = OneShotAlarm(AlarmKind.TOTAL_COUNT)
        self._total_time_alarm = OneShotAlarm(AlarmKind.TOTAL_TIME)
        self._interval_count_alarm = IntervalAlarm(AlarmKind.INTERVAL_COUNT)
        self._interval_time_alarm = IntervalAlarm(AlarmKind.INTERVAL_TIME)
        self._jitter_alarm = BandAlarm(AlarmKind.JITTER)
        self._frequency_alarm = BandAlarm(AlarmKind.FREQUENCY)
        self._max_events_alarm = BandAlarm(AlarmKind.MAX_EVENTS_PER_FRAME)

        # Response hooks
        self._event_callback: Callable[..., Any] | None = None
        self._metadata_change_callback: Callable[..., Any] | None = None
        self._event_callback_active = True
        self._metadata_change_callback_active = True

        self._reset_runtime()

    @classmethod
    def from_settings(
        cls,
        settings: EventGearSettings,
        *,
        clock: Clock | None = None,
        timer_factory: TimerFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        attach_bridges: bool = True,
    ) -> TelemetryEngine:
        """Build an engine from validated settings.

        Bridges listed in the settings are created through the plugin
        registry and attached unless ``attach_bridges`` is False.

        Raises:
            BridgeError: A configured bridge is unknown or failed to configure.
        """
        engine_settings = settings.engine
        engine = cls(
            frame_duration=engine_settings.frame_duration,
            max_history_size=engine_settings.max_history_size,
            independent_interval_ms=engine_settings.independent_interval_ms,
            short_term_buffer_size=engine_settings.short_term_buffer_size,
            frequency_smoothing_factor=engine_settings.frequency_smoothing_factor,
            performance_metrics=engine_settings.performance_metrics,
            rolling_buffer_capacity=engine_settings.rolling_buffer_capacity,
            inactivity_threshold_ms=engine_settings.inactivity_threshold_ms,
            limits=settings.limits.to_limits(),
            clock=clock,
            timer_factory=timer_factory,
            loop=loop,
        )
        if attach_bridges:
            for bridge in create_bridges(settings.bridges):
                engine.attach_bridge(bridge)
        return engine

    def _reset_runtime(self) -> None:
        """Clear every runtime value; configuration and callbacks stay."""
        now = self._clock.now()
        self._metadata: Any = None
        self._metadata_previous: Any = None
        self._micro.reset()
        self._frame.reset()
        self._buffer.reset()
        self._duration_event.reset()
        self._duration_total.reset()
        self._duration_frame.reset()
        self._timestamp_start: float | None = None
        self._timestamp_frame_start = now
        self._timeframe_count = 0
        self._frame_frequency = 0.0
        self._frame_frequency_last = 0.0
        self._frame_jitter = 0.0
        self._frequency_max = 0.0
        self._short_term_frequency = 0.0
        self._short_term_jitter = 0.0
        self._short_term_timestamps: list[float] = []
        self._frame_timestamps: list[float] = []
        self._frame_history.clear()
        self._exceedances_history.clear()
        self._jitter_alarm.reset_counts()
        self._frequency_alarm.reset_counts()
        self._max_events_alarm.reset_counts()

    def _anchor(self, now: float) -> None:
        # Running time and time alarms count from here, not from the first event
        self._timestamp_start = now
        self._timestamp_frame_start = now
        self._micro.update(now)

    # --- lifecycle ---

    def start(self) -> TelemetryEngine:
        """Activate the engine and its timers. No-op when already active."""
        with self._gate.hold():
            if self._state is EngineState.ACTIVE:
                return self
            now = self._clock.now()
            self._state = EngineState.ACTIVE
            if self._timestamp_start is None:
                self._anchor(now)
            self._start_frame_timer()
            self._start_independent_timer()
            logger.info(
                "Engine started",
                frame_duration=self._frame_duration,
                independent_interval_ms=self._independent_interval_ms,
            )
            self._events.publish(EngineStarted(timestamp=now))
        self._drain_pending()
        return self

    def stop(self) -> TelemetryEngine:
        """Cancel both timers and stop accepting events, keeping all state.

        A registration already running completes.
        """
        if self._state is EngineState.STOPPED:
            return self
        self._state = EngineState.STOPPED
        self._stop_timers()
        now = self._clock.now()
        logger.info("Engine stopped", events=self._micro.events)
        self._events.publish(EngineStopped(timestamp=now))
        return self

    def set_active(self, active: bool) -> TelemetryEngine:
        return self.start() if active else self.stop()

    def _start_frame_timer(self) -> None:
        if self._frame_timer is not None:
            self._frame_timer.cancel()
            self._frame_timer = None
        if self._state is EngineState.ACTIVE and self._frame_duration > 0:
            self._frame_timer = self._timer_factory(self.FRAME_TIMER, self._frame_duration * 1000, self._on_tick)
            self._frame_timer.start()

    def _start_independent_timer(self) -> None:
        if self._independent_timer is not None:
            self._independent_timer.cancel()
            self._independent_timer = None
        if self._state is EngineState.ACTIVE and self._independent_interval_ms > 0:
            self._independent_timer = self._timer_factory(
                self.INDEPENDENT_TIMER, self._independent_interval_ms, self._on_tick
            )
            self._independent_timer.start()

    def _stop_timers(self) -> None:
        for timer in (self._frame_timer, self._independent_timer):
            if timer is not None:
                timer.cancel()
        self._frame_timer = None
        self._independent_timer = None

    def _on_tick(self) -> None:
        if self._state is not EngineState.ACTIVE:
            return
        if not self._gate.try_acquire():
            logger.debug("Timer tick skipped, registration in progress")
            return
        try:
            self._update_metrics(self._clock.now(), registering=False)
        finally:
            self._gate.release()
        self._drain_pending()

    # --- ingestion ---

    def register_event(self, metadata: Any = None) -> bool:
        """Record one event, run the pipeline and the response hooks.

        ``metadata`` replaces the current metadata unless it is None.

        Returns:
            True if the event was recorded (or queued behind the running
            pipeline of this thread), False if the engine is stopped or the
            pipeline failed.
        """
        if self._state is not EngineState.ACTIVE:
            return False
        if self._gate.held_by_current_thread():
            self._pending.append(metadata)
            return True
        registered = self._register(metadata)
        self._drain_pending()
        return registered

    async def register_event_async(self, metadata: Any = None) -> bool:
        """register_event() without blocking the event loop while queued."""
        return await asyncio.to_thread(self.register_event, metadata)

    def register_multiple_events(
        self,
        count: int,
        metadata: Any = None,
        update_metadata_per_event: bool = False,
    ) -> int:
        """Register ``count`` events one after another.

        With ``update_metadata_per_event`` and mapping metadata, event ``n``
        carries a copy of the metadata with ``action = "BatchEvent n"``.

        Returns:
            Number of events registered.

        Raises:
            ValidationError: count outside [1, max_batch_events].
        """
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError(f"count must be an integer, got {type(count).__name__}")
        if not 1 <= count <= self._limits.max_batch_events:
            raise ValidationError(f"count must be between 1 and {self._limits.max_batch_events}, got {count}")
        registered = 0
        for index in range(count):
            event_metadata = metadata
            if update_metadata_per_event:
                base = dict(metadata) if isinstance(metadata, dict) else {}
                event_metadata = {**base, "action": f"BatchEvent {index + 1}"}
            if self.register_event(event_metadata):
                registered += 1
        return registered

    def _drain_pending(self) -> None:
        while self._pending and not self._gate.held_by_current_thread():
            try:
                metadata = self._pending.popleft()
            except IndexError:
                break
            self._register(metadata)

    def _register(self, metadata: Any) -> bool:
        with self._gate.hold():
            if self._state is not EngineState.ACTIVE:
                return False
            try:
                timestamp = self._clock.now()
                self._micro.add(timestamp)
                changed = False
                if metadata is not None:
                    changed = self._update_metadata(metadata)
                if self._frame_duration > 0:
                    self._frame.add(timestamp)
                self._update_metrics(timestamp, registering=True)
            except EventGearError as e:
                logger.error(
                    "Event registration failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return False
            self._run_response_hooks(changed)
            self._send_to_bridges(metadata)
            self._events.publish(
                EventRegistered(timestamp=timestamp, event_count=self._micro.events, metadata_changed=changed)
            )
        return True

    def _update_metadata(self, metadata: Any) -> bool:
        self._metadata_previous = self._metadata
        self._metadata = snapshot_metadata(metadata)
        return not metadata_equal(self._metadata, self._metadata_previous)

    def _run_response_hooks(self, metadata_changed: bool) -> None:
        response = 0.0
        if self._event_callback is not None and self._event_callback_active:
            started = _perf_ms()
            self._call_user("event_callback", self._event_callback, self._metadata)
            response = _perf_ms() - started
        metadata_time = 0.0
        if metadata_changed and self._metadata_change_callback is not None and self._metadata_change_callback_active:
            started = _perf_ms()
            self._call_user(
                "metadata_change_callback",
                self._metadata_change_callback,
                self._metadata,
                self._metadata_previous,
            )
            metadata_time = _perf_ms() - started

        if not self._performance_metrics:
            return
        event = self._duration_event
        event.response = response
        event.metadata = metadata_time
        event.total += response + metadata_time
        self._duration_total.total += response + metadata_time
        self._duration_total.response += response
        self._duration_total.metadata += metadata_time
        if self._frame_duration > 0:
            self._duration_frame.total += response + metadata_time
            self._duration_frame.response += response
            self._duration_frame.metadata += metadata_time

    def _send_to_bridges(self, metadata: Any) -> None:
        if metadata is None:
            return
        for bridge in list(self._bridges.values()):
            if bridge.auto_send:
                call_isolated(f"bridge:{bridge.name}", bridge.send, metadata, loop=self._loop)

    def _call_user(self, name: str, fn: Callable[..., Any], *args: Any) -> bool:
        return call_isolated(name, fn, *fit_arguments(fn, args), loop=self._loop)

    def _on_bucket_closed(self, snapshot: MicroSnapshot) -> None:
        if snapshot.events_last > 0 and snapshot.timestamp is not None:
            self._buffer.add_entry(snapshot.timestamp, snapshot.events_last)

    # --- update pipeline ---

    def _update_metrics(self, timestamp: float, *, registering: bool) -> None:
        started = _perf_ms()
        self._cleanup(timestamp)
        self._micro.update(timestamp)
        if self._frame_duration > 0:
            self._frame.update(timestamp)
        self._update_short_term(timestamp, registering=registering)
        self._frequency_max = max(
            self._frequency_max,
            self._micro.frequency,
            self._frame_frequency_last,
            self._short_term_frequency,
        )
        metrics_done = _perf_ms()

        closed = self._update_timeframe(timestamp, registering=registering)
        frame_done = _perf_ms()

        self._check_alarms(timestamp)
        self._tracker.check_callbacks(timestamp)
        alarms_done = _perf_ms()

        if closed is not None:
            self._events.publish(closed)
        if self._performance_metrics:
            self._account(metrics_done - started, frame_done - metrics_done, alarms_done - frame_done)

    def _account(self, metrics: float, frame: float, alarms: float) -> None:
        event = self._duration_event
        event.metrics = metrics
        event.frame = frame
        event.alarms = alarms
        event.total = metrics + frame + alarms
        event.response = 0.0
        event.metadata = 0.0
        profiles = [self._duration_total]
        if self._frame_duration > 0:
            profiles.append(self._duration_frame)
        for profile in profiles:
            profile.total += event.total
            profile.metrics += metrics
            profile.frame += frame
            profile.alarms += alarms

    def _cleanup(self, timestamp: float) -> None:
        window_ms = max(_CLEANUP_WINDOW_MS, self._frame_duration * 1000)
        self._buffer.clean(timestamp - window_ms)

    def _update_short_term(self, timestamp: float, *, registering: bool) -> None:
        size = self._short_term_buffer_size
        if size == 0:
            return
        stamps = self._short_term_timestamps
        if stamps and timestamp - stamps[-1] > self._inactivity_threshold_ms:
            stamps.clear()
            self._short_term_frequency = 0.0
            self._short_term_jitter = 0.0
        if registering:
            stamps.append(timestamp)
        if len(stamps) > size:
            del stamps[:-size]

        min_samples = 2 if size <= 10 else 5
        if len(stamps) < min_samples:
            return
        span = (stamps[-1] - stamps[0]) / 1000
        if span > _SHORT_TERM_MIN_SPAN_S:
            self._short_term_frequency = (len(stamps) - 1) / span
            self._short_term_jitter = calculate_jitter(stamps)
        else:
            # Window too narrow for a rate: mirror the last closed bucket (jitter in ms)
            self._short_term_frequency = self._micro.frequency_last
            self._short_term_jitter = self._micro.jitter_last * 1000

    def _update_timeframe(self, timestamp: float, *, registering: bool) -> FrameClosed | None:
        if self._frame_duration == 0:
            self._frame_frequency = self._micro.frequency
            return None
        if registering:
            self._frame_timestamps.append(timestamp)

        elapsed = (timestamp - self._timestamp_frame_start) / 1000
        if elapsed > self._frame_duration / 10:
            raw = calculate_frequency(self._frame.events, elapsed)
            if self._timeframe_count == 0:
                estimate = raw
            else:
                factor = self._smoothing_factor
                estimate = factor * raw + (1 - factor) * self._frame_frequency_last
        else:
            estimate = self._micro.frequency
        if estimate > self._frequency_max:
            estimate = self._frame_frequency_last
        self._frame_frequency = estimate

        if elapsed >= self._frame_duration:
            return self._close_frame(timestamp)
        return None

    def _close_frame(self, timestamp: float) -> FrameClosed:
        events = self._frame.events
        frequency = self._frame_frequency
        jitter = calculate_jitter(self._frame_timestamps)
        self._frame_jitter = jitter

        fired: list[tuple[BandAlarm, float, ThresholdDirection, float]] = []
        for alarm, value in (
            (self._jitter_alarm, jitter),
            (self._frequency_alarm, frequency),
            (self._max_events_alarm, float(events)),
        ):
            for direction, threshold in alarm.crossings(value):
                fired.append((alarm, value, direction, threshold))

        entry = TimeframeHistoryEntry(
            timeframe_index=self._timeframe_count,
            timestamp=timestamp,
            events=events,
            frequency=frequency,
            jitter=jitter,
            execution_durations=self._duration_frame.snapshot() if self._performance_metrics else None,
        )
        exceedances = self._current_exceedances()
        self._frame_history.append(entry)
        self._exceedances_history.append(exceedances)

        self._frame_frequency_last = frequency
        self._frame.reset()
        self._timestamp_frame_start = timestamp
        self._frame_timestamps = []
        self._timeframe_count += 1
        self._duration_frame.reset()

        for alarm, value, direction, threshold in fired:
            if alarm.callback is not None:
                self._fire_alarm(alarm.kind, alarm.callback, value, threshold, timestamp, direction)
        return FrameClosed(history=entry, exceedances=exceedances)

    def _check_alarms(self, timestamp: float) -> None:
        events = float(self._micro.events)
        seconds = self._micro.seconds
        checks: list[tuple[OneShotAlarm | IntervalAlarm, float]] = [
            (self._total_count_alarm, events),
            (self._total_time_alarm, seconds),
            (self._interval_time_alarm, seconds),
            (self._interval_count_alarm, events),
        ]
        for alarm, value in checks:
            threshold = alarm.threshold if isinstance(alarm, OneShotAlarm) else alarm.next_threshold
            callback = alarm.callback
            if alarm.check(value) and callback is not None:
                self._fire_alarm(alarm.kind, callback, value, threshold, timestamp)

    def _fire_alarm(
        self,
        kind: AlarmKind,
        callback: Callable[..., Any],
        value: float,
        threshold: float,
        timestamp: float,
        direction: ThresholdDirection | None = None,
    ) -> None:
        logger.debug("Alarm triggered", alarm=kind.value, value=value, threshold=threshold, direction=direction)
        self._call_user(f"{kind.value}_alarm", callback, self._metadata)
        self._events.publish(
            AlarmTriggered(
                kind=kind,
                value=value,
                threshold=threshold,
                timestamp=timestamp,
                direction=direction,
                metadata=self._metadata,
            )
        )

    def _current_exceedances(self) -> ExceedanceEntry:
        return ExceedanceEntry(
            jitter_exceedances=self._jitter_alarm.upper_count,
            frequency_lower_exceedances=self._frequency_alarm.lower_count,
            frequency_upper_exceedances=self._frequency_alarm.upper_count,
            max_events_lower_exceedances=self._max_events_alarm.lower_count,
            max_events_upper_exceedances=self._max_events_alarm.upper_count,
        )

    # --- configuration ---

    def set_max_history_size(self, size: int) -> TelemetryEngine:
        """Resize both histories, keeping the newest entries. 0 clears them."""
        value = _clamp_size("max_history_size", size, self._limits.max_history_size)
        with self._gate.hold():
            self._max_history_size = value
            self._frame_history = deque(self._frame_history, maxlen=value)
            self._exceedances_history = deque(self._exceedances_history, maxlen=value)
        return self

    def set_frame_duration(self, seconds: float) -> TelemetryEngine:
        """Change the timeframe length; restarts only the frame timer.

        0 disables timeframes and discards the current frame's data.
        """
        value = _require_finite("frame_duration", seconds)
        if value < 0:
            raise ValidationError(f"frame_duration must be >= 0, got {value}")
        with self._gate.hold():
            if value == self._frame_duration:
                return self
            self._frame_duration = value
            self._timestamp_frame_start = self._clock.now()
            if value == 0:
                self._frame.reset()
                self._frame_timestamps = []
                self._duration_frame.reset()
            self._start_frame_timer()
        return self

    def set_independent_interval_length(self, milliseconds: float) -> TelemetryEngine:
        """Change the independent timer period; <= 0 disables the timer."""
        value = _require_finite("independent_interval_ms", milliseconds)
        with self._gate.hold():
            self._independent_interval_ms = max(value, 0.0)
            self._start_independent_timer()
        return self

    def set_short_term_buffer_size(self, size: int) -> TelemetryEngine:
        value = _clamp_size("short_term_buffer_size", size, self._limits.max_short_term_buffer_size)
        with self._gate.hold():
            self._short_term_buffer_size = value
            if value == 0:
                self._short_term_timestamps = []
                self._short_term_frequency = 0.0
                self._short_term_jitter = 0.0
            elif self._short_term_timestamps:
                del self._short_term_timestamps[:-value]
                self._update_short_term(self._short_term_timestamps[-1], registering=False)
        return self

    def set_frequency_smoothing_factor(self, factor: float) -> TelemetryEngine:
        """Raises:
        ValidationError: factor outside (0, 1].
        """
        value = _validate_smoothing_factor(factor)
        with self._gate.hold():
            self._smoothing_factor = value
        return self

    def set_event_performance_metrics_active(self, active: bool) -> TelemetryEngine:
        with self._gate.hold():
            self._performance_metrics = bool(active)
            self._tracker.performance_metrics = bool(active)
        return self

    # --- alarms ---

    def set_callback_total_count(self, threshold: int, callback: Callable[..., Any] | None = None) -> TelemetryEngine:
        """Fire ``callback`` once when the total event count reaches ``threshold``.

        Raises:
            ValidationError: Invalid threshold, or threshold > 0 without a callable.
        """
        with self._gate.hold():
            self._total_count_alarm.configure(threshold, callback)
        return self

    def set_callback_total_time(self, seconds: float, callback: Callable[..., Any] | None = None) -> TelemetryEngine:
        """Fire ``callback`` once when running time reaches ``seconds``."""
        with self._gate.hold():
            self._total_time_alarm.configure(seconds, callback)
        return self

    def set_callback_interval_count(
        self, interval: int, callback: Callable[..., Any] | None = None
    ) -> TelemetryEngine:
        """Fire ``callback`` every ``interval`` events from now on."""
        with self._gate.hold():
            self._interval_count_alarm.configure(interval, callback, float(self._micro.events))
        return self

    def set_callback_interval_time(
        self, seconds: float, callback: Callable[..., Any] | None = None
    ) -> TelemetryEngine:
        """Fire ``callback`` every ``seconds`` of running time from now on."""
        with self._gate.hold():
            self._interval_time_alarm.configure(seconds, callback, self._micro.seconds)
        return self

    def set_callback_jitter(self, threshold: float, callback: Callable[..., Any] | None = None) -> TelemetryEngine:
        """Fire ``callback`` for every closed frame whose jitter (ms) reaches ``threshold``."""
        with self._gate.hold():
            self._jitter_alarm.configure(0, threshold, callback)
        return self

    def set_callback_frequency(
        self, lower: float, upper: float, callback: Callable[..., Any] | None = None
    ) -> TelemetryEngine:
        """Fire ``callback`` for every closed frame with frequency <= lower or >= upper."""
        with self._gate.hold():
            self._frequency_alarm.configure(lower, upper, callback)
        return self

    def set_callback_max_events_per_frame(
        self, lower: int, upper: int, callback: Callable[..., Any] | None = None
    ) -> TelemetryEngine:
        """Fire ``callback`` for every closed frame with events <= lower or >= upper."""
        with self._gate.hold():
            self._max_events_alarm.configure(lower, upper, callback)
        return self

    def set_callback_interval_count_active(self, active: bool) -> TelemetryEngine:
        with self._gate.hold():
            self._interval_count_alarm.active = bool(active)
        return self

    # --- response hooks ---

    def set_callback_event(self, callback: Callable[..., Any] | None) -> TelemetryEngine:
        """Call ``callback(metadata)`` after every registered event."""
        fn = _validate_optional_callable("Event callback", callback)
        with self._gate.hold():
            self._event_callback = fn
        return self

    def set_callback_metadata_change(self, callback: Callable[..., Any] | None) -> TelemetryEngine:
        """Call ``callback(current, previous)`` whenever metadata changes."""
        fn = _validate_optional_callable("Metadata change callback", callback)
        with self._gate.hold():
            self._metadata_change_callback = fn
        return self

    def set_callback_event_active(self, active: bool) -> TelemetryEngine:
        self._event_callback_active = bool(active)
        return self

    def set_callback_metadata_change_active(self, active: bool) -> TelemetryEngine:
        self._metadata_change_callback_active = bool(active)
        return self

    def reset_callback_event(self) -> TelemetryEngine:
        return self.set_callback_event(None)

    def reset_callback_metadata_change(self) -> TelemetryEngine:
        return self.set_callback_metadata_change(None)

    def meta_call(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Invoke ``fn`` isolated from failures, with ``args`` or the current metadata.

        Returns:
            False if ``fn`` raised (the error is logged).
        """
        if not callable(fn):
            raise ValidationError("meta_call requires a callable")
        name = getattr(fn, "__qualname__", "meta_call")
        return self._call_user(name, fn, *(args if args else (self._metadata,)))

    # --- resets ---

    def reset(self) -> TelemetryEngine:
        """Clear runtime data; callbacks, thresholds and configuration stay.

        One-shot alarms that already fired stay fired. Interval alarms are
        re-armed relative to the cleared counters.
        """
        with self._gate.hold():
            self._reset_runtime()
            self._tracker.reset_metrics()
            if self._state is EngineState.ACTIVE:
                self._anchor(self._clock.now())
            self._rebase_interval_alarms()
            logger.info("Engine reset")
        return self

    def _rebase_interval_alarms(self) -> None:
        for alarm, current in (
            (self._interval_count_alarm, float(self._micro.events)),
            (self._interval_time_alarm, self._micro.seconds),
        ):
            if alarm.interval > 0:
                alarm.next_threshold = current + alarm.interval

    def reset_callbacks_with_thresholds(self) -> TelemetryEngine:
        """Remove every alarm and tracker registration; data stays."""
        with self._gate.hold():
            for alarm in (
                self._total_count_alarm,
                self._total_time_alarm,
                self._interval_count_alarm,
                self._interval_time_alarm,
                self._jitter_alarm,
                self._frequency_alarm,
                self._max_events_alarm,
            ):
                alarm.clear()
            self._tracker.reset()
        return self

    def reset_event_gear(self) -> TelemetryEngine:
        """Full reset: data, alarms, hooks, bridges and subscribers."""
        with self._gate.hold():
            self.reset()
            self.reset_callback_event()
            self.reset_callback_metadata_change()
            self.reset_callbacks_with_thresholds()
            for name in list(self._bridges):
                self.detach_bridge(name)
            self._events.clear()
            self._pending.clear()
        return self

    def reset_configuration(self) -> TelemetryEngine:
        """Restore default configuration; frame duration and history size stay."""
        with self._gate.hold():
            self._short_term_buffer_size = min(
                int(ENGINE_DEFAULTS["short_term_buffer_size"]), self._limits.max_short_term_buffer_size
            )
            del self._short_term_timestamps[: -self._short_term_buffer_size]
            self._smoothing_factor = float(ENGINE_DEFAULTS["frequency_smoothing_factor"])
            self.set_event_performance_metrics_active(bool(ENGINE_DEFAULTS["performance_metrics"]))
            self.set_independent_interval_length(float(ENGINE_DEFAULTS["independent_interval_ms"]))
            self._event_callback_active = True
            self._metadata_change_callback_active = True
            self._interval_count_alarm.active = True
        return self

    # --- bridges ---

    def attach_bridge(self, bridge: BridgeProtocol) -> TelemetryEngine:
        """Attach a bridge and connect its inbound side to register_event().

        Raises:
            ValidationError: A bridge with the same name is attached.
        """
        if bridge.name in self._bridges:
            raise ValidationError(f"Bridge '{bridge.name}' is already attached")
        bridge.connect(self.register_event)
        self._bridges[bridge.name] = bridge
        logger.info("Bridge attached", bridge=bridge.name, auto_send=bridge.auto_send)
        return self

    def detach_bridge(self, name: str) -> bool:
        """Disconnect and close a bridge. Returns whether it was attached."""
        bridge = self._bridges.pop(name, None)
        if bridge is None:
            return False
        try:
            bridge.disconnect()
            bridge.close()
        except Exception as e:
            # Detaching must not fail because a transport did
            logger.warning(
                "Bridge close failed",
                bridge=name,
                error_type=type(e).__name__,
                error=str(e),
            )
        logger.info("Bridge detached", bridge=name)
        return True

    @property
    def bridges(self) -> dict[str, BridgeProtocol]:
        return dict(self._bridges)

    # --- value lookup ---

    def get_value(self, shortcut: ValueShortcut | str) -> Any:
        """Resolve a ValueShortcut (or its ``"$name"`` string form).

        Raises:
            ValidationError: Unknown shortcut name.
        """
        try:
            key = ValueShortcut(shortcut)
        except ValueError:
            raise ValidationError(f"Unknown value shortcut: {shortcut!r}") from None
        return _VALUE_GETTERS[key](self)

    # --- state accessors ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is EngineState.ACTIVE

    @property
    def registration_in_progress(self) -> bool:
        return self._gate.busy

    @property
    def events(self) -> SubscriberRegistry:
        """Subscriber registry for EngineStarted, FrameClosed, AlarmTriggered, ..."""
        return self._events

    @property
    def callbacks(self) -> CallbackTracker:
        """The embedded CallbackTracker, checked at the end of every pipeline run."""
        return self._tracker

    @property
    def limits(self) -> EngineLimits:
        return self._limits

    # configuration

    @property
    def max_history_size(self) -> int:
        return self._max_history_size

    @property
    def frame_duration(self) -> float:
        return self._frame_duration

    @property
    def independent_interval_ms(self) -> float:
        return self._independent_interval_ms

    @property
    def short_term_buffer_size(self) -> int:
        return self._short_term_buffer_size

    @property
    def frequency_smoothing_factor(self) -> float:
        return self._smoothing_factor

    @property
    def performance_metrics_active(self) -> bool:
        return self._performance_metrics

    @property
    def callback_event_active(self) -> bool:
        return self._event_callback_active

    @property
    def callback_metadata_change_active(self) -> bool:
        return self._metadata_change_callback_active

    @property
    def callback_interval_count_active(self) -> bool:
        return self._interval_count_alarm.active

    # metadata

    @property
    def metadata(self) -> Any:
        return self._metadata

    @property
    def metadata_previous(self) -> Any:
        return self._metadata_previous

    @property
    def metadata_pair(self) -> MetadataPair:
        return MetadataPair(current=self._metadata, previous=self._metadata_previous)

    # metrics

    @property
    def metrics_micro(self) -> MicroSnapshot:
        return self._micro.snapshot()

    @property
    def metrics_frame(self) -> MetricsSnapshot:
        return self._frame.snapshot()

    @property
    def duration_event(self) -> ExecutionDurations:
        return self._duration_event.snapshot()

    @property
    def duration_total(self) -> ExecutionDurations:
        return self._duration_total.snapshot()

    @property
    def duration_frame(self) -> ExecutionDurations:
        return self._duration_frame.snapshot()

    @property
    def timestamp_start(self) -> float | None:
        return self._timestamp_start

    @property
    def timestamp_last_event(self) -> float | None:
        return self._micro.timestamp_last

    @property
    def timestamp_frame_start(self) -> float:
        return self._timestamp_frame_start

    @property
    def total_running_time(self) -> float:
        """Seconds since start (or the last reset while active)."""
        return self._micro.seconds

    @property
    def timeframe_count(self) -> int:
        """Number of closed timeframes."""
        return self._timeframe_count

    @property
    def event_count_total(self) -> int:
        return self._micro.events

    @property
    def event_count_last_second(self) -> int:
        return self._buffer.get_count_in_last_milliseconds(1_000) + self._micro.events_now

    @property
    def event_count_last_minute(self) -> int:
        return self._buffer.get_count_in_last_milliseconds(60_000) + self._micro.events_now

    @property
    def event_count_timeframe(self) -> int:
        return self._frame.events

    @property
    def total_frequency(self) -> float:
        return self._micro.frequency

    @property
    def frequency_max(self) -> float:
        return self._frequency_max

    @property
    def frequency_per_minute(self) -> float:
        return self._micro.frequency * 60

    @property
    def short_term_frequency(self) -> float:
        return self._short_term_frequency

    @property
    def short_term_jitter(self) -> float:
        """Jitter of the short-term window in milliseconds."""
        return self._short_term_jitter

    @property
    def frame_frequency(self) -> float:
        """Frequency estimate of the frame in progress."""
        return self._frame_frequency

    @property
    def last_timeframe_frequency(self) -> float:
        return self._frame_frequency_last

    @property
    def last_timeframe_frequency_per_minute(self) -> float:
        return self._frame_frequency_last * 60

    @property
    def last_timeframe_jitter(self) -> float:
        return self._frame_jitter

    # alarms

    @property
    def alarm_thresholds(self) -> AlarmThresholds:
        return AlarmThresholds(
            total_count=self._total_count_alarm.threshold,
            total_time=self._total_time_alarm.threshold,
            interval_count=self._interval_count_alarm.interval,
            interval_count_threshold=self._interval_count_alarm.next_threshold,
            interval_time=self._interval_time_alarm.interval,
            interval_time_threshold=self._interval_time_alarm.next_threshold,
            jitter=self._jitter_alarm.upper,
            frequency_lower=self._frequency_alarm.lower,
            frequency_upper=self._frequency_alarm.upper,
            max_events_lower=self._max_events_alarm.lower,
            max_events_upper=self._max_events_alarm.upper,
        )

    @property
    def total_count_triggered(self) -> bool:
        return self._total_count_alarm.triggered

    @property
    def total_time_triggered(self) -> bool:
        return self._total_time_alarm.triggered

    @property
    def exceedances(self) -> ExceedanceEntry:
        return self._current_exceedances()

    # histories and raw timestamps

    @property
    def frame_history(self) -> list[TimeframeHistoryEntry]:
        return list(self._frame_history)

    @property
    def exceedances_history(self) -> list[ExceedanceEntry]:
        return list(self._exceedances_history)

    @property
    def rolling_buffer_entries(self) -> list[BufferEntry]:
        return self._buffer.get_all_entries()

    @property
    def short_term_timestamps(self) -> list[float]:
        return list(self._short_term_timestamps)

    @property
    def frame_timestamps(self) -> list[float]:
        return list(self._frame_timestamps)


_VALUE_GETTERS: dict[ValueShortcut, Callable[[TelemetryEngine], Any]] = {
    ValueShortcut.TOTAL_EVENT_COUNT: lambda e: e.event_count_total,
    ValueShortcut.TOTAL_RUNNING_TIME: lambda e: e.total_running_time,
    ValueShortcut.FREQUENCY: lambda e: e.total_frequency,
    ValueShortcut.FREQUENCY_MAX: lambda e: e.frequency_max,
    ValueShortcut.FREQUENCY_SHORT: lambda e: e.short_term_frequency,
    ValueShortcut.FREQUENCY_MICRO: lambda e: e.metrics_micro.frequency_last,
    ValueShortcut.FREQUENCY_TIMEFRAME: lambda e: e.frame_frequency,
    ValueShortcut.JITTER_SHORT: lambda e: e.short_term_jitter,
    ValueShortcut.JITTER_MICRO: lambda e: e.metrics_micro.jitter_last,
    ValueShortcut.JITTER_TIMEFRAME: lambda e: e.last_timeframe_jitter,
    ValueShortcut.EVENTS_IN_LAST_SECOND: lambda e: e.event_count_last_second,
    ValueShortcut.EVENTS_IN_LAST_MINUTE: lambda e: e.event_count_last_minute,
    ValueShortcut.TIMEFRAME_INDEX: lambda e: e.timeframe_count,
    ValueShortcut.METADATA: lambda e: e.metadata,
    ValueShortcut.METADATA_PREVIOUS: lambda e: e.metadata_previous,
}
