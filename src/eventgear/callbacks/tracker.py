# src/eventgear/callbacks/tracker.py
"""Conditional callback scheduler.

A CallbackTracker holds registrations of (check, action, priority, check
method). Each check_callbacks(now) pass walks them in priority order
(highest first, registration order among equals), evaluates the check
according to its method and runs the action when it passes:

- default: check evaluated on every pass
- customOnce: evaluated until it first passes, then frozen (action runs once)
- timeOnce: evaluated once ``now >= threshold`` (auto-true without a check),
  then frozen
- timeInterval: evaluated once ``now >= threshold``; on success the
  threshold advances by whole intervals past ``now``, so overshooting
  several periods fires once, not once per missed period

The tracker is engine-agnostic: a TelemetryEngine embeds one, but it also
works standalone, optionally driving itself from a periodic timer.

Failure isolation: a raising check counts as false, a raising action is
logged; neither stops the pass.
"""

from __future__ import annotations

import asyncio
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from numbers import Real
from typing import Any

import structlog

from eventgear.callbacks.execution import invoke_callback
from eventgear.contracts.enums import CheckMethod
from eventgear.contracts.errors import CallbackExecutionError, CallbackNotFoundError, ValidationError
from eventgear.contracts.metrics import CallbackMetrics
from eventgear.core.clock import DEFAULT_CLOCK, Clock
from eventgear.core.timers import PeriodicTimer, TimerFactory, threading_timer_factory
from eventgear.metrics.calculations import next_interval_threshold

logger = structlog.get_logger(__name__)

CheckFn = Callable[[], Any]
ActionFn = Callable[[], Any]

_TIME_METHODS = frozenset({CheckMethod.TIME_ONCE, CheckMethod.TIME_INTERVAL})
# Fields accepted by set_callback_properties()
_UPDATABLE_FIELDS = frozenset(
    {
        "check_fn",
        "action_fn",
        "priority",
        "type",
        "check_active",
        "callback_active",
        "check_method",
        "check_true_flag",
        "threshold",
        "interval",
    }
)


@dataclass
class _Registration:
    """Mutable registration state. Never leaves the tracker."""

    id: str
    check_fn: CheckFn | None
    action_fn: ActionFn | None
    priority: float
    type: str | None
    check_active: bool
    callback_active: bool
    check_method: CheckMethod
    threshold: float
    interval: float
    check_true_flag: bool = False
    check_true_count: int = 0
    last_check_true_timestamp: float = 0.0
    last_execution_time: float = 0.0
    total_execution_time: float = 0.0
    last_check_duration: float = 0.0
    total_check_duration: float = 0.0

    def reset_metrics(self) -> None:
        self.check_true_flag = False
        self.check_true_count = 0
        self.last_check_true_timestamp = 0.0
        self.last_execution_time = 0.0
        self.total_execution_time = 0.0
        self.last_check_duration = 0.0
        self.total_check_duration = 0.0

    def to_metrics(self) -> CallbackMetrics:
        return CallbackMetrics(
            id=self.id,
            type=self.type,
            priority=int(self.priority),
            check_active=self.check_active,
            callback_active=self.callback_active,
            check_method=self.check_method,
            check_true_flag=self.check_true_flag,
            threshold=self.threshold,
            interval=self.interval,
            check_true_count=self.check_true_count,
            last_check_true_timestamp=self.last_check_true_timestamp,
            last_execution_time=self.last_execution_time,
            total_execution_time=self.total_execution_time,
            last_check_duration=self.last_check_duration,
            total_check_duration=self.total_check_duration,
        )


def _coerce_check_method(value: CheckMethod | str) -> CheckMethod:
    try:
        return CheckMethod(value)
    except ValueError:
        valid = ", ".join(m.value for m in CheckMethod)
        raise ValidationError(f"Invalid check method {value!r}, expected one of: {valid}") from None


def _require_number(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _validate_priority(value: object) -> float:
    priority = _require_number("priority", value)
    if not 0 <= priority <= 10:
        raise ValidationError(f"priority must be between 0 and 10, got {value}")
    return priority


class CallbackTracker:
    """Priority-ordered conditional callback scheduler.

    Thread Safety:
        Registration changes and check passes are serialized by an internal
        re-entrant lock, so a check or action may itself modify the tracker.

    Args:
        performance_metrics: Record check/action execution durations
        interval_duration_ms: Drive check_callbacks() from a periodic timer
            every N ms; 0 leaves driving to the owner
        clock: Source of ``now`` when check_callbacks() gets none
        timer_factory: Builds the self-driving timer
        loop: Event loop receiving awaitables returned by actions
    """

    TIMER_NAME = "callback-tracker"

    def __init__(
        self,
        performance_metrics: bool = True,
        interval_duration_ms: float = 0,
        *,
        clock: Clock | None = None,
        timer_factory: TimerFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._timer_factory = timer_factory if timer_factory is not None else threading_timer_factory
        self._loop = loop
        self._lock = threading.RLock()
        self._registrations: dict[str, _Registration] = {}
        self._sorted: list[_Registration] = []
        self._performance_metrics = performance_metrics
        self._current_id = ""
        self._total_check_execution_time = 0.0
        self._total_callback_execution_time = 0.0
        self._timer: PeriodicTimer | None = None
        self._interval_duration_ms = 0.0
        self.set_interval_duration(interval_duration_ms)

    # --- registration ---

    def register_callback(
        self,
        id: str,
        check_fn: CheckFn | None,
        action_fn: ActionFn | None = None,
        priority: float = 5,
        type: str | None = None,
        check_active: bool = True,
        callback_active: bool = True,
        check_method: CheckMethod | str = CheckMethod.DEFAULT,
        threshold: float = 0,
        interval: float = 0,
    ) -> None:
        """Register a callback, or update the registration with this id.

        Updating keeps the collected metrics but clears the check-true flag,
        so a frozen customOnce/timeOnce registration becomes live again.

        Raises:
            ValidationError: Empty id, non-callable check/action, priority
                outside [0, 10], unknown check method, non-finite threshold
                or interval, or timeInterval without a positive interval.
        """
        if not isinstance(id, str) or not id:
            raise ValidationError("Callback id must be a non-empty string")
        method = _coerce_check_method(check_method)
        if check_fn is None:
            if method not in _TIME_METHODS:
                raise ValidationError(f"Check function is required for check method {method.value!r}")
        elif not callable(check_fn):
            raise ValidationError("Check function must be callable")
        if action_fn is not None and not callable(action_fn):
            raise ValidationError("Callback must be callable or None")
        priority_value = _validate_priority(priority)
        threshold_value = _require_number("threshold", threshold)
        interval_value = _require_number("interval", interval)
        if method is CheckMethod.TIME_INTERVAL and interval_value <= 0:
            raise ValidationError("timeInterval callbacks require an interval > 0")

        with self._lock:
            existing = self._registrations.get(id)
            if existing is not None:
                existing.check_fn = check_fn
                existing.action_fn = action_fn
                existing.priority = priority_value
                existing.type = type
                existing.check_active = bool(check_active)
                existing.callback_active = bool(callback_active)
                existing.check_method = method
                existing.check_true_flag = False
                existing.threshold = threshold_value
                existing.interval = interval_value
            else:
                self._registrations[id] = _Registration(
                    id=id,
                    check_fn=check_fn,
                    action_fn=action_fn,
                    priority=priority_value,
                    type=type,
                    check_active=bool(check_active),
                    callback_active=bool(callback_active),
                    check_method=method,
                    threshold=threshold_value,
                    interval=interval_value,
                )
            self._sort()

    def remove_callback(self, id: str) -> bool:
        """Remove a registration. Returns whether it existed."""
        with self._lock:
            removed = self._registrations.pop(id, None)
            if removed is not None:
                self._sort()
            return removed is not None

    def _sort(self) -> None:
        # sorted() is stable: equal priorities keep registration order
        self._sorted = sorted(self._registrations.values(), key=lambda r: -r.priority)

    def _get(self, id: str | None) -> _Registration:
        key = self._current_id if id is None else id
        if not key:
            raise CallbackNotFoundError(key)
        registration = self._registrations.get(key)
        if registration is None:
            raise CallbackNotFoundError(key)
        return registration

    # --- evaluation ---

    def check_callbacks(self, now: float | None = None) -> int:
        """Evaluate every active registration once.

        Args:
            now: Timestamp for time-based check methods; defaults to the
                tracker's clock

        Returns:
            Number of registrations whose check passed in this pass.
        """
        if now is None:
            now = self._clock.now()
        passed_count = 0
        with self._lock:
            for registration in list(self._sorted):
                if not registration.check_active:
                    continue
                self._current_id = registration.id
                try:
                    if self._check_one(registration, now):
                        passed_count += 1
                finally:
                    self._current_id = ""
        return passed_count

    def _check_one(self, registration: _Registration, now: float) -> bool:
        method = registration.check_method
        if method is CheckMethod.CUSTOM_ONCE and registration.check_true_flag:
            return False
        if method is CheckMethod.TIME_ONCE and (registration.check_true_flag or now < registration.threshold):
            return False
        if method is CheckMethod.TIME_INTERVAL and now < registration.threshold:
            return False

        check_start = time.perf_counter()
        if registration.check_fn is not None:
            passed = self._evaluate(registration)
        else:
            passed = method in _TIME_METHODS
        if self._performance_metrics:
            duration = (time.perf_counter() - check_start) * 1000
            registration.last_check_duration = duration
            registration.total_check_duration += duration
            self._total_check_execution_time += duration

        if not passed:
            return False

        if method is CheckMethod.TIME_INTERVAL:
            registration.threshold = next_interval_threshold(now, registration.interval, registration.threshold)
        registration.last_check_true_timestamp = now
        registration.check_true_flag = True
        registration.check_true_count += 1
        if registration.action_fn is not None and registration.callback_active:
            self._execute(registration)
        return True

    def _evaluate(self, registration: _Registration) -> bool:
        assert registration.check_fn is not None
        try:
            return bool(invoke_callback(registration.id, registration.check_fn, loop=self._loop))
        except CallbackExecutionError as e:
            logger.warning(
                "Callback check failed",
                callback=registration.id,
                error_type=type(e.original).__name__,
                error=str(e.original),
            )
            return False

    def _execute(self, registration: _Registration) -> None:
        assert registration.action_fn is not None
        start = time.perf_counter()
        try:
            invoke_callback(registration.id, registration.action_fn, loop=self._loop)
        except CallbackExecutionError as e:
            logger.warning(
                "Callback action failed",
                callback=registration.id,
                error_type=type(e.original).__name__,
                error=str(e.original),
            )
        if self._performance_metrics:
            duration = (time.perf_counter() - start) * 1000
            registration.last_execution_time = duration
            registration.total_execution_time += duration
            self._total_callback_execution_time += duration

    # --- self-driven checking ---

    def set_interval_duration(self, milliseconds: float) -> None:
        """Drive check_callbacks() every ``milliseconds``; 0 stops it.

        Raises:
            ValidationError: If milliseconds is negative or not a number.
        """
        value = _require_number("interval_duration_ms", milliseconds)
        if value < 0:
            raise ValidationError(f"interval_duration_ms must be >= 0, got {milliseconds}")
        with self._lock:
            self._stop_timer()
            self._interval_duration_ms = value
            if value > 0:
                self._timer = self._timer_factory(self.TIMER_NAME, value, self.check_callbacks)
                self._timer.start()

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def interval_duration_ms(self) -> float:
        return self._interval_duration_ms

    # --- resets ---

    def reset(self) -> None:
        """Remove every registration, zero global metrics, stop the timer."""
        with self._lock:
            self._registrations.clear()
            self._sorted = []
            self._total_check_execution_time = 0.0
            self._total_callback_execution_time = 0.0
            self._stop_timer()
            self._interval_duration_ms = 0.0

    def reset_metrics(self) -> None:
        """Zero global metrics and the metrics of every registration."""
        with self._lock:
            self._total_check_execution_time = 0.0
            self._total_callback_execution_time = 0.0
            for registration in self._registrations.values():
                registration.reset_metrics()

    def reset_metrics_by_id(self, id: str | None = None) -> None:
        """Zero the metrics of one registration (default: the one being checked).

        Raises:
            CallbackNotFoundError: Unknown or empty id.
        """
        with self._lock:
            self._get(id).reset_metrics()

    # --- property access ---

    def set_callback_properties(self, id: str, **updates: Any) -> None:
        """Update several registration fields at once.

        Values are validated exactly as by register_callback().

        Raises:
            CallbackNotFoundError: Unknown id.
            ValidationError: Unknown field or invalid value.
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown callback properties: {sorted(unknown)}")
        with self._lock:
            registration = self._get(id)
            check_fn = updates.get("check_fn", registration.check_fn)
            action_fn = updates.get("action_fn", registration.action_fn)
            method = _coerce_check_method(updates.get("check_method", registration.check_method))
            if check_fn is None:
                if method not in _TIME_METHODS:
                    raise ValidationError(f"Check function is required for check method {method.value!r}")
            elif not callable(check_fn):
                raise ValidationError("Check function must be callable")
            if action_fn is not None and not callable(action_fn):
                raise ValidationError("Callback must be callable or None")
            priority = _validate_priority(updates.get("priority", registration.priority))
            threshold = _require_number("threshold", updates.get("threshold", registration.threshold))
            interval = _require_number("interval", updates.get("interval", registration.interval))
            if method is CheckMethod.TIME_INTERVAL and interval <= 0:
                raise ValidationError("timeInterval callbacks require an interval > 0")

            registration.check_fn = check_fn
            registration.action_fn = action_fn
            registration.check_method = method
            registration.threshold = threshold
            registration.interval = interval
            registration.type = updates.get("type", registration.type)
            registration.check_active = bool(updates.get("check_active", registration.check_active))
            registration.callback_active = bool(updates.get("callback_active", registration.callback_active))
            registration.check_true_flag = bool(updates.get("check_true_flag", registration.check_true_flag))
            if priority != registration.priority:
                registration.priority = priority
                self._sort()

    def set_check_function(self, fn: CheckFn | None, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, check_fn=fn)

    def set_callback(self, fn: ActionFn | None, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, action_fn=fn)

    def set_priority(self, value: float, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, priority=value)

    def set_type(self, value: str | None, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, type=value)

    def set_callback_active(self, value: bool, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, callback_active=value)

    def set_check_active(self, value: bool, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, check_active=value)

    def set_check_method(self, method: CheckMethod | str, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, check_method=method)

    def set_check_true_flag(self, value: bool, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, check_true_flag=value)

    def set_threshold(self, value: float, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, threshold=value)

    def set_threshold_interval(self, value: float, id: str | None = None) -> None:
        self.set_callback_properties(self._get(id).id, interval=value)

    def get_callback_metrics(self) -> list[CallbackMetrics]:
        """Metrics of every registration, in priority order."""
        with self._lock:
            return [registration.to_metrics() for registration in self._sorted]

    def get_callback_metrics_by_id(self, id: str | None = None) -> CallbackMetrics:
        with self._lock:
            return self._get(id).to_metrics()

    def is_callback_set(self, id: str | None = None) -> bool:
        return self._get(id).action_fn is not None

    def is_check_function_set(self, id: str | None = None) -> bool:
        return self._get(id).check_fn is not None

    def get_priority(self, id: str | None = None) -> float:
        return self._get(id).priority

    def get_type(self, id: str | None = None) -> str | None:
        return self._get(id).type

    def get_callback_active(self, id: str | None = None) -> bool:
        return self._get(id).callback_active

    def get_check_active(self, id: str | None = None) -> bool:
        return self._get(id).check_active

    def get_check_method(self, id: str | None = None) -> CheckMethod:
        return self._get(id).check_method

    def get_check_true_flag(self, id: str | None = None) -> bool:
        return self._get(id).check_true_flag

    def get_threshold(self, id: str | None = None) -> float:
        return self._get(id).threshold

    def get_threshold_interval(self, id: str | None = None) -> float:
        return self._get(id).interval

    @property
    def callback_ids(self) -> list[str]:
        """Registration ids in priority order."""
        with self._lock:
            return [registration.id for registration in self._sorted]

    @property
    def current_callback_id(self) -> str:
        """Id of the registration being evaluated, "" outside a pass."""
        return self._current_id

    @property
    def total_check_execution_time(self) -> float:
        return self._total_check_execution_time

    @property
    def total_callback_execution_time(self) -> float:
        return self._total_callback_execution_time

    @property
    def performance_metrics(self) -> bool:
        return self._performance_metrics

    @performance_metrics.setter
    def performance_metrics(self, active: bool) -> None:
        self._performance_metrics = bool(active)

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, id: object) -> bool:
        return id in self._registrations
