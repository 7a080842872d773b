# src/eventgear/core/clock.py
"""Clock abstraction for deterministic metrics and alarm tests.

Every timestamp the engine records comes from a Clock. Production code
uses SystemClock (the default); tests inject MockClock and move time
explicitly, so frame closure and time alarms never depend on sleep().

Units are milliseconds, matching the resolution at which MicroMetrics
distinguishes buckets.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract monotonic clock.

    Implementations:
    - SystemClock: Uses time.perf_counter() (production)
    - MockClock: Returns controllable times (testing)
    """

    def now(self) -> float:
        """Return monotonic time in milliseconds.

        Must never go backwards; metric objects reject earlier timestamps.
        """
        ...


class SystemClock:
    """Production clock backed by time.perf_counter_ns().

    Readings are truncated to whole milliseconds: events within the same
    millisecond share one bucket, and the rolling buffer holds one slot
    per millisecond.
    """

    def now(self) -> float:
        return float(time.perf_counter_ns() // 1_000_000)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        engine = TelemetryEngine(0.3, clock=clock, timer_factory=timers)
        engine.start()

        clock.advance(100)  # 100 ms later
        engine.register_event()
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def now(self) -> float:
        return self._current

    def advance(self, milliseconds: float) -> None:
        """Advance mock time.

        Raises:
            ValueError: If milliseconds is negative.
        """
        if milliseconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {milliseconds}")
        self._current += milliseconds

    def set(self, value: float) -> None:
        """Set mock time to an absolute value.

        Note:
            Unlike advance(), this can move time backwards. Metric objects
            will reject the next timestamp if you do.
        """
        self._current = value


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
