# src/eventgear/core/timers.py
"""Periodic scheduling primitive used by the engine and CallbackTracker.

A TimerFactory builds a named PeriodicTimer for a period and a callback.
Production uses ThreadingTimer (one daemon thread per timer). Tests use
ManualTimerFactory and fire ticks explicitly::

    timers = ManualTimerFactory()
    engine = TelemetryEngine(0.3, clock=clock, timer_factory=timers)
    engine.start()
    timers.fire("independent")
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

TickCallback = Callable[[], None]


class PeriodicTimer(Protocol):
    """A started-on-demand periodic tick source."""

    @property
    def name(self) -> str:
        """Timer name, unique per owner."""
        ...

    @property
    def period_ms(self) -> float:
        """Tick period in milliseconds."""
        ...

    @property
    def running(self) -> bool:
        """Whether ticks are currently scheduled."""
        ...

    def start(self) -> None:
        """Begin ticking. No-op if already running."""
        ...

    def cancel(self) -> None:
        """Stop ticking. No further ticks are delivered after return,
        except one already executing on another thread."""
        ...


TimerFactory = Callable[[str, float, TickCallback], PeriodicTimer]


class ThreadingTimer:
    """Daemon-thread timer ticking every ``period_ms`` milliseconds.

    Ticks never overlap: the next wait starts after the callback returns,
    so a slow callback delays rather than stacks ticks. Exceptions raised
    by the callback are logged and the timer keeps running.
    """

    def __init__(self, name: str, period_ms: float, callback: TickCallback) -> None:
        if period_ms <= 0:
            raise ValueError(f"period_ms must be > 0, got {period_ms}")
        self._name = name
        self._period_ms = period_ms
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def period_ms(self) -> float:
        return self._period_ms

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=f"eventgear-{self._name}",
            daemon=True,
        )
        self._thread.start()

    def _run(self, stop_event: threading.Event) -> None:
        interval = self._period_ms / 1000
        while not stop_event.wait(interval):
            try:
                self._callback()
            except Exception as e:
                logger.error(
                    "Timer tick failed",
                    timer=self._name,
                    error_type=type(e).__name__,
                    error=str(e),
                )

    def cancel(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        # A tick callback may cancel its own timer
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self._period_ms / 1000, 1.0))


def threading_timer_factory(name: str, period_ms: float, callback: TickCallback) -> PeriodicTimer:
    """Default TimerFactory."""
    return ThreadingTimer(name, period_ms, callback)


class ManualTimer:
    """Timer whose ticks are delivered by calling fire()."""

    def __init__(self, name: str, period_ms: float, callback: TickCallback) -> None:
        self._name = name
        self._period_ms = period_ms
        self._callback = callback
        self._running = False
        self.fired_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def period_ms(self) -> float:
        return self._period_ms

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True

    def cancel(self) -> None:
        self._running = False

    def fire(self) -> bool:
        """Deliver one tick if running. Returns whether the tick ran."""
        if not self._running:
            return False
        self.fired_count += 1
        self._callback()
        return True


class ManualTimerFactory:
    """TimerFactory for tests. Keeps the latest timer created per name."""

    def __init__(self) -> None:
        self.timers: dict[str, ManualTimer] = {}

    def __call__(self, name: str, period_ms: float, callback: TickCallback) -> ManualTimer:
        timer = ManualTimer(name, period_ms, callback)
        self.timers[name] = timer
        return timer

    def fire(self, name: str, times: int = 1) -> int:
        """Fire the named timer ``times`` times. Returns ticks delivered.

        Raises:
            KeyError: If no timer with that name was ever created.
        """
        timer = self.timers[name]
        return sum(1 for _ in range(times) if timer.fire())

    def is_running(self, name: str) -> bool:
        return name in self.timers and self.timers[name].running
