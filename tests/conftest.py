# tests/conftest.py
"""Shared test fixtures.

Deterministic time:
- ``clock``: a MockClock starting at 0 ms; tests advance it explicitly
- ``timers``: a ManualTimerFactory; timer ticks happen only when a test
  calls ``timers.fire(name)``
- ``make_engine``: builds a TelemetryEngine wired to both

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from eventgear.core.clock import MockClock
from eventgear.core.timers import ManualTimerFactory
from eventgear.engine.engine import TelemetryEngine


@pytest.fixture
def clock() -> MockClock:
    return MockClock(start=0.0)


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def make_engine(clock: MockClock, timers: ManualTimerFactory) -> Iterator[Callable[..., TelemetryEngine]]:
    """Factory for engines on the mock clock and manual timers.

    Engines are stopped at teardown.
    """
    created: list[TelemetryEngine] = []

    def _make(frame_duration: float = 0.0, max_history_size: int = 100, **kwargs: Any) -> TelemetryEngine:
        engine = TelemetryEngine(
            frame_duration,
            max_history_size,
            clock=clock,
            timer_factory=timers,
            **kwargs,
        )
        created.append(engine)
        return engine

    yield _make

    for engine in created:
        engine.stop()


class Recorder:
    """Callable that records the arguments of every call."""

    def __init__(self, result: Any = None) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.result = result

    def __call__(self, *args: Any) -> Any:
        self.calls.append(args)
        return self.result

    @property
    def count(self) -> int:
        return len(self.calls)


@pytest.fixture
def recorder() -> Callable[..., Recorder]:
    return Recorder


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
