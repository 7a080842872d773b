# src/eventgear/contracts/events.py
"""Observability events published on a TelemetryEngine's subscriber registry.

Subscribe by type::

    engine.events.subscribe(FrameClosed, lambda e: print(e.history.frequency))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eventgear.contracts.enums import AlarmKind, ThresholdDirection
from eventgear.contracts.metrics import ExceedanceEntry, TimeframeHistoryEntry


@dataclass(frozen=True, slots=True)
class EngineStarted:
    """Engine switched from stopped to active."""

    timestamp: float


@dataclass(frozen=True, slots=True)
class EngineStopped:
    """Engine switched from active to stopped."""

    timestamp: float


@dataclass(frozen=True, slots=True)
class EventRegistered:
    """A registration pipeline completed.

    Attributes:
        timestamp: Clock reading the event was recorded at
        event_count: Total events after this registration
        metadata_changed: Whether metadata differed from the previous value
    """

    timestamp: float
    event_count: int
    metadata_changed: bool


@dataclass(frozen=True, slots=True)
class FrameClosed:
    """A timeframe closed and was appended to history."""

    history: TimeframeHistoryEntry
    exceedances: ExceedanceEntry


@dataclass(frozen=True, slots=True)
class AlarmTriggered:
    """An alarm threshold was crossed and its callback invoked.

    ``direction`` is None for alarms without a band (total/interval alarms).
    """

    kind: AlarmKind
    value: float
    threshold: float
    timestamp: float
    direction: ThresholdDirection | None = None
    metadata: Any = None
