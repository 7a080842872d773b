# src/eventgear/metrics/profile.py
"""Accumulator for the engine's own processing-time overhead."""

from __future__ import annotations

from eventgear.contracts.metrics import ExecutionDurations


class ExecutionProfile:
    """Duration sums per pipeline phase, in milliseconds.

    The engine keeps three: the most recent event, the lifetime total and
    the current timeframe.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total = 0.0
        self.metrics = 0.0
        self.frame = 0.0
        self.alarms = 0.0
        self.response = 0.0
        self.metadata = 0.0

    def accumulate(self, other: ExecutionProfile) -> None:
        """Add every phase of ``other`` to this profile."""
        self.total += other.total
        self.metrics += other.metrics
        self.frame += other.frame
        self.alarms += other.alarms
        self.response += other.response
        self.metadata += other.metadata

    def snapshot(self) -> ExecutionDurations:
        return ExecutionDurations(
            total=self.total,
            metrics=self.metrics,
            frame=self.frame,
            alarms=self.alarms,
            response=self.response,
            metadata=self.metadata,
        )
