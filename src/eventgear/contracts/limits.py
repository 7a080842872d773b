# src/eventgear/contracts/limits.py
"""Hard ceilings and default values for engine construction.

ENGINE_LIMITS: upper bounds every setter clamps to. They belong to an
    engine's construction parameters (``TelemetryEngine(limits=...)``);
    nothing reads them as mutable global state.

ENGINE_DEFAULTS: values used when a constructor argument or settings
    field is omitted, and restored by ``reset_configuration()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class EngineLimits:
    """Ceilings applied when configuring a TelemetryEngine.

    Attributes:
        max_history_size: Longest frame/exceedance history kept
        max_short_term_buffer_size: Largest short-term timestamp window
        max_batch_events: Largest count accepted by register_multiple_events
        max_rolling_buffer_capacity: Largest RollingTimestampBuffer capacity
    """

    max_history_size: int = 10_000
    max_short_term_buffer_size: int = 1_000
    max_batch_events: int = 100_000
    max_rolling_buffer_capacity: int = 300_000


ENGINE_LIMITS: Final[EngineLimits] = EngineLimits()

ENGINE_DEFAULTS: Final[dict[str, int | float | bool]] = {
    # Seconds; 0 disables timeframe aggregation
    "frame_duration": 0.0,
    "max_history_size": 100,
    # Period of the timer that keeps metrics decaying without new events
    "independent_interval_ms": 200,
    "short_term_buffer_size": 20,
    "frequency_smoothing_factor": 0.8,
    "performance_metrics": True,
    # One minute of distinct millisecond buckets
    "rolling_buffer_capacity": 60_000,
    # Short-term window is cleared after this much silence
    "inactivity_threshold_ms": 1_000,
}
