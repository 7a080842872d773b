"""Metric primitives: counters, bucket metrics, rolling buffer, profiles."""

from eventgear.metrics.buffer import RollingTimestampBuffer
from eventgear.metrics.calculations import (
    calculate_frequency,
    calculate_interval,
    calculate_jitter,
    next_interval_threshold,
)
from eventgear.metrics.counter import EventCounter, MetricsRecorder
from eventgear.metrics.micro import MicroMetrics
from eventgear.metrics.profile import ExecutionProfile

__all__ = [
    "EventCounter",
    "ExecutionProfile",
    "MetricsRecorder",
    "MicroMetrics",
    "RollingTimestampBuffer",
    "calculate_frequency",
    "calculate_interval",
    "calculate_jitter",
    "next_interval_threshold",
]
