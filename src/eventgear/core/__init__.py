# src/eventgear/core/__init__.py
"""Core infrastructure: clock, timers, logging, configuration, pub/sub, metadata."""

from eventgear.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from eventgear.core.config import (
    BridgeSettings,
    EngineSettings,
    EventGearSettings,
    LimitsSettings,
    LoggingSettings,
    load_settings,
)
from eventgear.core.events import SubscriberRegistry
from eventgear.core.logging import configure_logging, get_logger
from eventgear.core.metadata import canonical_json, metadata_equal, snapshot_metadata
from eventgear.core.timers import (
    ManualTimer,
    ManualTimerFactory,
    PeriodicTimer,
    ThreadingTimer,
    TimerFactory,
    threading_timer_factory,
)

__all__ = [
    "DEFAULT_CLOCK",
    "BridgeSettings",
    "Clock",
    "EngineSettings",
    "EventGearSettings",
    "LimitsSettings",
    "LoggingSettings",
    "ManualTimer",
    "ManualTimerFactory",
    "MockClock",
    "PeriodicTimer",
    "SubscriberRegistry",
    "SystemClock",
    "ThreadingTimer",
    "TimerFactory",
    "canonical_json",
    "configure_logging",
    "get_logger",
    "load_settings",
    "metadata_equal",
    "snapshot_metadata",
    "threading_timer_factory",
]
