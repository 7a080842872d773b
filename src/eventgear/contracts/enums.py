# src/eventgear/contracts/enums.py
"""Modes, states and kinds used across module boundaries."""

from enum import StrEnum


class CheckMethod(StrEnum):
    """Re-evaluation policy of a CallbackTracker registration.

    Values match the names used by callers that configure registrations
    from plain data (settings files, bridges).
    """

    DEFAULT = "default"
    CUSTOM_ONCE = "customOnce"
    TIME_ONCE = "timeOnce"
    TIME_INTERVAL = "timeInterval"


class EngineState(StrEnum):
    """Lifecycle state of a TelemetryEngine."""

    STOPPED = "stopped"
    ACTIVE = "active"


class ThresholdDirection(StrEnum):
    """Which side of a band a frame-scoped value crossed."""

    LOWER = "lower"
    UPPER = "upper"


class AlarmKind(StrEnum):
    """Every alarm the engine evaluates.

    Frame-scoped alarms are checked on frame closure, the rest on every
    update pass.
    """

    TOTAL_COUNT = "total_count"
    TOTAL_TIME = "total_time"
    INTERVAL_COUNT = "interval_count"
    INTERVAL_TIME = "interval_time"
    JITTER = "jitter"
    FREQUENCY = "frequency"
    MAX_EVENTS_PER_FRAME = "max_events_per_frame"


class ValueShortcut(StrEnum):
    """Named engine values resolvable through TelemetryEngine.get_value().

    The "$" prefixed string form is accepted anywhere a shortcut is, e.g.
    ``engine.get_value("$totalEventCount")``.
    """

    TOTAL_EVENT_COUNT = "$totalEventCount"
    TOTAL_RUNNING_TIME = "$totalRunningTime"
    FREQUENCY = "$frequency"
    FREQUENCY_MAX = "$frequencyMax"
    FREQUENCY_SHORT = "$frequencyShort"
    FREQUENCY_MICRO = "$frequencyMicro"
    FREQUENCY_TIMEFRAME = "$frequencyTimeframe"
    JITTER_SHORT = "$jitterShort"
    JITTER_MICRO = "$jitterMicro"
    JITTER_TIMEFRAME = "$jitterTimeframe"
    EVENTS_IN_LAST_SECOND = "$eventsInLastSecond"
    EVENTS_IN_LAST_MINUTE = "$eventsInLastMinute"
    TIMEFRAME_INDEX = "$timeframeIndex"
    METADATA = "$metadata"
    METADATA_PREVIOUS = "$metadataPrevious"
