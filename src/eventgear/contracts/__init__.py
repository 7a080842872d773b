"""Shared contracts for cross-boundary data types.

All dataclasses, enums, exceptions and constant registries that cross
module boundaries live here. Internal types stay in their home modules.

Leaf module: imports nothing from the rest of eventgear.
"""

from eventgear.contracts.enums import (
    AlarmKind,
    CheckMethod,
    EngineState,
    ThresholdDirection,
    ValueShortcut,
)
from eventgear.contracts.errors import (
    AsyncCallbackError,
    BridgeError,
    CallbackExecutionError,
    CallbackNotFoundError,
    EventGearError,
    SettingsError,
    TimestampError,
    ValidationError,
)
from eventgear.contracts.events import (
    AlarmTriggered,
    EngineStarted,
    EngineStopped,
    EventRegistered,
    FrameClosed,
)
from eventgear.contracts.limits import ENGINE_DEFAULTS, ENGINE_LIMITS, EngineLimits
from eventgear.contracts.metrics import (
    AlarmThresholds,
    BufferEntry,
    CallbackMetrics,
    ExceedanceEntry,
    ExecutionDurations,
    MetadataPair,
    MetricsSnapshot,
    MicroSnapshot,
    TimeframeHistoryEntry,
)

__all__ = [
    "ENGINE_DEFAULTS",
    "ENGINE_LIMITS",
    "AlarmKind",
    "AlarmThresholds",
    "AlarmTriggered",
    "AsyncCallbackError",
    "BridgeError",
    "BufferEntry",
    "CallbackExecutionError",
    "CallbackMetrics",
    "CallbackNotFoundError",
    "CheckMethod",
    "EngineLimits",
    "EngineStarted",
    "EngineState",
    "EngineStopped",
    "EventGearError",
    "EventRegistered",
    "ExceedanceEntry",
    "ExecutionDurations",
    "FrameClosed",
    "MetadataPair",
    "MetricsSnapshot",
    "MicroSnapshot",
    "SettingsError",
    "ThresholdDirection",
    "TimeframeHistoryEntry",
    "TimestampError",
    "ValidationError",
    "ValueShortcut",
]
