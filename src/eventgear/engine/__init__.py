"""Telemetry engine: serialized ingestion, alarms and timeframe history."""

from eventgear.engine.alarms import BandAlarm, IntervalAlarm, OneShotAlarm
from eventgear.engine.engine import TelemetryEngine
from eventgear.engine.gate import RegistrationGate

__all__ = [
    "BandAlarm",
    "IntervalAlarm",
    "OneShotAlarm",
    "RegistrationGate",
    "TelemetryEngine",
]
