"""
EventGear: event telemetry and alarm engine.

Ingests discrete events, keeps several concurrently-updated views of event
rate over different time horizons, detects threshold crossings and drives
user callbacks with strict ordering guarantees.
"""

__version__ = "0.1.0"
