# src/eventgear/core/config.py
"""
Configuration schema and loading for EventGear engines.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from eventgear.contracts.errors import SettingsError
from eventgear.contracts.limits import ENGINE_DEFAULTS, ENGINE_LIMITS, EngineLimits


class LimitsSettings(BaseModel):
    """Hard ceilings the engine clamps configuration values to."""

    model_config = {"frozen": True}

    max_history_size: int = Field(default=ENGINE_LIMITS.max_history_size, gt=0)
    max_short_term_buffer_size: int = Field(default=ENGINE_LIMITS.max_short_term_buffer_size, gt=0)
    max_batch_events: int = Field(default=ENGINE_LIMITS.max_batch_events, gt=0)
    max_rolling_buffer_capacity: int = Field(default=ENGINE_LIMITS.max_rolling_buffer_capacity, gt=0)

    def to_limits(self) -> EngineLimits:
        return EngineLimits(
            max_history_size=self.max_history_size,
            max_short_term_buffer_size=self.max_short_term_buffer_size,
            max_batch_events=self.max_batch_events,
            max_rolling_buffer_capacity=self.max_rolling_buffer_capacity,
        )


class EngineSettings(BaseModel):
    """Runtime configuration of one TelemetryEngine.

    Example YAML:
        engine:
          frame_duration: 0.5        # seconds, 0 disables timeframes
          max_history_size: 200
          independent_interval_ms: 200
          frequency_smoothing_factor: 0.8
    """

    model_config = {"frozen": True}

    frame_duration: float = Field(
        default=ENGINE_DEFAULTS["frame_duration"],
        ge=0,
        description="Timeframe length in seconds (0 disables timeframe aggregation)",
    )
    max_history_size: int = Field(
        default=ENGINE_DEFAULTS["max_history_size"],
        ge=0,
        description="Closed timeframes kept in history",
    )
    independent_interval_ms: float = Field(
        default=ENGINE_DEFAULTS["independent_interval_ms"],
        ge=0,
        description="Period of the timer refreshing metrics without new events; 0 disables it",
    )
    short_term_buffer_size: int = Field(
        default=ENGINE_DEFAULTS["short_term_buffer_size"],
        ge=0,
        description="Timestamps in the short-term frequency window (0 disables it)",
    )
    frequency_smoothing_factor: float = Field(
        default=ENGINE_DEFAULTS["frequency_smoothing_factor"],
        gt=0,
        le=1,
        description="Weight of the raw frame frequency in exponential smoothing",
    )
    performance_metrics: bool = Field(
        default=ENGINE_DEFAULTS["performance_metrics"],
        description="Record the engine's own execution durations",
    )
    rolling_buffer_capacity: int = Field(
        default=ENGINE_DEFAULTS["rolling_buffer_capacity"],
        gt=0,
        description="Slots in the rolling timestamp buffer",
    )
    inactivity_threshold_ms: float = Field(
        default=ENGINE_DEFAULTS["inactivity_threshold_ms"],
        gt=0,
        description="Silence after which the short-term window is cleared",
    )


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class BridgeSettings(BaseModel):
    """One bridge to instantiate and attach to the engine."""

    model_config = {"frozen": True}

    name: str = Field(description="Bridge name as registered through eventgear_get_bridges")
    auto_send: bool = Field(default=False, description="Forward metadata of every registered event")
    options: dict[str, Any] = Field(default_factory=dict, description="Bridge-specific options")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("bridge name cannot be empty")
        return v.strip()


class EventGearSettings(BaseModel):
    """Top-level EventGear configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    engine: EngineSettings = Field(default_factory=EngineSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    bridges: list[BridgeSettings] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_within_limits(self) -> "EventGearSettings":
        """Configured sizes must not exceed their ceilings."""
        checks = (
            ("max_history_size", self.engine.max_history_size, self.limits.max_history_size),
            ("short_term_buffer_size", self.engine.short_term_buffer_size, self.limits.max_short_term_buffer_size),
            ("rolling_buffer_capacity", self.engine.rolling_buffer_capacity, self.limits.max_rolling_buffer_capacity),
        )
        for name, value, ceiling in checks:
            if value > ceiling:
                raise ValueError(f"engine.{name}={value} exceeds limit {ceiling}")
        names = [bridge.name for bridge in self.bridges]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate bridge names: {duplicates}")
        return self


def _lower_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_lower_keys(v) for v in data]
    return data


def load_settings(config_path: Path) -> EventGearSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (EVENTGEAR_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: EVENTGEAR_ENGINE__FRAME_DURATION for
    nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated EventGearSettings instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        SettingsError: If the file cannot be parsed or fails validation
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        dynaconf_settings = Dynaconf(
            envvar_prefix="EVENTGEAR",
            settings_files=[str(config_path)],
            environments=False,
            load_dotenv=False,
            merge_enabled=True,
        )
        raw = dynaconf_settings.as_dict()
    except Exception as e:
        raise SettingsError(f"Cannot read {config_path}: {e}") from e

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = _lower_keys({k: v for k, v in raw.items() if k not in internal_keys})

    try:
        return EventGearSettings(**raw_config)
    except ValidationError as e:
        raise SettingsError(f"Invalid configuration in {config_path}:\n{e}") from e
