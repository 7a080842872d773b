# src/eventgear/bridges/log.py
"""Bridge that writes forwarded metadata to the structured log."""

from typing import Any, Literal

import structlog
from pydantic import Field

from eventgear.bridges.base import BaseBridge, BridgeConfig

logger = structlog.get_logger(__name__)


class LogBridgeConfig(BridgeConfig):
    """Options for LogBridge."""

    auto_send: bool = Field(default=True, description="Forward metadata of every registered event")
    level: Literal["debug", "info", "warning"] = Field(default="info", description="Log level of forwarded events")
    event: str = Field(default="Event forwarded", description="Log event name")


class LogBridge(BaseBridge):
    """Outbound-only bridge; inbound handlers are accepted and never called."""

    name = "log"
    config_class = LogBridgeConfig
    config: LogBridgeConfig

    def send(self, metadata: Any) -> None:
        getattr(logger, self.config.level)(self.config.event, bridge=self.name, metadata=metadata)
