# src/eventgear/bridges/base.py
"""Base classes for bridge implementations.

BridgeConfig gives every bridge strict, typed options (unknown keys are
rejected) with a from_dict() factory that reports failures as BridgeError.
BaseBridge holds the state every bridge shares: the auto-send flag and the
inbound handler.
"""

from typing import Any, ClassVar, Self

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from eventgear.bridges.protocols import InboundHandler
from eventgear.contracts.errors import BridgeError


class BridgeConfig(BaseModel):
    """Options common to all bridges."""

    model_config = {"extra": "forbid", "frozen": True}

    auto_send: bool = Field(default=False, description="Forward metadata of every registered event")

    @classmethod
    def from_dict(cls, bridge_name: str, config: dict[str, Any]) -> Self:
        """Validate ``config``.

        Raises:
            BridgeError: If the options are invalid.
        """
        if not isinstance(config, dict):
            raise BridgeError(bridge_name, f"config must be a dict, got {type(config).__name__}")
        try:
            return cls.model_validate(config)
        except PydanticValidationError as e:
            raise BridgeError(bridge_name, f"invalid configuration: {e}") from e


class BaseBridge:
    """Shared bridge state. Subclasses set ``name`` and ``config_class``."""

    name: ClassVar[str]
    config_class: ClassVar[type[BridgeConfig]] = BridgeConfig

    def __init__(self, config: dict[str, Any]) -> None:
        self.config = self.config_class.from_dict(self.name, config)
        self.auto_send = self.config.auto_send
        self._handler: InboundHandler | None = None

    @property
    def connected(self) -> bool:
        return self._handler is not None

    def connect(self, handler: InboundHandler) -> None:
        self._handler = handler

    def disconnect(self) -> None:
        self._handler = None

    def close(self) -> None:
        self.disconnect()
