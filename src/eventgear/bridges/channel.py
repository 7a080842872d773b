# src/eventgear/bridges/channel.py
"""In-process channel transport.

A ChannelHub is a named-channel message bus inside one process. A
ChannelBridge connects an engine to it: outbound metadata is published on
``channel_out``, messages arriving on ``channel_in`` are registered as
events (``auto_receive``) and optionally republished on ``channel_out``
(``auto_pass_through``), which chains engines together.

Example:
    hub = ChannelHub()
    upstream = ChannelBridge({"channel_out": "clicks", "auto_send": True}, hub=hub)
    downstream = ChannelBridge({"channel_in": "clicks"}, hub=hub)
    engine_a.attach_bridge(upstream)
    engine_b.attach_bridge(downstream)
    engine_a.register_event({"button": 1})  # also registered on engine_b
"""

import threading
from collections.abc import Callable
from typing import Any, Self

import structlog
from pydantic import Field, model_validator

from eventgear.bridges.base import BaseBridge, BridgeConfig
from eventgear.bridges.protocols import InboundHandler
from eventgear.callbacks.execution import call_isolated

logger = structlog.get_logger(__name__)

MessageHandler = Callable[[Any], Any]


class ChannelHub:
    """Named channels with ordered subscriber lists.

    Subscribers of one channel run synchronously in subscription order; a
    raising subscriber is logged and the rest still receive the message.
    """

    def __init__(self) -> None:
        self._channels: dict[str, list[MessageHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        with self._lock:
            self._channels.setdefault(channel, []).append(handler)

    def unsubscribe(self, channel: str, handler: MessageHandler) -> bool:
        with self._lock:
            handlers = self._channels.get(channel, [])
            if handler not in handlers:
                return False
            handlers.remove(handler)
            if not handlers:
                del self._channels[channel]
            return True

    def publish(self, channel: str, message: Any) -> int:
        """Deliver ``message`` to every subscriber of ``channel``.

        Returns:
            Number of subscribers that handled the message without raising.
        """
        with self._lock:
            handlers = list(self._channels.get(channel, []))
        return sum(call_isolated(f"channel:{channel}", handler, message) for handler in handlers)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._channels.get(channel, []))

    @property
    def channels(self) -> list[str]:
        with self._lock:
            return sorted(self._channels)


# Hub shared by bridges built from settings
DEFAULT_HUB = ChannelHub()


class ChannelBridgeConfig(BridgeConfig):
    """Options for ChannelBridge."""

    channel_in: str | None = Field(default=None, description="Channel whose messages become events")
    channel_out: str | None = Field(default=None, description="Channel receiving forwarded metadata")
    auto_receive: bool = Field(default=True, description="Register inbound messages as events")
    auto_pass_through: bool = Field(default=False, description="Republish inbound messages on channel_out")

    @model_validator(mode="after")
    def validate_channels(self) -> Self:
        if self.channel_in is None or self.channel_in != self.channel_out:
            return self
        if self.auto_pass_through:
            raise ValueError("auto_pass_through with channel_in == channel_out would loop forever")
        # Every registration would be published back to its own inbound channel
        if self.auto_send and self.auto_receive:
            raise ValueError("auto_send and auto_receive with channel_in == channel_out would loop forever")
        return self


class ChannelBridge(BaseBridge):
    """Bridge between a TelemetryEngine and a ChannelHub."""

    name = "channel"
    config_class = ChannelBridgeConfig
    config: ChannelBridgeConfig

    def __init__(self, config: dict[str, Any], *, hub: ChannelHub | None = None) -> None:
        super().__init__(config)
        self._hub = hub if hub is not None else DEFAULT_HUB
        self._subscribed = False
        self.sent_count = 0
        self.received_count = 0

    def send(self, metadata: Any) -> None:
        if self.config.channel_out is None:
            return
        self._hub.publish(self.config.channel_out, metadata)
        self.sent_count += 1

    def connect(self, handler: InboundHandler) -> None:
        super().connect(handler)
        if self.config.channel_in is not None and not self._subscribed:
            self._hub.subscribe(self.config.channel_in, self._receive)
            self._subscribed = True
            logger.debug("Channel bridge connected", channel=self.config.channel_in)

    def disconnect(self) -> None:
        if self._subscribed and self.config.channel_in is not None:
            self._hub.unsubscribe(self.config.channel_in, self._receive)
        self._subscribed = False
        super().disconnect()

    def _receive(self, message: Any) -> None:
        self.received_count += 1
        if self.config.auto_receive and self._handler is not None:
            self._handler(message)
        if self.config.auto_pass_through and self.config.channel_out is not None:
            self._hub.publish(self.config.channel_out, message)
