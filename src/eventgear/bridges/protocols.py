# src/eventgear/bridges/protocols.py
"""Bridge protocol: push-based transports around a TelemetryEngine.

Outbound, the engine calls ``send(metadata)`` after every registered event
when the bridge has ``auto_send`` set. Inbound, the engine hands its
``register_event`` to ``connect()``; the bridge calls it for each message it
receives. The engine attaches no meaning to either direction beyond that.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

InboundHandler = Callable[[Any], Any]


@runtime_checkable
class BridgeProtocol(Protocol):
    """Protocol for bridge plugins.

    Example:
        class PrintBridge:
            name = "print"

            def __init__(self, config: dict[str, Any]) -> None:
                self.auto_send = config.get("auto_send", False)

            def send(self, metadata: Any) -> None:
                print(metadata)

            def connect(self, handler: InboundHandler) -> None: ...
            def disconnect(self) -> None: ...
            def close(self) -> None: ...
    """

    name: str
    auto_send: bool

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize with configuration."""
        ...

    def send(self, metadata: Any) -> None:
        """Forward one event's metadata to the transport."""
        ...

    def connect(self, handler: InboundHandler) -> None:
        """Route inbound messages to ``handler`` (usually engine.register_event)."""
        ...

    def disconnect(self) -> None:
        """Stop routing inbound messages. Idempotent."""
        ...

    def close(self) -> None:
        """Release transport resources. Idempotent."""
        ...
