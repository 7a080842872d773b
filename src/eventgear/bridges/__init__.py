"""Transport bridges attached to a TelemetryEngine."""

from eventgear.bridges.base import BaseBridge, BridgeConfig
from eventgear.bridges.channel import DEFAULT_HUB, ChannelBridge, ChannelBridgeConfig, ChannelHub
from eventgear.bridges.hookspecs import PROJECT_NAME, hookimpl, hookspec
from eventgear.bridges.log import LogBridge, LogBridgeConfig
from eventgear.bridges.manager import BridgeManager, create_bridges, default_manager
from eventgear.bridges.protocols import BridgeProtocol, InboundHandler

__all__ = [
    "DEFAULT_HUB",
    "PROJECT_NAME",
    "BaseBridge",
    "BridgeConfig",
    "BridgeManager",
    "BridgeProtocol",
    "ChannelBridge",
    "ChannelBridgeConfig",
    "ChannelHub",
    "InboundHandler",
    "LogBridge",
    "LogBridgeConfig",
    "create_bridges",
    "default_manager",
    "hookimpl",
    "hookspec",
]
