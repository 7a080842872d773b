# tests/bridges/test_manager.py
"""Tests for bridge discovery and settings-driven construction."""

from typing import Any

import pytest

from eventgear.bridges.base import BaseBridge
from eventgear.bridges.channel import ChannelBridge
from eventgear.bridges.hookspecs import hookimpl
from eventgear.bridges.log import LogBridge
from eventgear.bridges.manager import BridgeManager, create_bridges, default_manager
from eventgear.bridges.protocols import BridgeProtocol
from eventgear.contracts.errors import BridgeError
from eventgear.core.config import BridgeSettings


class RecordingBridge(BaseBridge):
    name = "recording"

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        self.sent: list[Any] = []

    def send(self, metadata: Any) -> None:
        self.sent.append(metadata)


class ExtraBridges:
    @hookimpl
    def eventgear_get_bridges(self) -> list[type[BridgeProtocol]]:
        return [RecordingBridge]


class ClashingBridges:
    @hookimpl
    def eventgear_get_bridges(self) -> list[type[BridgeProtocol]]:
        return [LogBridge]


class TestBridgeManager:
    """pluggy-backed bridge registry."""

    def test_builtin_bridges(self) -> None:
        manager = BridgeManager()
        manager.register_builtin_bridges()

        assert manager.get_bridge_by_name("channel") is ChannelBridge
        assert manager.get_bridge_by_name("log") is LogBridge
        assert manager.get_bridge_by_name("mqtt") is None

    def test_plugin_registration(self) -> None:
        manager = BridgeManager()
        manager.register_builtin_bridges()
        manager.register(ExtraBridges())

        names = sorted(cls.name for cls in manager.get_bridges())
        assert names == ["channel", "log", "recording"]

    def test_duplicate_name_rejected(self) -> None:
        manager = BridgeManager()
        manager.register_builtin_bridges()

        with pytest.raises(ValueError, match="Duplicate bridge name"):
            manager.register(ClashingBridges())

    def test_builtin_classes_satisfy_protocol(self) -> None:
        assert isinstance(LogBridge({}), BridgeProtocol)
        assert isinstance(ChannelBridge({}), BridgeProtocol)

    def test_default_manager_has_builtins(self) -> None:
        assert default_manager().get_bridge_by_name("log") is LogBridge


class TestCreateBridges:
    """Settings entries become bridge instances."""

    def test_empty_settings(self) -> None:
        assert create_bridges([]) == []

    def test_instances_in_order(self) -> None:
        manager = BridgeManager()
        manager.register_builtin_bridges()
        manager.register(ExtraBridges())

        bridges = create_bridges(
            [
                BridgeSettings(name="recording", auto_send=True),
                BridgeSettings(name="log", auto_send=False, options={"level": "debug"}),
            ],
            manager,
        )

        assert [bridge.name for bridge in bridges] == ["recording", "log"]
        assert bridges[0].auto_send is True
        assert bridges[1].auto_send is False

    def test_unknown_bridge(self) -> None:
        with pytest.raises(BridgeError, match="unknown bridge") as exc_info:
            create_bridges([BridgeSettings(name="mqtt")])

        assert exc_info.value.bridge_name == "mqtt"
        assert "channel" in exc_info.value.message

    def test_invalid_options(self) -> None:
        with pytest.raises(BridgeError, match="invalid configuration"):
            create_bridges([BridgeSettings(name="log", options={"level": "loud"})])
