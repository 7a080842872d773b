# src/eventgear/bridges/manager.py
"""Bridge discovery and settings-driven construction.

Uses pluggy: built-in bridges are registered through a hookimpl, external
packages through the ``eventgear`` entry point group.
"""

from collections.abc import Sequence
from typing import Any

import pluggy
import structlog

from eventgear.bridges.channel import ChannelBridge
from eventgear.bridges.hookspecs import PROJECT_NAME, EventGearBridgeSpec, hookimpl
from eventgear.bridges.log import LogBridge
from eventgear.bridges.protocols import BridgeProtocol
from eventgear.contracts.errors import BridgeError
from eventgear.core.config import BridgeSettings

logger = structlog.get_logger(__name__)


class _BuiltinBridges:
    @hookimpl
    def eventgear_get_bridges(self) -> list[type[BridgeProtocol]]:
        return [ChannelBridge, LogBridge]


class BridgeManager:
    """Registry of bridge classes by name.

    Usage:
        manager = BridgeManager()
        manager.register_builtin_bridges()
        bridge_cls = manager.get_bridge_by_name("channel")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(EventGearBridgeSpec)
        self._bridges: dict[str, type[BridgeProtocol]] = {}

    def register_builtin_bridges(self) -> None:
        self.register(_BuiltinBridges())

    def load_entrypoint_bridges(self) -> int:
        """Register bridge plugins installed under the ``eventgear`` entry point group.

        Returns:
            Number of plugins loaded.
        """
        loaded = self._pm.load_setuptools_entrypoints(PROJECT_NAME)
        if loaded:
            self._refresh_cache()
        return loaded

    def register(self, plugin: Any) -> None:
        """Register a plugin object implementing ``eventgear_get_bridges``.

        Raises:
            ValueError: Two bridge classes share a name
        """
        self._pm.register(plugin)
        self._refresh_cache()

    def _refresh_cache(self) -> None:
        bridges: dict[str, type[BridgeProtocol]] = {}
        for classes in self._pm.hook.eventgear_get_bridges():
            for cls in classes:
                name = cls.name
                if name in bridges:
                    raise ValueError(f"Duplicate bridge name: '{name}'. Already registered by {bridges[name].__name__}")
                bridges[name] = cls
        self._bridges = bridges

    def get_bridges(self) -> list[type[BridgeProtocol]]:
        return list(self._bridges.values())

    def get_bridge_by_name(self, name: str) -> type[BridgeProtocol] | None:
        return self._bridges.get(name)


def default_manager() -> BridgeManager:
    """Manager with built-in and entry point bridges registered."""
    manager = BridgeManager()
    manager.register_builtin_bridges()
    manager.load_entrypoint_bridges()
    return manager


def create_bridges(
    settings: Sequence[BridgeSettings],
    manager: BridgeManager | None = None,
) -> list[BridgeProtocol]:
    """Instantiate one bridge per settings entry, in order.

    Raises:
        BridgeError: Unknown bridge name, or the bridge rejected its options.
    """
    if not settings:
        return []
    manager = manager if manager is not None else default_manager()
    bridges: list[BridgeProtocol] = []
    for entry in settings:
        bridge_cls = manager.get_bridge_by_name(entry.name)
        if bridge_cls is None:
            available = sorted(cls.name for cls in manager.get_bridges())
            raise BridgeError(entry.name, f"unknown bridge, available: {available}")
        config = {**entry.options, "auto_send": entry.auto_send}
        try:
            bridge = bridge_cls(config)
        except BridgeError:
            raise
        except (TypeError, ValueError) as e:
            raise BridgeError(entry.name, str(e)) from e
        logger.debug("Bridge created", bridge=entry.name, auto_send=entry.auto_send)
        bridges.append(bridge)
    return bridges
