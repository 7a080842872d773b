# src/eventgear/bridges/hookspecs.py
"""pluggy hook specifications for EventGear bridges.

Bridge packages implement these hooks to make their classes available to
settings-driven construction (``bridges:`` in the settings file).

Usage (implementing a bridge plugin):
    from eventgear.bridges.hookspecs import hookimpl

    class MyBridges:
        @hookimpl
        def eventgear_get_bridges(self):
            return [MqttBridge]

Third-party packages are discovered through the ``eventgear`` entry point
group.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from eventgear.bridges.protocols import BridgeProtocol

# Project name for pluggy and the entry point group
PROJECT_NAME = "eventgear"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class EventGearBridgeSpec:
    """Hook specifications for bridge plugins."""

    @hookspec
    def eventgear_get_bridges(self) -> list[type["BridgeProtocol"]]:  # type: ignore[empty-body]
        """Return bridge classes (not instances).

        Each class must carry a unique ``name`` class attribute.
        """
