# src/eventgear/core/events.py
"""Subscriber registry for engine observability events.

Handlers subscribe per event type (the classes in
eventgear.contracts.events) and are called synchronously in subscription
order when a matching event is published.

Unlike engine internals, subscribers are user code: a raising handler is
logged and the remaining handlers still run.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from eventgear.callbacks.execution import call_isolated

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SubscriberRegistry:
    """Event type -> ordered handler list.

    Example:
        registry = SubscriberRegistry()
        registry.subscribe(FrameClosed, lambda e: print(e.history.frequency))
        registry.publish(FrameClosed(history=entry, exceedances=exceedances))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], Any]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[T], handler: Callable[[T], Any]) -> None:
        """Subscribe a handler to an event type.

        Raises:
            TypeError: If handler is not callable.
        """
        if not callable(handler):
            raise TypeError("handler must be callable")
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], Any]) -> bool:
        """Remove the first subscription of ``handler``. Returns whether found."""
        with self._lock:
            handlers = self._subscribers.get(event_type)
            if not handlers or handler not in handlers:
                return False
            handlers.remove(handler)
            if not handlers:
                del self._subscribers[event_type]
            return True

    def publish(self, event: object) -> int:
        """Deliver ``event`` to every subscriber of its exact type.

        Events with no subscribers are ignored.

        Returns:
            Number of handlers that completed without raising.
        """
        with self._lock:
            handlers = list(self._subscribers.get(type(event), ()))
        delivered = 0
        for handler in handlers:
            name = f"{type(event).__name__}:{getattr(handler, '__qualname__', repr(handler))}"
            if call_isolated(name, handler, event):
                delivered += 1
        return delivered

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._subscribers.clear()

    def subscriber_count(self, event_type: type | None = None) -> int:
        with self._lock:
            if event_type is not None:
                return len(self._subscribers.get(event_type, ()))
            return sum(len(handlers) for handlers in self._subscribers.values())
