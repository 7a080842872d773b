# tests/core/test_events.py
"""Tests for the observability SubscriberRegistry."""

from collections.abc import Callable
from dataclasses import dataclass

import pytest
from structlog.testing import capture_logs

from eventgear.core.events import SubscriberRegistry
from tests.conftest import Recorder


@dataclass(frozen=True)
class Ping:
    value: int


@dataclass(frozen=True)
class Pong:
    value: int


class TestSubscriberRegistry:
    """Subscription and delivery by exact event type."""

    def test_publish_in_subscription_order(self) -> None:
        registry = SubscriberRegistry()
        order: list[str] = []
        registry.subscribe(Ping, lambda e: order.append(f"a{e.value}"))
        registry.subscribe(Ping, lambda e: order.append(f"b{e.value}"))

        delivered = registry.publish(Ping(1))

        assert order == ["a1", "b1"]
        assert delivered == 2

    def test_only_matching_type_receives(self, recorder: Callable[..., Recorder]) -> None:
        registry = SubscriberRegistry()
        ping, pong = recorder(), recorder()
        registry.subscribe(Ping, ping)
        registry.subscribe(Pong, pong)

        registry.publish(Pong(2))

        assert ping.count == 0
        assert pong.calls == [(Pong(2),)]

    def test_no_subscribers_is_ignored(self) -> None:
        assert SubscriberRegistry().publish(Ping(1)) == 0

    def test_raising_handler_isolated(self, recorder: Callable[..., Recorder]) -> None:
        registry = SubscriberRegistry()
        after = recorder()

        def broken(event: Ping) -> None:
            raise RuntimeError("subscriber bug")

        registry.subscribe(Ping, broken)
        registry.subscribe(Ping, after)

        with capture_logs() as cap_logs:
            delivered = registry.publish(Ping(3))

        assert delivered == 1
        assert after.count == 1
        failure = next(entry for entry in cap_logs if entry["event"] == "Callback failed")
        assert failure["error_type"] == "RuntimeError"
        assert failure["callback"].startswith("Ping:")

    def test_unsubscribe(self, recorder: Callable[..., Recorder]) -> None:
        registry = SubscriberRegistry()
        handler = recorder()
        registry.subscribe(Ping, handler)

        assert registry.unsubscribe(Ping, handler) is True
        assert registry.unsubscribe(Ping, handler) is False
        registry.publish(Ping(1))
        assert handler.count == 0

    def test_counts_and_clear(self) -> None:
        registry = SubscriberRegistry()
        registry.subscribe(Ping, print)
        registry.subscribe(Ping, repr)
        registry.subscribe(Pong, print)

        assert registry.subscriber_count(Ping) == 2
        assert registry.subscriber_count() == 3

        registry.clear()
        assert registry.subscriber_count() == 0

    def test_non_callable_rejected(self) -> None:
        with pytest.raises(TypeError, match="callable"):
            SubscriberRegistry().subscribe(Ping, "not callable")  # type: ignore[arg-type]
