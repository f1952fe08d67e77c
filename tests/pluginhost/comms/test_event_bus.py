"""Unit tests for EventBus - thread-safe pub/sub messaging.

Tests subscribe/unsubscribe, publish/receive, handler dispatch,
deferred callbacks, queue overflow (drop oldest) and thread safety.
"""
from __future__ import annotations

import queue
import threading

import pytest

from pluginhost.comms.event_bus import EventBus


@pytest.mark.unit
class TestEventBusBasics:
    """Core subscribe/publish/unsubscribe functionality."""

    def test_subscribe_returns_queue(self):
        bus = EventBus()
        q = bus.subscribe()
        assert isinstance(q, queue.Queue)

    def test_publish_delivers_to_subscriber(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.publish("host_ready", {"key": "value"})
        msg = q.get_nowait()
        assert msg["type"] == "host_ready"
        assert msg["data"]["key"] == "value"

    def test_publish_without_data(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.publish("ping")
        msg = q.get_nowait()
        assert msg["type"] == "ping"
        assert "data" not in msg

    def test_multiple_subscribers(self):
        bus = EventBus()
        q1 = bus.subscribe()
        q2 = bus.subscribe()
        bus.publish("broadcast", {"msg": "hello"})
        assert q1.get_nowait()["type"] == "broadcast"
        assert q2.get_nowait()["type"] == "broadcast"

    def test_unsubscribe_stops_delivery(self):
        bus = EventBus()
        q = bus.subscribe()
        bus.unsubscribe(q)
        bus.publish("after_unsub")
        assert q.empty()

    def test_unsubscribe_nonexistent_is_safe(self):
        bus = EventBus()
        bus.unsubscribe(queue.Queue())  # Should not raise

    def test_queue_size_configurable(self):
        bus = EventBus(queue_size=5)
        assert bus.subscribe().maxsize == 5


@pytest.mark.unit
class TestEventBusHandlers:
    """Synchronous per-event handlers."""

    def test_handler_called_for_matching_event(self):
        bus = EventBus()
        seen = []
        bus.on("host_ready", seen.append)
        bus.publish("host_ready", {"host": "h"})
        assert len(seen) == 1
        assert seen[0]["data"]["host"] == "h"

    def test_handler_not_called_for_other_events(self):
        bus = EventBus()
        seen = []
        bus.on("host_ready", seen.append)
        bus.publish("plugins_ready")
        assert seen == []

    def test_handler_runs_before_publish_returns(self):
        bus = EventBus()
        order = []
        bus.on("evt", lambda msg: order.append("handler"))
        bus.publish("evt")
        order.append("after")
        assert order == ["handler", "after"]

    def test_off_removes_handler(self):
        bus = EventBus()
        seen = []
        bus.on("evt", seen.append)
        bus.off("evt", seen.append)
        bus.publish("evt")
        assert seen == []

    def test_off_unknown_handler_is_safe(self):
        bus = EventBus()
        bus.off("evt", lambda msg: None)  # Should not raise

    def test_failing_handler_isolated(self):
        bus = EventBus()
        seen = []

        def boom(msg):
            raise RuntimeError("boom")

        bus.on("evt", boom)
        bus.on("evt", seen.append)
        bus.publish("evt")
        assert len(seen) == 1

    def test_handler_may_publish(self):
        """A handler can publish a follow-up event without deadlocking."""
        bus = EventBus()
        q = bus.subscribe()
        bus.on("first", lambda msg: bus.publish("second"))
        bus.publish("first")
        types = [q.get_nowait()["type"], q.get_nowait()["type"]]
        assert types == ["first", "second"]


@pytest.mark.unit
class TestEventBusDefer:
    """Callbacks deferred until the outermost dispatch completes."""

    def test_deferred_runs_after_all_handlers(self):
        bus = EventBus()
        order = []
        bus.on("evt", lambda msg: bus.defer(lambda: order.append("deferred")))
        bus.on("evt", lambda msg: order.append("second"))
        bus.publish("evt")
        assert order == ["second", "deferred"]

    def test_deferred_runs_before_publish_returns(self):
        bus = EventBus()
        order = []
        bus.on("evt", lambda msg: bus.defer(lambda: order.append("deferred")))
        bus.publish("evt")
        order.append("after")
        assert order == ["deferred", "after"]

    def test_deferred_waits_for_outer_dispatch(self):
        bus = EventBus()
        order = []
        bus.on("outer", lambda msg: bus.publish("inner"))
        bus.on("inner", lambda msg: bus.defer(lambda: order.append("deferred")))
        bus.on("outer", lambda msg: order.append("outer handler"))
        bus.publish("outer")
        assert order == ["outer handler", "deferred"]

    def test_defer_outside_dispatch_runs_now(self):
        bus = EventBus()
        called = []
        assert bus.dispatching is False
        bus.defer(lambda: called.append(True))
        assert called == [True]

    def test_dispatching_flag(self):
        bus = EventBus()
        seen = []
        bus.on("evt", lambda msg: seen.append(bus.dispatching))
        bus.publish("evt")
        assert seen == [True]
        assert bus.dispatching is False

    def test_failing_deferred_callback_isolated(self):
        bus = EventBus()
        called = []

        def boom():
            raise RuntimeError("boom")

        def handler(msg):
            bus.defer(boom)
            bus.defer(lambda: called.append(True))

        bus.on("evt", handler)
        bus.publish("evt")  # Should not raise
        assert called == [True]


@pytest.mark.unit
class TestEventBusOverflow:
    """Queue overflow behavior - drop oldest message when full."""

    def test_overflow_drops_oldest(self):
        bus = EventBus(queue_size=10)
        q = bus.subscribe()
        for i in range(10):
            bus.publish("fill", {"seq": i})
        assert q.full()

        bus.publish("overflow", {"seq": 10})

        first = q.get_nowait()
        assert first["data"]["seq"] == 1

    def test_overflow_does_not_lose_new_event(self):
        bus = EventBus(queue_size=10)
        q = bus.subscribe()
        for i in range(25):
            bus.publish("fill", {"seq": i})

        bus.publish("plugins_ready", {"supported": ["a"]})

        msgs = []
        while not q.empty():
            msgs.append(q.get_nowait())
        assert msgs[-1]["type"] == "plugins_ready"


@pytest.mark.unit
class TestEventBusThreadSafety:
    """Concurrent publish from multiple threads."""

    def test_concurrent_publish(self):
        bus = EventBus()
        q = bus.subscribe()
        errors = []

        def publisher(thread_id: int):
            try:
                for i in range(50):
                    bus.publish("thread_event", {"tid": thread_id, "seq": i})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=publisher, args=(t,)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert q.qsize() == 200

    def test_concurrent_handler_registration(self):
        bus = EventBus()
        errors = []

        def churn():
            try:
                for _ in range(20):
                    handler = lambda msg: None  # noqa: E731
                    bus.on("churn", handler)
                    bus.publish("churn")
                    bus.off("churn", handler)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=churn) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
