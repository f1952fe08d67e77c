"""EventBus - thread-safe pub/sub between the host and the plugin controller.

Two kinds of subscriber are supported:

- queue subscribers (``subscribe()``) receive every event as a message dict
  and drain it on their own schedule;
- handlers (``on(event_type, handler)``) are called synchronously from
  ``publish()`` for one event type.

The host publishes ``host_ready`` here and the controller publishes
``plugins_ready`` back on the same bus.

Callbacks passed to ``defer()`` from inside a handler run once the
outermost ``publish()`` has dispatched to every handler, so they observe
the side effects of the whole dispatch.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from typing import Any, Callable

from pluginhost.config import settings

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Any]


class EventBus:
    """Simple thread-safe pub/sub for pushing events to subscribers."""

    def __init__(self, queue_size: int | None = None) -> None:
        self._lock = threading.Lock()
        self._queue_size = queue_size or settings.event_queue_size
        self._subscribers: list[queue.Queue] = []
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._local = threading.local()

    def subscribe(self, _filter: str | None = None) -> queue.Queue:
        """Subscribe to events. Returns a Queue that receives all events.

        The optional ``_filter`` parameter is accepted for API compatibility
        but is currently ignored; the caller must filter events itself.
        """
        q: queue.Queue = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    def on(self, event_type: str, handler: Handler) -> None:
        """Call ``handler(msg)`` every time ``event_type`` is published."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def off(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                pass

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg: dict[str, Any] = {"type": event_type}
        if data is not None:
            msg["data"] = data
        with self._lock:
            subscribers = list(self._subscribers)
            handlers = list(self._handlers.get(event_type, ()))

        for q in subscribers:
            try:
                q.put_nowait(msg)
            except queue.Full:
                # Drop oldest so the newest lifecycle event always lands
                try:
                    q.get_nowait()
                except queue.Empty:
                    pass
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    pass

        # Handlers run outside the lock so they may publish in turn
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            for handler in handlers:
                try:
                    handler(msg)
                except Exception as e:
                    logger.error(f"Handler for '{event_type}' failed: {e}")
        finally:
            self._local.depth = depth

        if depth == 0:
            self._run_deferred()

    # ------------------------------------------------------------------
    # Deferred callbacks
    # ------------------------------------------------------------------

    @property
    def dispatching(self) -> bool:
        """True while a handler is running in the calling thread."""
        return getattr(self._local, "depth", 0) > 0

    def defer(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after the current dispatch finishes.

        Outside of a dispatch there is nothing to wait for and the callback
        runs immediately.
        """
        if not self.dispatching:
            self._call_deferred(callback)
            return
        self._pending().append(callback)

    def _pending(self) -> list[Callable[[], Any]]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = []
        return pending

    def _run_deferred(self) -> None:
        pending = self._pending()
        while pending:
            self._call_deferred(pending.pop(0))

    def _call_deferred(self, callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Deferred callback failed: {e}")
