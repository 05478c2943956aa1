"""Event bus infrastructure for the cutover controller.

A synchronous, thread-safe pub-sub bus for ``DomainEvent`` instances.  The
fleet registry, traffic shifter, health monitor and cutover state machine
publish to it; the audit log subscribes to every event.  A handler that raises
is logged and skipped so that a single failing subscriber never breaks the
publish pipeline.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from bluegreen.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


class EventBus:
    """Thread-safe synchronous pub-sub for domain events.

    Handlers are invoked **in registration order**, global handlers before
    typed ones.

    Usage::

        bus = EventBus()
        bus.subscribe(TrafficShifted, on_shift)
        bus.subscribe_all(audit_log.record_event)
        bus.publish(TrafficShifted(...))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    # -- subscription -------------------------------------------------------

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register *handler* for a specific *event_type*."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive **every** published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*. Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            try:
                handlers.remove(handler)
                return True
            except ValueError:
                return False

    def unsubscribe_all(self, handler: Handler) -> bool:
        """Remove a global handler. Returns ``True`` if found."""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
                return True
            except ValueError:
                return False

    # -- publishing ---------------------------------------------------------

    def publish(self, event: DomainEvent) -> None:
        """Publish *event* to all matching handlers (global first, then typed)."""
        with self._lock:
            global_snapshot = list(self._global_handlers)
            typed_snapshot = list(self._handlers.get(type(event), []))

        for handler in global_snapshot + typed_snapshot:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Error in handler %r for %s", handler, type(event).__name__
                )

    def publish_many(self, events: Sequence[DomainEvent]) -> None:
        """Publish a batch of events in order."""
        for event in events:
            self.publish(event)

    # -- introspection ------------------------------------------------------

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Return the number of handlers registered.

        If *event_type* is ``None``, returns the total across all types plus
        globals.
        """
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            total = sum(len(hs) for hs in self._handlers.values())
            return total + len(self._global_handlers)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()
