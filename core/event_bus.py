"""
Event bus for billing domain events.

Synchronous in-process pub/sub. Handlers execute immediately in the same
thread as the publisher, after the database write and the audit entry, so
a failing handler is logged and skipped rather than undoing the change.

Subscriptions follow the event class hierarchy: a handler registered for
InvoiceEvent sees InvoiceCreated, InvoiceStatusChanged and InvoicePaid; one
registered for BillingEvent sees everything.
"""

import logging
from typing import Callable

from core.events import BillingEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[BillingEvent], None]


def _event_name(event_type: str | type[BillingEvent]) -> str:
    return event_type if isinstance(event_type, str) else event_type.__name__


class EventBus:
    """
    In-process event bus for billing domain events.

    Usage:
        bus = EventBus()
        bus.subscribe(InvoicePaid, send_receipt)
        bus.subscribe("InvoiceEvent", refresh_dashboard)

        bus.publish(InvoicePaid.create(invoice))  # send_receipt, then refresh_dashboard
    """

    def __init__(self):
        self._subscribers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_type: str | type[BillingEvent], callback: EventHandler) -> None:
        """
        Register a handler for an event class and its subclasses.

        Args:
            event_type: Event class, or its name (e.g. 'InvoicePaid')
            callback: Called with the event instance
        """
        self._subscribers.setdefault(_event_name(event_type), []).append(callback)

    def unsubscribe(self, event_type: str | type[BillingEvent], callback: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        handlers = self._subscribers.get(_event_name(event_type), [])
        if callback not in handlers:
            return False
        handlers.remove(callback)
        return True

    def publish(self, event: BillingEvent) -> None:
        """
        Deliver an event to every matching handler.

        Handlers for the concrete class run first, then handlers for each
        ancestor up to BillingEvent, each group in subscription order.
        """
        for cls in type(event).__mro__:
            if not (isinstance(cls, type) and issubclass(cls, BillingEvent)):
                continue

            for callback in list(self._subscribers.get(cls.__name__, [])):
                try:
                    callback(event)
                except Exception:
                    logger.exception(
                        "Handler %s failed for %s (event_id=%s)",
                        getattr(callback, "__name__", repr(callback)),
                        type(event).__name__,
                        event.event_id,
                    )
