"""
Page Events - Visibility and focus notifications from the embedding application

The host (a kiosk browser bridge, a desktop shell, a test) publishes
page events on a PageEventBus. Consumers subscribe and get back a
Subscription whose cancel() is the single teardown for that handler.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

VISIBILITY_CHANGE = "visibility_change"
FOCUS_CHANGE = "focus_change"


class Subscription:
    """Handle for one registered handler"""

    def __init__(self, teardown: Callable[[], None]):
        self._teardown = teardown
        self.cancelled = False

    def cancel(self):
        """Remove the handler (idempotent)"""
        if self.cancelled:
            return
        self.cancelled = True
        self._teardown()


class SubscriptionGroup:
    """Collects subscriptions so they can be cancelled together"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def __len__(self) -> int:
        return len(self._subscriptions)

    def cancel_all(self):
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()


class PageEventBus:
    """
    Synchronous publish/subscribe for page events.

    Handlers run on the publisher's thread, which must be the event
    loop thread the engine runs on.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}

    def subscribe(self, event_name: str, handler: Callable[..., Any]) -> Subscription:
        self._handlers.setdefault(event_name, []).append(handler)

        def teardown():
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return Subscription(teardown)

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def publish(self, event_name: str, **payload):
        """Deliver an event to every current handler"""
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(**payload)
            except Exception as e:
                logger.error(f"[EVENTS] Handler for {event_name} failed: {e}")

    def set_visibility(self, hidden: bool):
        """Publish a page visibility change"""
        self.publish(VISIBILITY_CHANGE, hidden=hidden)

    def set_focus(self, focused: bool):
        """Publish a window focus change"""
        self.publish(FOCUS_CHANGE, focused=focused)
