"""
ChangeBus: named-event emission for attributes and models.

Listeners are called synchronously, in subscription order, as
``callback(event, *args)``. Subscribing returns a Subscription handle that
owns the registration; disposing the handle is the only way a NestedAttribute
releases a sub-model.

Thread safety: Not thread-safe (all operations expected on one task queue).
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class Subscription:
    """Handle for one listener registration on a ChangeBus.

    Usable as a context manager; the listener is removed on exit.
    """

    def __init__(self, bus: 'ChangeBus', event: str, callback: Listener):
        self.bus = bus
        self.event = event
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        """Remove the listener. Safe to call more than once."""
        if self._active:
            self._active = False
            self.bus._remove(self)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = 'active' if self._active else 'disposed'
        return f"Subscription({self.event!r}, {state})"


class ChangeBus:
    """Event emitter owned by a model."""

    def __init__(self, label: str = ''):
        self.label = label
        self._listeners: Dict[str, List[Subscription]] = {}

    def on(self, event: str, callback: Listener) -> Subscription:
        """Subscribe ``callback`` to ``event``."""
        subscription = Subscription(self, event, callback)
        self._listeners.setdefault(event, []).append(subscription)
        logger.debug(f"{self.label}: subscribed to {event!r}")
        return subscription

    def off(self, event: str, callback: Optional[Listener] = None) -> int:
        """Unsubscribe from ``event``.

        Args:
            event: Event name
            callback: Listener to remove; None removes every listener of the event

        Returns:
            Number of subscriptions removed
        """
        removed = [
            sub for sub in self._listeners.get(event, [])
            if callback is None or sub.callback == callback
        ]
        for sub in removed:
            sub.dispose()
        return len(removed)

    def trigger(self, event: str, *args: Any) -> None:
        """Call every listener of ``event``.

        A failing listener is logged and does not prevent the others from running.
        """
        subscriptions = self._listeners.get(event)
        if not subscriptions:
            return
        for sub in list(subscriptions):
            if not sub.active:
                continue
            try:
                sub.callback(event, *args)
            except Exception as e:
                logger.warning(f"{self.label}: error in {event!r} listener: {e}")

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self) -> None:
        """Dispose every subscription on this bus."""
        for subscriptions in list(self._listeners.values()):
            for sub in list(subscriptions):
                sub.dispose()
        self._listeners.clear()

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._listeners.get(subscription.event)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
            if not subscriptions:
                del self._listeners[subscription.event]
            logger.debug(f"{self.label}: unsubscribed from {subscription.event!r}")
