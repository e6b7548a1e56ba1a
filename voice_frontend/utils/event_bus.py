"""
Typed lifecycle event bus with explicit subscriber registration.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..models.data_models import FrontendEvent, LifecycleEvent
from .logging_config import get_logger

logger = get_logger("events")

EventCallback = Callable[[FrontendEvent], None]


@dataclass
class Subscription:
    """Handle returned by ``subscribe``; pass to ``unsubscribe`` to detach."""
    subscriber_id: int
    kind: Optional[LifecycleEvent]
    callback: EventCallback


class EventBus:
    """
    Delivers ``FrontendEvent`` objects to subscribers in registration order.

    Callbacks run synchronously on the emitting task and must be quick.
    A failing subscriber is logged and does not affect the others.
    """

    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._next_id = 0
        self._history: List[FrontendEvent] = []
        self._max_history = 200

    def subscribe(self, kind: Optional[LifecycleEvent], callback: EventCallback) -> Subscription:
        """
        Register a callback for one event kind, or for every kind when ``kind`` is None.
        """
        with self._lock:
            self._next_id += 1
            subscription = Subscription(self._next_id, kind, callback)
            self._subscriptions[subscription.subscriber_id] = subscription
        return subscription

    def subscribe_all(self, callback: EventCallback) -> Subscription:
        return self.subscribe(None, callback)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.subscriber_id, None)

    def emit(self, kind: LifecycleEvent, **data) -> FrontendEvent:
        event = FrontendEvent(kind=kind, data=data)
        with self._lock:
            targets = [
                s for s in self._subscriptions.values()
                if s.kind is None or s.kind == kind
            ]
            self._history.append(event)
            if len(self._history) > self._max_history:
                self._history.pop(0)

        logger.debug("Event: %s", event)
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception as e:
                logger.warning("Subscriber %d failed on %s: %s",
                               subscription.subscriber_id, kind.value, e)
        return event

    def get_history(self, kind: Optional[LifecycleEvent] = None) -> List[FrontendEvent]:
        with self._lock:
            if kind is None:
                return self._history.copy()
            return [e for e in self._history if e.kind == kind]

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
