"""
In-Process Event Bus

The tracker publishes an event after every state change it makes so a
UI layer (badge counters, toasts, chart refresh) can react without
polling storage. Handlers run synchronously in subscription order.
"""

from datetime import datetime
from typing import Any, Callable, NamedTuple

__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "TRANSACTION_SAVED",
    "TRANSACTION_DELETED",
    "BUDGET_SAVED",
    "BUDGET_DELETED",
    "GOAL_UPDATED",
    "GOAL_COMPLETED",
    "RECURRING_SAVED",
    "RECURRING_DELETED",
    "NOTIFICATION_CREATED",
    "NOTIFICATIONS_CHANGED",
]

TRANSACTION_SAVED = "TRANSACTION_SAVED"
TRANSACTION_DELETED = "TRANSACTION_DELETED"
BUDGET_SAVED = "BUDGET_SAVED"
BUDGET_DELETED = "BUDGET_DELETED"
GOAL_UPDATED = "GOAL_UPDATED"
GOAL_COMPLETED = "GOAL_COMPLETED"
RECURRING_SAVED = "RECURRING_SAVED"
RECURRING_DELETED = "RECURRING_DELETED"
NOTIFICATION_CREATED = "NOTIFICATION_CREATED"
NOTIFICATIONS_CHANGED = "NOTIFICATIONS_CHANGED"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], Any]


class EventBus:
    def __init__(self):
        self._subscribers: dict[str, list[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict) -> list[Any]:
        """Call every handler for `name`; returns their results in order."""
        if not self._subscribers.get(name):
            return []

        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event) for handler in list(self._subscribers[name])]
