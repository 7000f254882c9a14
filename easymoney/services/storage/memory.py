"""
In-Memory Storage

Dictionary-backed implementations of the storage interfaces.
Used for tests and for running the core without a spreadsheet.
Nothing survives the process.
"""

import asyncio
from datetime import datetime
from typing import Optional, TypeVar
from uuid import UUID, uuid4

from easymoney.models.audit import AuditEvent
from easymoney.models.records import (
    Budget,
    DocumentRecord,
    Goal,
    Notification,
    RecurringItem,
    Transaction,
)
from easymoney.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    NotificationStorageInterface,
    RecordStorageInterface,
)

RecordT = TypeVar("RecordT", bound=DocumentRecord)


def new_document_id() -> str:
    return uuid4().hex


class _Collection:
    """One named collection of records keyed by id."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        self.items: dict[str, DocumentRecord] = {}

    def add(self, record: RecordT) -> RecordT:
        if record.id is not None and record.id in self.items:
            raise DuplicateError(f"{self.entity_type} {record.id} already exists")
        stored = record if record.id is not None else record.model_copy(
            update={"id": new_document_id()}
        )
        self.items[stored.id] = stored
        return stored

    def update(self, record: RecordT) -> RecordT:
        if record.id is None or record.id not in self.items:
            raise NotFoundError(self.entity_type, str(record.id))
        self.items[record.id] = record
        return record

    def delete(self, record_id: str) -> bool:
        return self.items.pop(record_id, None) is not None

    def get(self, record_id: str) -> Optional[DocumentRecord]:
        return self.items.get(record_id)

    def values(self) -> list:
        return list(self.items.values())


class InMemoryRecordStorage(RecordStorageInterface):
    """Records kept in dictionaries."""

    def __init__(self):
        self._transactions = _Collection("transaction")
        self._budgets = _Collection("budget")
        self._goals = _Collection("goal")
        self._recurring = _Collection("recurring")

    # Transactions

    async def list_transactions(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        results = []
        for transaction in self._transactions.values():
            if date_from is not None and transaction.date < date_from:
                continue
            if date_to is not None and transaction.date >= date_to:
                continue
            results.append(transaction)
        results.sort(key=lambda t: t.date, reverse=True)
        return results

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        return self._transactions.add(transaction)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return self._transactions.update(transaction)

    async def delete_transaction(self, transaction_id: str) -> bool:
        return self._transactions.delete(transaction_id)

    # Budgets

    async def list_budgets(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        return [
            b for b in self._budgets.values()
            if (month is None or b.month == month) and (year is None or b.year == year)
        ]

    async def add_budget(self, budget: Budget) -> Budget:
        return self._budgets.add(budget)

    async def update_budget(self, budget: Budget) -> Budget:
        return self._budgets.update(budget)

    async def delete_budget(self, budget_id: str) -> bool:
        return self._budgets.delete(budget_id)

    # Goals

    async def list_goals(self) -> list[Goal]:
        return sorted(self._goals.values(), key=lambda g: g.created_at, reverse=True)

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    async def add_goal(self, goal: Goal) -> Goal:
        return self._goals.add(goal)

    async def update_goal(self, goal: Goal) -> Goal:
        return self._goals.update(goal)

    async def delete_goal(self, goal_id: str) -> bool:
        return self._goals.delete(goal_id)

    # Recurring items

    async def list_recurring_items(self, active_only: bool = False) -> list[RecurringItem]:
        items = [i for i in self._recurring.values() if i.is_active or not active_only]
        return sorted(items, key=lambda i: i.next_due_date)

    async def add_recurring_item(self, item: RecurringItem) -> RecurringItem:
        return self._recurring.add(item)

    async def update_recurring_item(self, item: RecurringItem) -> RecurringItem:
        return self._recurring.update(item)

    async def delete_recurring_item(self, item_id: str) -> bool:
        return self._recurring.delete(item_id)


class InMemoryNotificationStorage(NotificationStorageInterface):
    """
    Notifications kept in a dictionary.

    add_notification_if_absent is atomic: the dedup check and the insert
    happen under one lock.
    """

    def __init__(self):
        self._notifications = _Collection("notification")
        self._lock = asyncio.Lock()

    async def list_notifications(self, unread_only: bool = False) -> list[Notification]:
        items = [n for n in self._notifications.values() if not (unread_only and n.is_read)]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    async def add_notification_if_absent(
        self,
        notification: Notification,
    ) -> Optional[Notification]:
        async with self._lock:
            key = notification.dedup_key
            if any(n.dedup_key == key for n in self._notifications.values()):
                return None
            return self._notifications.add(notification)

    async def mark_as_read(self, notification_id: str) -> Notification:
        async with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None:
                raise NotFoundError("notification", notification_id)
            return self._notifications.update(notification.mark_read())

    async def mark_all_as_read(self) -> int:
        async with self._lock:
            changed = 0
            for notification in self._notifications.values():
                if not notification.is_read:
                    self._notifications.update(notification.mark_read())
                    changed += 1
            return changed

    async def delete_notification(self, notification_id: str) -> bool:
        async with self._lock:
            return self._notifications.delete(notification_id)

    async def delete_all_read(self) -> int:
        async with self._lock:
            read_ids = [n.id for n in self._notifications.values() if n.is_read]
            for notification_id in read_ids:
                self._notifications.delete(notification_id)
            return len(read_ids)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
