"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the engines free of any document-store details
2. Use in-memory storage for testing
3. Swap Google Sheets for another document store later

The interface is intentionally simple - we're not building a full ORM.
Just the operations the finance core needs. Every method is async so
network-backed implementations don't block the caller.

Ranges passed to list methods are half-open: date_from <= date < date_to.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from easymoney.errors import RecordNotFoundError
from easymoney.models.audit import AuditEvent
from easymoney.models.records import (
    Budget,
    Goal,
    Notification,
    RecurringItem,
    Transaction,
)
from easymoney.models.snapshot import RecordSnapshot


class RecordStorageInterface(ABC):
    """
    Abstract interface for the user's financial records.

    Add methods return the stored record with its new id.
    Update methods raise NotFoundError when the id is unknown.
    Delete methods return False when there was nothing to delete.
    """

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        List transactions, newest first.

        Args:
            date_from: Only transactions on or after this moment
            date_to: Only transactions strictly before this moment
        """
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        pass

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_budgets(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        """List budgets, optionally only those of one month and/or year."""
        pass

    @abstractmethod
    async def add_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: str) -> bool:
        pass

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_goals(self) -> list[Goal]:
        pass

    @abstractmethod
    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        """
        Retrieve a goal by its id.

        Returns:
            The goal if found, None otherwise
        """
        pass

    @abstractmethod
    async def add_goal(self, goal: Goal) -> Goal:
        pass

    @abstractmethod
    async def update_goal(self, goal: Goal) -> Goal:
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> bool:
        pass

    # ------------------------------------------------------------------
    # Recurring items
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_recurring_items(self, active_only: bool = False) -> list[RecurringItem]:
        pass

    @abstractmethod
    async def add_recurring_item(self, item: RecurringItem) -> RecurringItem:
        pass

    @abstractmethod
    async def update_recurring_item(self, item: RecurringItem) -> RecurringItem:
        pass

    @abstractmethod
    async def delete_recurring_item(self, item_id: str) -> bool:
        pass

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def load_snapshot(
        self,
        notifications: Optional["NotificationStorageInterface"] = None,
    ) -> RecordSnapshot:
        """
        Read every collection into one immutable snapshot.

        Args:
            notifications: Where to read notifications from.
                           If None, the snapshot has none.
        """
        transactions, budgets, goals, recurring_items = await asyncio.gather(
            self.list_transactions(),
            self.list_budgets(),
            self.list_goals(),
            self.list_recurring_items(),
        )
        stored_notifications = (
            await notifications.list_notifications() if notifications else []
        )
        return RecordSnapshot(
            transactions=tuple(transactions),
            budgets=tuple(budgets),
            goals=tuple(goals),
            recurring_items=tuple(recurring_items),
            notifications=tuple(stored_notifications),
        )


class NotificationStorageInterface(ABC):
    """
    Abstract interface for notification storage.

    Notifications are created once per dedup key, then only marked read
    or deleted by the user.
    """

    @abstractmethod
    async def list_notifications(self, unread_only: bool = False) -> list[Notification]:
        """List notifications, newest first."""
        pass

    @abstractmethod
    async def add_notification_if_absent(
        self,
        notification: Notification,
    ) -> Optional[Notification]:
        """
        Insert unless a notification with the same dedup_key exists.

        Read notifications count as existing.

        Returns:
            The stored notification (with id), or None if it was a duplicate
        """
        pass

    @abstractmethod
    async def mark_as_read(self, notification_id: str) -> Notification:
        """
        Mark one notification read.

        Raises:
            NotFoundError: If the notification doesn't exist
        """
        pass

    @abstractmethod
    async def mark_all_as_read(self) -> int:
        """Mark every unread notification read. Returns how many changed."""
        pass

    @abstractmethod
    async def delete_notification(self, notification_id: str) -> bool:
        pass

    @abstractmethod
    async def delete_all_read(self) -> int:
        """Delete every read notification. Returns how many were deleted."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one correlated flow (e.g. one budget check pass), oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError, RecordNotFoundError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
