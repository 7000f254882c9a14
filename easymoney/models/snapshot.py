"""
Record Snapshot

An immutable view of every collection at one point in time.
Engines compute over a snapshot and never perform I/O themselves;
the storage layer is responsible for producing a consistent one.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from easymoney.errors import RecordNotFoundError
from easymoney.models.records import (
    Budget,
    Goal,
    Notification,
    RecurringItem,
    Transaction,
)


class RecordSnapshot(BaseModel):
    """All of one user's records, already decoded."""
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()
    goals: tuple[Goal, ...] = ()
    recurring_items: tuple[RecurringItem, ...] = ()
    notifications: tuple[Notification, ...] = ()
    taken_at: datetime = Field(default_factory=datetime.now)

    def get_budget(self, budget_id: str) -> Budget:
        for budget in self.budgets:
            if budget.id == budget_id:
                return budget
        raise RecordNotFoundError("budget", budget_id)

    def get_goal(self, goal_id: str) -> Goal:
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        raise RecordNotFoundError("goal", goal_id)

    def get_notification(self, notification_id: str) -> Notification:
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        raise RecordNotFoundError("notification", notification_id)

    def budgets_for_month(self, month: int, year: int) -> list[Budget]:
        return [b for b in self.budgets if b.month == month and b.year == year]

    def budget_for_category(
        self,
        category: str,
        month: int,
        year: int,
    ) -> Optional[Budget]:
        """First budget for (category, month, year), if any."""
        for budget in self.budgets:
            if budget.period_key == (category, month, year):
                return budget
        return None

    @property
    def unread_notifications(self) -> list[Notification]:
        return [n for n in self.notifications if not n.is_read]
