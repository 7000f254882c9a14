"""Alerting package."""

from easymoney.alerts.engine import (
    budgets_to_check,
    check_and_create_notifications,
    check_budgets,
    check_goals,
    check_recurring_due,
)
from easymoney.alerts.dispatcher import NotificationDispatcher

__all__ = [
    "NotificationDispatcher",
    "budgets_to_check",
    "check_and_create_notifications",
    "check_budgets",
    "check_goals",
    "check_recurring_due",
]
