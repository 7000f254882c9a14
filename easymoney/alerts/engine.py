"""
Alerting Engine

Turns budget utilisation, recurring due dates and goal progress into
notifications the user should see.

DESIGN DECISION: Alert derivation is PURE.
Functions receive the already-stored notifications and return the new
ones that should be inserted. They never touch storage; the dispatcher
does the insert under a per-user lock (see alerts.dispatcher).

State per (budget, month, year) is one-directional:

    Normal --(percent >= threshold)--> Warned --(spent > limit)--> Exceeded

A new month starts back at Normal because the dedup key carries the
month ("2025-03"), not because anything is reset.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from easymoney.aggregation.engine import category_spending
from easymoney.errors import InvalidInputError
from easymoney.models.records import (
    Budget,
    Goal,
    Notification,
    NotificationKey,
    NotificationType,
    RecurringItem,
    Transaction,
)
from easymoney.utils.money import (
    DEFAULT_CURRENCY,
    ZERO,
    Number,
    format_currency,
    percent_of,
    to_decimal,
)
from easymoney.utils.periods import month_key, month_label, month_range

BUDGET_SCREEN = "budget"
RECURRING_SCREEN = "recurring"
GOALS_SCREEN = "goals"

KnownAlerts = Iterable[Union[Notification, NotificationKey]]


def _known_keys(existing: KnownAlerts) -> set[NotificationKey]:
    """Dedup keys of stored notifications, read or unread."""
    keys = set()
    for item in existing:
        keys.add(item.dedup_key if isinstance(item, Notification) else item)
    return keys


def _whole_percent(percent: Decimal) -> Decimal:
    return percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


# =============================================================================
# BUDGETS
# =============================================================================

def check_and_create_notifications(
    spent: Number,
    limit: Number,
    category: str,
    threshold: int,
    budget_id: Optional[str],
    month: int,
    year: int,
    existing: KnownAlerts,
    currency: str = DEFAULT_CURRENCY,
    now: Optional[datetime] = None,
) -> Optional[Notification]:
    """
    Decide whether one budget needs a new notification.

    Args:
        spent: Expense total for the budget's category and month
        limit: The budget's monthly limit
        category: Category label (used in the message)
        threshold: Warning threshold in percent (0..100)
        budget_id: Budget document id, used as related_id
        month, year: The budget's period
        existing: Stored notifications (or their keys), read or unread
        currency: Currency used to format amounts in the message
        now: created_at of the new notification

    Returns:
        The budgetExceeded or budgetWarning notification to insert,
        or None when nothing new should be shown.

    Raises:
        InvalidInputError: negative spent/limit, threshold outside 0..100
            or a missing budget_id
    """
    spent = to_decimal(spent)
    limit = to_decimal(limit)
    if spent < 0:
        raise InvalidInputError(f"Spent must not be negative: {spent}", field="spent")
    if limit < 0:
        raise InvalidInputError(f"Limit must not be negative: {limit}", field="limit")
    if not 0 <= threshold <= 100:
        raise InvalidInputError(
            f"Threshold must be between 0 and 100: {threshold}", field="threshold"
        )
    if not budget_id:
        raise InvalidInputError("Budget must be saved before it is checked", field="budget_id")

    period = month_key(month, year)
    label = month_label(month, year)
    known = _known_keys(existing)
    percent_used = percent_of(spent, limit)
    created_at = now or datetime.now()

    if spent > limit:
        key = NotificationKey(NotificationType.BUDGET_EXCEEDED, budget_id, period)
        if key in known:
            # Over the limit never falls back to a warning.
            return None
        return Notification(
            title=f"🚨 Budget Exceeded: {category}",
            message=(
                f"You've exceeded your {category} budget for {label} by "
                f"{format_currency(spent - limit, currency)}. "
                f"Spent: {format_currency(spent, currency)} / "
                f"Limit: {format_currency(limit, currency)}"
            ),
            type=NotificationType.BUDGET_EXCEEDED,
            created_at=created_at,
            related_id=budget_id,
            related_screen=BUDGET_SCREEN,
            period=period,
        )

    if percent_used >= threshold:
        key = NotificationKey(NotificationType.BUDGET_WARNING, budget_id, period)
        if key in known:
            return None
        return Notification(
            title=f"⚠️ Budget Alert: {category}",
            message=(
                f"You've spent {_whole_percent(percent_used)}% of your {category} "
                f"budget for {label}. {format_currency(limit - spent, currency)} "
                f"remaining ({format_currency(spent, currency)} / "
                f"{format_currency(limit, currency)})"
            ),
            type=NotificationType.BUDGET_WARNING,
            created_at=created_at,
            related_id=budget_id,
            related_screen=BUDGET_SCREEN,
            period=period,
        )

    return None


def budgets_to_check(
    budgets: Iterable[Budget],
    today: Optional[date] = None,
    current_month_only: bool = True,
) -> list[Budget]:
    """Budgets a check pass looks at."""
    today = today or date.today()
    if not current_month_only:
        return list(budgets)
    return [b for b in budgets if b.is_current_month(today)]


def check_budgets(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    existing: KnownAlerts,
    today: Optional[date] = None,
    current_month_only: bool = True,
    currency: str = DEFAULT_CURRENCY,
    now: Optional[datetime] = None,
) -> list[Notification]:
    """
    Evaluate every budget in one pass.

    Notifications created earlier in the same pass count as existing, so
    two budgets with the same id and month never produce two alerts.
    Budgets without an id (not saved yet) are skipped.
    """
    snapshot = list(transactions)
    known = _known_keys(existing)
    spending_by_month: dict[tuple[int, int], dict[str, Decimal]] = {}
    created: list[Notification] = []

    for budget in budgets_to_check(budgets, today, current_month_only):
        if budget.id is None:
            continue
        period = (budget.month, budget.year)
        if period not in spending_by_month:
            window = month_range(budget.month, budget.year)
            spending_by_month[period] = category_spending(snapshot, window.start, window.end)
        spent = spending_by_month[period].get(budget.category, ZERO)

        notification = check_and_create_notifications(
            spent=spent,
            limit=budget.monthly_limit,
            category=budget.category,
            threshold=budget.alert_threshold,
            budget_id=budget.id,
            month=budget.month,
            year=budget.year,
            existing=known,
            currency=currency,
            now=now,
        )
        if notification is not None:
            known.add(notification.dedup_key)
            created.append(notification)

    return created


# =============================================================================
# RECURRING ITEMS
# =============================================================================

def _due_phrase(due: date, today: date) -> str:
    days = (due - today).days
    if days < 0:
        return f"was due on {due.isoformat()}"
    if days == 0:
        return "is due today"
    if days == 1:
        return "is due tomorrow"
    return f"is due in {days} days ({due.isoformat()})"


def check_recurring_due(
    items: Iterable[RecurringItem],
    existing: KnownAlerts,
    today: Optional[date] = None,
    lookahead_days: int = 3,
    now: Optional[datetime] = None,
) -> list[Notification]:
    """
    One recurringDue notification per active item due within the lookahead.

    Items already past due are included; the due date is part of the
    dedup key, so advancing an item re-arms its alert for the next date.
    Unsaved items (no id) are skipped.
    """
    if lookahead_days < 0:
        raise InvalidInputError(
            f"Lookahead must not be negative: {lookahead_days}", field="lookahead_days"
        )
    today = today or date.today()
    horizon = today + timedelta(days=lookahead_days)
    known = _known_keys(existing)
    created: list[Notification] = []

    for item in items:
        if not item.is_active or item.id is None:
            continue
        due = item.next_due_date.date()
        if due > horizon:
            continue
        key = NotificationKey(NotificationType.RECURRING_DUE, item.id, due.isoformat())
        if key in known:
            continue

        label = item.description or item.category
        notification = Notification(
            title=f"🔁 Upcoming {item.kind.value}: {label}",
            message=(
                f"{label} ({format_currency(item.amount, item.currency)}, "
                f"{item.frequency.value}) {_due_phrase(due, today)}"
            ),
            type=NotificationType.RECURRING_DUE,
            created_at=now or datetime.now(),
            related_id=item.id,
            related_screen=RECURRING_SCREEN,
            period=due.isoformat(),
        )
        known.add(key)
        created.append(notification)

    return created


# =============================================================================
# GOALS
# =============================================================================

def check_goals(
    goals: Iterable[Goal],
    existing: KnownAlerts,
    near_target_percent: int = 90,
    currency: str = DEFAULT_CURRENCY,
    now: Optional[datetime] = None,
) -> list[Notification]:
    """
    goalCompleted for reached goals, goalNearTarget for goals close to it.

    Each fires at most once per goal. Unsaved goals (no id) are skipped.
    """
    if not 0 < near_target_percent <= 100:
        raise InvalidInputError(
            f"Near-target percent must be between 1 and 100: {near_target_percent}",
            field="near_target_percent",
        )
    known = _known_keys(existing)
    created: list[Notification] = []

    for goal in goals:
        if goal.id is None:
            continue
        if goal.is_completed:
            kind = NotificationType.GOAL_COMPLETED
            title = f"🎉 Goal Reached: {goal.name}"
            message = (
                f"You saved {format_currency(goal.current_amount, currency)} "
                f"and reached your {goal.name} goal!"
            )
        elif goal.progress >= near_target_percent:
            kind = NotificationType.GOAL_NEAR_TARGET
            title = f"🎯 Almost There: {goal.name}"
            message = (
                f"{goal.name} is {_whole_percent(goal.progress)}% complete. "
                f"{format_currency(goal.remaining, currency)} to go"
            )
        else:
            continue

        key = NotificationKey(kind, goal.id, None)
        if key in known:
            continue
        created.append(Notification(
            title=title,
            message=message,
            type=kind,
            created_at=now or datetime.now(),
            related_id=goal.id,
            related_screen=GOALS_SCREEN,
        ))
        known.add(key)

    return created
