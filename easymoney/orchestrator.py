"""
Main Orchestrator for EasyMoney

This module ties the pure engines to storage and defines the
end-to-end flows for:
1. Reports (snapshot → aggregation → summaries, trends, budget usage)
2. Alerts (snapshot → alert derivation → serialised insert)
3. Record changes (validate → store → audit → re-check alerts)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Engines never do I/O; the orchestrator loads a snapshot first
- Notifications are only inserted through the dispatcher
- Every state change is audited and published on the event bus

This is the "glue" that a UI or a scheduled job talks to.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

import structlog

from easymoney.aggregation import (
    budget_utilization,
    build_report,
    summarize_period,
    trend_series,
)
from easymoney.alerts import (
    NotificationDispatcher,
    budgets_to_check,
    check_budgets,
    check_goals,
    check_recurring_due,
)
from easymoney.audit import AuditLogger, configure_logging, create_correlation_id
from easymoney.config import AlertSettings, get_settings, validate_all_settings
from easymoney.errors import RecordNotFoundError
from easymoney.events import (
    BUDGET_DELETED,
    BUDGET_SAVED,
    GOAL_COMPLETED,
    GOAL_UPDATED,
    NOTIFICATION_CREATED,
    NOTIFICATIONS_CHANGED,
    RECURRING_DELETED,
    RECURRING_SAVED,
    TRANSACTION_DELETED,
    TRANSACTION_SAVED,
    EventBus,
)
from easymoney.goals import add_contribution, split_goals, total_progress
from easymoney.models import (
    Budget,
    BudgetUtilization,
    FinancialReport,
    Goal,
    Granularity,
    Notification,
    NotificationType,
    PeriodSummary,
    RecordSnapshot,
    RecurringItem,
    Transaction,
    TransactionKind,
    TrendPoint,
    ValidationResult,
)
from easymoney.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryNotificationStorage,
    InMemoryRecordStorage,
    NotificationStorageInterface,
    RecordStorageInterface,
    StorageError,
)
from easymoney.utils.periods import month_range
from easymoney.validation import RecordValidator, find_duplicate_budgets

logger = structlog.get_logger(__name__)

DEFAULT_USER_ID = "default"


class FinanceTracker:
    """
    One user's finance core.

    Reads go through a fresh snapshot each time; nothing is cached
    between calls, so results always reflect the store.
    """

    def __init__(
        self,
        records: RecordStorageInterface,
        notifications: NotificationStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        event_bus: Optional[EventBus] = None,
        alert_settings: Optional[AlertSettings] = None,
        currency: str = "USD",
        user_id: str = DEFAULT_USER_ID,
    ):
        self._records = records
        self._notifications = notifications
        self._audit_logger = audit_logger or AuditLogger()
        self._events = event_bus or EventBus()
        self._alerts = alert_settings or AlertSettings()
        self._currency = currency
        self._user_id = user_id
        self._dispatcher = NotificationDispatcher(notifications, self._audit_logger)
        self._validator = RecordValidator(records)

    @property
    def events(self) -> EventBus:
        return self._events

    # =========================================================================
    # SNAPSHOT & REPORTS
    # =========================================================================

    async def load_snapshot(self) -> RecordSnapshot:
        """Every collection, including notifications, as one snapshot."""
        return await self._records.load_snapshot(self._notifications)

    async def period_summary(self, start: datetime, end: datetime) -> PeriodSummary:
        """Income, expenses and category breakdown for [start, end)."""
        transactions = await self._records.list_transactions(date_from=start, date_to=end)
        return summarize_period(transactions, start, end)

    async def monthly_summary(self, month: int, year: int) -> PeriodSummary:
        window = month_range(month, year)
        return await self.period_summary(window.start, window.end)

    async def trend(
        self,
        granularity: Granularity,
        reference: Optional[date] = None,
    ) -> list[TrendPoint]:
        """Chart series for the week, month or year containing `reference`."""
        transactions = await self._records.list_transactions()
        return trend_series(transactions, granularity, reference)

    async def budget_overview(self, month: int, year: int) -> list[BudgetUtilization]:
        """Utilisation of every budget of one month."""
        window = month_range(month, year)
        budgets = await self._records.list_budgets(month=month, year=year)
        transactions = await self._records.list_transactions(
            date_from=window.start, date_to=window.end
        )
        return [budget_utilization(b, transactions) for b in budgets]

    async def evaluate_budget(self, budget_id: str) -> BudgetUtilization:
        """
        Utilisation of one budget.

        Raises:
            RecordNotFoundError: If no budget has this id
        """
        snapshot = await self._records.load_snapshot()
        budget = snapshot.get_budget(budget_id)
        return budget_utilization(budget, snapshot.transactions)

    async def financial_report(
        self,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None,
    ) -> FinancialReport:
        """Export data for [start, end): totals, transactions, categories, budgets, goals."""
        snapshot = await self._records.load_snapshot()
        report = build_report(snapshot, start, end, now)
        logger.info(
            "report_built",
            start=start.isoformat(),
            end=end.isoformat(),
            transactions=len(report.transactions),
        )
        return report

    async def goal_overview(self) -> dict[str, Any]:
        """Active and completed goals plus combined progress."""
        goals = await self._records.list_goals()
        active, completed = split_goals(goals)
        return {
            "active": active,
            "completed": completed,
            "total_progress": total_progress(goals),
        }

    # =========================================================================
    # ALERTS
    # =========================================================================

    async def _dispatch(self, check, correlation_id: UUID) -> list[Notification]:
        try:
            created = await self._dispatcher.dispatch(self._user_id, check, correlation_id)
        except StorageError as e:
            logger.error("alert_dispatch_failed", user_id=self._user_id, error=str(e))
            await self._audit_logger.log_storage_error("dispatch_notifications", str(e), correlation_id)
            raise
        for notification in created:
            self._events.publish(NOTIFICATION_CREATED, {
                "notification_id": notification.id,
                "type": notification.type.value,
                "related_id": notification.related_id,
            })
        return created

    async def check_budget_alerts(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """
        Evaluate budgets and store any new warning/exceeded notifications.

        Duplicate budgets are reported to the audit log, not merged.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()
        snapshot = await self._records.load_snapshot()
        checked = budgets_to_check(snapshot.budgets, today, self._alerts.current_month_only)

        for key, group in find_duplicate_budgets(checked).items():
            await self._audit_logger.log_duplicate_budgets(
                key.category, key.month, key.year,
                [b.id for b in group],
                correlation_id,
            )

        created = await self._dispatch(
            lambda existing: check_budgets(
                checked,
                snapshot.transactions,
                existing,
                today=today,
                current_month_only=False,
                currency=self._currency,
            ),
            correlation_id,
        )

        await self._audit_logger.log_budget_check(
            budgets_checked=len(checked),
            warnings_created=sum(1 for n in created if n.type == NotificationType.BUDGET_WARNING),
            exceeded_created=sum(1 for n in created if n.type == NotificationType.BUDGET_EXCEEDED),
            correlation_id=correlation_id,
        )
        return created

    async def check_recurring_alerts(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """Store recurringDue notifications for items due soon."""
        correlation_id = correlation_id or create_correlation_id()
        items = await self._records.list_recurring_items(active_only=True)
        return await self._dispatch(
            lambda existing: check_recurring_due(
                items,
                existing,
                today=today,
                lookahead_days=self._alerts.recurring_lookahead_days,
            ),
            correlation_id,
        )

    async def check_goal_alerts(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """Store goal notifications. Does nothing unless goal alerts are enabled."""
        if not self._alerts.goal_alerts_enabled:
            return []
        correlation_id = correlation_id or create_correlation_id()
        goals = await self._records.list_goals()
        return await self._dispatch(
            lambda existing: check_goals(
                goals,
                existing,
                near_target_percent=self._alerts.goal_near_target_percent,
                currency=self._currency,
            ),
            correlation_id,
        )

    async def run_all_checks(self, today: Optional[date] = None) -> list[Notification]:
        """Budget, recurring and goal checks as one correlated pass."""
        correlation_id = create_correlation_id()
        created = await self.check_budget_alerts(today, correlation_id)
        created += await self.check_recurring_alerts(today, correlation_id)
        created += await self.check_goal_alerts(correlation_id)
        return created

    async def unread_count(self) -> int:
        return len(await self._notifications.list_notifications(unread_only=True))

    async def mark_as_read(self, notification_id: str) -> Notification:
        """
        Raises:
            NotFoundError: If the notification doesn't exist
        """
        notification = await self._notifications.mark_as_read(notification_id)
        await self._audit_logger.log_notification_read(notification_id)
        self._events.publish(NOTIFICATIONS_CHANGED, {"read": [notification_id]})
        return notification

    async def mark_all_as_read(self) -> int:
        changed = await self._notifications.mark_all_as_read()
        if changed:
            await self._audit_logger.log_notification_read(None)
            self._events.publish(NOTIFICATIONS_CHANGED, {"read_count": changed})
        return changed

    async def delete_notification(self, notification_id: str) -> bool:
        deleted = await self._notifications.delete_notification(notification_id)
        if deleted:
            await self._audit_logger.log_record_deleted("notification", notification_id)
            self._events.publish(NOTIFICATIONS_CHANGED, {"deleted": [notification_id]})
        return deleted

    async def delete_all_read(self) -> int:
        deleted = await self._notifications.delete_all_read()
        if deleted:
            self._events.publish(NOTIFICATIONS_CHANGED, {"deleted_count": deleted})
        return deleted

    # =========================================================================
    # RECORDS
    # =========================================================================

    async def validate_document(
        self,
        entity_type: str,
        data: Mapping[str, Any],
        doc_id: Optional[str] = None,
    ) -> ValidationResult:
        """Two-stage validation of a raw document; rejections are audited."""
        result = await self._validator.validate(entity_type, data, doc_id)
        for issue in result.errors:
            await self._audit_logger.log_record_rejected(entity_type, issue.field, issue.message)
        return result

    async def _transaction_saved(
        self,
        stored: Transaction,
        correlation_id: UUID,
        today: Optional[date] = None,
        updated: bool = False,
    ) -> None:
        await self._audit_logger.log_record_saved(
            "transaction", stored.id,
            f"{stored.kind.value} {stored.amount} {stored.category}",
            correlation_id,
            updated=updated,
        )
        self._events.publish(TRANSACTION_SAVED, {
            "transaction_id": stored.id,
            "updated": updated,
        })

        if stored.kind == TransactionKind.EXPENSE:
            await self.check_budget_alerts(today, correlation_id)

    async def add_transaction(
        self,
        transaction: Transaction,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Store a transaction.

        Expenses re-run the budget check, so crossing a threshold
        notifies right away.
        """
        correlation_id = create_correlation_id()
        stored = await self._records.add_transaction(transaction)
        await self._transaction_saved(stored, correlation_id, today)
        return stored

    async def update_transaction(
        self,
        transaction: Transaction,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Replace a stored transaction; expenses re-run the budget check.

        Raises:
            NotFoundError: If no transaction has this id
        """
        correlation_id = create_correlation_id()
        stored = await self._records.update_transaction(transaction)
        await self._transaction_saved(stored, correlation_id, today, updated=True)
        return stored

    async def delete_transaction(self, transaction_id: str) -> bool:
        deleted = await self._records.delete_transaction(transaction_id)
        if deleted:
            await self._audit_logger.log_record_deleted("transaction", transaction_id)
            self._events.publish(TRANSACTION_DELETED, {"transaction_id": transaction_id})
        return deleted

    async def save_budget(self, budget: Budget) -> Budget:
        """
        Add a new budget (no id) or replace an existing one.

        A second budget for the same category and month is allowed but
        reported in the audit log.
        """
        correlation_id = create_correlation_id()
        if budget.id is None:
            stored = await self._records.add_budget(budget)
        else:
            stored = await self._records.update_budget(budget)
        await self._audit_logger.log_record_saved(
            "budget", stored.id,
            f"{stored.category} {stored.monthly_limit} for {stored.period_label}",
            correlation_id,
            updated=budget.id is not None,
        )

        same_month = await self._records.list_budgets(month=stored.month, year=stored.year)
        duplicates = find_duplicate_budgets(same_month).get(stored.period_key)
        if duplicates:
            logger.warning(
                "duplicate_budget",
                category=stored.category,
                month=stored.month,
                year=stored.year,
                count=len(duplicates),
            )
            await self._audit_logger.log_duplicate_budgets(
                stored.category, stored.month, stored.year,
                [b.id for b in duplicates],
                correlation_id,
            )

        self._events.publish(BUDGET_SAVED, {"budget_id": stored.id})
        return stored

    async def create_budget(
        self,
        category: str,
        monthly_limit: Decimal,
        month: Optional[int] = None,
        year: Optional[int] = None,
        alert_threshold: Optional[int] = None,
    ) -> Budget:
        """
        New budget for the given (or current) month, threshold from settings if omitted.

        Raises:
            InvalidInputError: If month, year, limit or threshold is out of range
        """
        today = date.today()
        budget = Budget.from_document({
            "category": category,
            "monthly_limit": monthly_limit,
            "month": today.month if month is None else month,
            "year": today.year if year is None else year,
            "alert_threshold": (
                self._alerts.default_threshold if alert_threshold is None else alert_threshold
            ),
        })
        return await self.save_budget(budget)

    async def delete_budget(self, budget_id: str) -> bool:
        deleted = await self._records.delete_budget(budget_id)
        if deleted:
            await self._audit_logger.log_record_deleted("budget", budget_id)
            self._events.publish(BUDGET_DELETED, {"budget_id": budget_id})
        return deleted

    async def _goal_changed(
        self,
        previous: Optional[Goal],
        stored: Goal,
        correlation_id: UUID,
    ) -> None:
        self._events.publish(GOAL_UPDATED, {
            "goal_id": stored.id,
            "progress": str(stored.progress),
        })
        if stored.is_completed and not (previous and previous.is_completed):
            await self._audit_logger.log_goal_completed(stored.id, stored.name, correlation_id)
            self._events.publish(GOAL_COMPLETED, {"goal_id": stored.id})

    async def add_goal(self, goal: Goal) -> Goal:
        correlation_id = create_correlation_id()
        stored = await self._records.add_goal(goal)
        await self._audit_logger.log_record_saved(
            "goal", stored.id, f"{stored.name} target {stored.target_amount}", correlation_id
        )
        await self._goal_changed(None, stored, correlation_id)
        return stored

    async def update_goal(self, goal: Goal) -> Goal:
        """
        Replace a stored goal (name, target, date, color or amount).

        Raises:
            RecordNotFoundError: If no goal has this id
        """
        previous = await self._records.get_goal(goal.id) if goal.id else None
        if previous is None:
            raise RecordNotFoundError("goal", str(goal.id))

        correlation_id = create_correlation_id()
        stored = await self._records.update_goal(goal)
        await self._audit_logger.log_record_saved(
            "goal", stored.id,
            f"{stored.name} {stored.current_amount} of {stored.target_amount}",
            correlation_id,
            updated=True,
        )
        await self._goal_changed(previous, stored, correlation_id)
        return stored

    async def add_goal_contribution(self, goal_id: str, amount: Decimal) -> Goal:
        """
        Deposit into a goal.

        Raises:
            RecordNotFoundError: If no goal has this id
            InvalidInputError: If amount is zero or negative
        """
        goal = await self._records.get_goal(goal_id)
        if goal is None:
            raise RecordNotFoundError("goal", goal_id)

        updated = add_contribution(goal, amount)
        stored = await self._records.update_goal(updated)

        correlation_id = create_correlation_id()
        await self._audit_logger.log_goal_contribution(
            goal_id, stored.current_amount - goal.current_amount, stored.current_amount,
            correlation_id,
        )
        await self._goal_changed(goal, stored, correlation_id)
        return stored

    async def delete_goal(self, goal_id: str) -> bool:
        deleted = await self._records.delete_goal(goal_id)
        if deleted:
            await self._audit_logger.log_record_deleted("goal", goal_id)
        return deleted

    async def _recurring_saved(
        self,
        stored: RecurringItem,
        summary: str,
        correlation_id: Optional[UUID] = None,
        updated: bool = False,
    ) -> None:
        await self._audit_logger.log_record_saved(
            "recurring", stored.id, summary, correlation_id, updated=updated
        )
        self._events.publish(RECURRING_SAVED, {
            "recurring_id": stored.id,
            "next_due_date": stored.next_due_date.isoformat(),
        })

    async def add_recurring_item(self, item: RecurringItem) -> RecurringItem:
        stored = await self._records.add_recurring_item(item)
        await self._recurring_saved(
            stored, f"{stored.frequency.value} {stored.amount} {stored.category}"
        )
        return stored

    async def update_recurring_item(self, item: RecurringItem) -> RecurringItem:
        """
        Replace a stored recurring item (amount, schedule, active flag).

        Raises:
            NotFoundError: If no recurring item has this id
        """
        stored = await self._records.update_recurring_item(item)
        await self._recurring_saved(
            stored,
            f"{stored.frequency.value} {stored.amount} {stored.category}",
            updated=True,
        )
        return stored

    async def delete_recurring_item(self, item_id: str) -> bool:
        deleted = await self._records.delete_recurring_item(item_id)
        if deleted:
            await self._audit_logger.log_record_deleted("recurring", item_id)
            self._events.publish(RECURRING_DELETED, {"recurring_id": item_id})
        return deleted

    async def post_recurring_item(
        self,
        item_id: str,
        today: Optional[date] = None,
    ) -> tuple[Transaction, RecurringItem]:
        """
        Record the due occurrence of a recurring item as a transaction
        and move the item to its next due date.

        The item is advanced first. If storing the transaction then fails,
        the item is put back, so a retry posts the same occurrence once.

        Raises:
            RecordNotFoundError: If no recurring item has this id
            StorageError: If the transaction can't be stored
        """
        items = await self._records.list_recurring_items()
        item = next((i for i in items if i.id == item_id), None)
        if item is None:
            raise RecordNotFoundError("recurring", item_id)

        correlation_id = create_correlation_id()
        advanced = await self._records.update_recurring_item(item.advance())
        try:
            stored = await self._records.add_transaction(Transaction(
                amount=item.amount,
                kind=item.kind,
                category=item.category,
                description=item.description,
                date=item.next_due_date,
                currency=item.currency,
            ))
        except StorageError as e:
            logger.error("recurring_post_failed", recurring_id=item_id, error=str(e))
            await self._records.update_recurring_item(item)
            await self._audit_logger.log_storage_error("post_recurring_item", str(e), correlation_id)
            raise

        await self._recurring_saved(
            advanced,
            f"next due {advanced.next_due_date.date().isoformat()}",
            correlation_id,
            updated=True,
        )
        await self._transaction_saved(stored, correlation_id, today)
        return stored, advanced


def create_tracker(
    backend: Optional[str] = None,
    user_id: str = DEFAULT_USER_ID,
) -> FinanceTracker:
    """
    Factory function to wire a tracker from settings.

    Args:
        backend: "memory" or "google_sheets"; defaults to the
                 configured storage_backend.
    """
    settings = get_settings()
    app = settings.app
    configure_logging(app.log_level)
    backend = backend or app.storage_backend

    audit_storage: AuditStorageInterface
    if backend == "google_sheets":
        status = validate_all_settings()
        if not status["google_sheets"]:
            raise ConnectionError(
                f"Google Sheets is not configured: {status['google_sheets_error']}"
            )
        sheets_client = GoogleSheetsClient()
        records = GoogleSheetsRecordStorage(sheets_client)
        notifications = GoogleSheetsNotificationStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        records = InMemoryRecordStorage()
        notifications = InMemoryNotificationStorage()
        audit_storage = InMemoryAuditStorage()

    logger.info("tracker_created", backend=backend, environment=app.app_environment)

    return FinanceTracker(
        records=records,
        notifications=notifications,
        audit_logger=AuditLogger(audit_storage),
        alert_settings=settings.alerts,
        currency=app.default_currency,
        user_id=user_id,
    )
