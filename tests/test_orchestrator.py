"""
End-to-end tests for FinanceTracker on the in-memory backend.
"""

import asyncio

import pytest
from datetime import date, datetime
from decimal import Decimal

from easymoney.audit import AuditLogger
from easymoney.config import AlertSettings
from easymoney.errors import InvalidInputError, RecordNotFoundError
from easymoney.events import (
    GOAL_COMPLETED,
    NOTIFICATION_CREATED,
    RECURRING_DELETED,
    RECURRING_SAVED,
    TRANSACTION_SAVED,
)
from easymoney.models import (
    AuditEventType,
    Budget,
    Frequency,
    Goal,
    Granularity,
    NotificationType,
    RecurringItem,
    Transaction,
    TransactionKind,
)
from easymoney.orchestrator import FinanceTracker, create_tracker
from easymoney.services.storage import (
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryNotificationStorage,
    InMemoryRecordStorage,
    NotFoundError,
    StorageError,
)

MARCH_20 = date(2025, 3, 20)


def expense(amount: str, category: str = "Food", day: int = 5) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        kind=TransactionKind.EXPENSE,
        category=category,
        date=datetime(2025, 3, day),
    )


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


def build_tracker(audit_storage, **alert_overrides) -> FinanceTracker:
    return FinanceTracker(
        records=InMemoryRecordStorage(),
        notifications=InMemoryNotificationStorage(),
        audit_logger=AuditLogger(audit_storage),
        alert_settings=AlertSettings(**alert_overrides),
    )


@pytest.fixture
def tracker(audit_storage) -> FinanceTracker:
    return build_tracker(audit_storage)


class TestBudgetAlertFlow:
    """Adding expenses walks a budget through warning and exceeded."""

    def test_threshold_crossings_notify_once_each(self, tracker):
        created = []
        tracker.events.subscribe(NOTIFICATION_CREATED, lambda e: created.append(e.payload["type"]))

        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("1000"), month=3, year=2025
            ))
            for amount in ("500", "320", "10", "300", "50"):
                await tracker.add_transaction(expense(amount), today=MARCH_20)
            return await tracker.unread_count(), await tracker.load_snapshot()

        unread, snapshot = asyncio.run(run())
        assert created == ["budgetWarning", "budgetExceeded"]
        assert unread == 2
        assert {n.period for n in snapshot.notifications} == {"2025-03"}

    def test_income_does_not_alert(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("10"), month=3, year=2025
            ))
            await tracker.add_transaction(Transaction(
                amount=Decimal("500"), kind=TransactionKind.INCOME,
                category="Food", date=datetime(2025, 3, 5),
            ), today=MARCH_20)
            return await tracker.unread_count()

        assert asyncio.run(run()) == 0

    def test_duplicate_budgets_each_alert_and_are_audited(self, tracker, audit_storage):
        """Test that duplicates are reported, not merged."""
        async def run():
            for limit in ("100", "200"):
                await tracker.save_budget(Budget(
                    category="Food", monthly_limit=Decimal(limit), month=3, year=2025
                ))
            await tracker.add_transaction(expense("250"), today=MARCH_20)
            return await tracker.load_snapshot(), await audit_storage.get_recent_events()

        snapshot, events = asyncio.run(run())
        exceeded = [n for n in snapshot.notifications if n.type == NotificationType.BUDGET_EXCEEDED]
        assert len(exceeded) == 2
        assert any(e.event_type == AuditEventType.DUPLICATE_BUDGET_DETECTED for e in events)

    def test_check_is_repeatable(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("100"), month=3, year=2025
            ))
            await tracker.add_transaction(expense("90"), today=MARCH_20)
            return await tracker.check_budget_alerts(MARCH_20)

        assert asyncio.run(run()) == []

    def test_past_month_budget_is_not_checked(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("10"), month=3, year=2025
            ))
            await tracker.add_transaction(expense("90"), today=date(2025, 4, 2))
            return await tracker.unread_count()

        assert asyncio.run(run()) == 0


class TestReports:
    def test_monthly_summary_and_budget_overview(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                id="b1", category="Food", monthly_limit=Decimal("400"), month=3, year=2025
            ))
            await tracker.add_transaction(expense("100"), today=MARCH_20)
            await tracker.add_transaction(expense("60", category="Transport"), today=MARCH_20)
            summary = await tracker.monthly_summary(3, 2025)
            overview = await tracker.budget_overview(3, 2025)
            usage = await tracker.evaluate_budget("b1")
            return summary, overview, usage

        summary, overview, usage = asyncio.run(run())
        assert summary.total_expenses == Decimal("160")
        assert summary.category_spending == {"Food": Decimal("100"), "Transport": Decimal("60")}
        assert len(overview) == 1
        assert usage.percent_used == Decimal("25")

    def test_evaluate_missing_budget(self, tracker):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(tracker.evaluate_budget("missing"))

    def test_trend(self, tracker):
        async def run():
            await tracker.add_transaction(expense("40", day=5), today=MARCH_20)
            return await tracker.trend(Granularity.MONTH, date(2025, 3, 1))

        points = asyncio.run(run())
        assert sum(p.expense for p in points) == Decimal("40")


class TestNotificationActions:
    def test_read_and_delete(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("100"), month=3, year=2025
            ))
            await tracker.save_budget(Budget(
                category="Rent", monthly_limit=Decimal("100"), month=3, year=2025
            ))
            await tracker.add_transaction(expense("150"), today=MARCH_20)
            await tracker.add_transaction(expense("150", category="Rent"), today=MARCH_20)
            snapshot = await tracker.load_snapshot()
            first = snapshot.notifications[0]
            await tracker.mark_as_read(first.id)
            after_one = await tracker.unread_count()
            changed = await tracker.mark_all_as_read()
            removed = await tracker.delete_all_read()
            return after_one, changed, removed, await tracker.unread_count()

        assert asyncio.run(run()) == (1, 1, 2, 0)

    def test_mark_missing_as_read(self, tracker):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(tracker.mark_as_read("missing"))


class TestGoals:
    def test_contributions_and_completion(self, tracker, audit_storage):
        completed = []
        tracker.events.subscribe(GOAL_COMPLETED, lambda e: completed.append(e.payload["goal_id"]))

        async def run():
            goal = await tracker.add_goal(Goal(
                name="Laptop",
                target_amount=Decimal("1000"),
                current_amount=Decimal("300"),
                target_date=datetime(2025, 12, 1),
            ))
            halfway = await tracker.add_goal_contribution(goal.id, Decimal("200"))
            done = await tracker.add_goal_contribution(goal.id, Decimal("600"))
            await tracker.add_goal_contribution(goal.id, Decimal("10"))
            return goal, halfway, done, await audit_storage.get_recent_events()

        goal, halfway, done, events = asyncio.run(run())
        assert halfway.progress == Decimal("50")
        assert done.current_amount == Decimal("1100")
        assert done.progress == Decimal("100")
        assert completed == [goal.id]
        assert sum(1 for e in events if e.event_type == AuditEventType.GOAL_COMPLETED) == 1

    def test_contribution_to_missing_goal(self, tracker):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(tracker.add_goal_contribution("missing", Decimal("10")))

    def test_negative_contribution(self, tracker):
        async def run():
            goal = await tracker.add_goal(Goal(
                name="Trip", target_amount=Decimal("500"), target_date=datetime(2025, 8, 1)
            ))
            await tracker.add_goal_contribution(goal.id, Decimal("-5"))

        with pytest.raises(InvalidInputError):
            asyncio.run(run())

    def test_goal_alerts_disabled_by_default(self, tracker):
        async def run():
            await tracker.add_goal(Goal(
                name="Trip", target_amount=Decimal("500"),
                current_amount=Decimal("500"), target_date=datetime(2025, 8, 1),
            ))
            return await tracker.check_goal_alerts()

        assert asyncio.run(run()) == []

    def test_goal_alerts_when_enabled(self, audit_storage):
        tracker = build_tracker(audit_storage, goal_alerts_enabled=True)

        async def run():
            await tracker.add_goal(Goal(
                name="Trip", target_amount=Decimal("500"),
                current_amount=Decimal("500"), target_date=datetime(2025, 8, 1),
            ))
            first = await tracker.check_goal_alerts()
            second = await tracker.check_goal_alerts()
            return first, second

        first, second = asyncio.run(run())
        assert [n.type for n in first] == [NotificationType.GOAL_COMPLETED]
        assert second == []


class TestRecurringItems:
    def make_item(self) -> RecurringItem:
        return RecurringItem(
            amount=Decimal("15.99"),
            kind=TransactionKind.EXPENSE,
            category="Subscriptions",
            description="Streaming",
            frequency=Frequency.MONTHLY,
            next_due_date=datetime(2025, 3, 12),
        )

    def test_due_reminder(self, tracker):
        async def run():
            await tracker.add_recurring_item(self.make_item())
            first = await tracker.check_recurring_alerts(date(2025, 3, 10))
            second = await tracker.check_recurring_alerts(date(2025, 3, 11))
            return first, second

        first, second = asyncio.run(run())
        assert [n.period for n in first] == ["2025-03-12"]
        assert second == []

    def test_post_recurring_item(self, tracker):
        saved = []
        tracker.events.subscribe(TRANSACTION_SAVED, lambda e: saved.append(e.payload))

        async def run():
            item = await tracker.add_recurring_item(self.make_item())
            return await tracker.post_recurring_item(item.id)

        transaction, advanced = asyncio.run(run())
        assert transaction.date == datetime(2025, 3, 12)
        assert transaction.amount == Decimal("15.99")
        assert advanced.next_due_date == datetime(2025, 4, 12)
        assert len(saved) == 1

    def test_post_missing_item(self, tracker):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(tracker.post_recurring_item("missing"))


class TestValidateDocument:
    def test_rejection_is_audited(self, tracker, audit_storage):
        async def run():
            result = await tracker.validate_document("transaction", {"amount": "abc"})
            return result, await audit_storage.get_recent_events()

        result, events = asyncio.run(run())
        assert result.is_valid is False
        assert any(e.event_type == AuditEventType.RECORD_REJECTED for e in events)


class TestCreateTracker:
    def test_memory_backend(self):
        tracker = create_tracker("memory")
        assert isinstance(tracker, FinanceTracker)
        assert asyncio.run(tracker.unread_count()) == 0

    def test_google_sheets_without_configuration(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        with pytest.raises(ConnectionError):
            create_tracker("google_sheets")


class FailingNotificationStorage(InMemoryNotificationStorage):
    async def list_notifications(self, unread_only: bool = False):
        raise StorageError("Sheets quota exceeded")


class TestStorageFailures:
    def test_dispatch_failure_is_audited_and_raised(self, audit_storage):
        tracker = FinanceTracker(
            records=InMemoryRecordStorage(),
            notifications=FailingNotificationStorage(),
            audit_logger=AuditLogger(audit_storage),
            alert_settings=AlertSettings(),
        )

        with pytest.raises(StorageError):
            asyncio.run(tracker.check_budget_alerts(MARCH_20))

        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.STORAGE_ERROR


def streaming_item() -> RecurringItem:
    return RecurringItem(
        amount=Decimal("15.99"),
        kind=TransactionKind.EXPENSE,
        category="Subscriptions",
        description="Streaming",
        frequency=Frequency.MONTHLY,
        next_due_date=datetime(2025, 3, 12),
    )


class FailingTransactionStorage(InMemoryRecordStorage):
    async def add_transaction(self, transaction):
        raise StorageError("Sheets quota exceeded")


class TestRecordEdits:
    """Edits go through the same audit, event and alert path as adds."""

    def test_raising_an_expense_rechecks_budgets(self, tracker, audit_storage):
        saved = []
        tracker.events.subscribe(TRANSACTION_SAVED, lambda e: saved.append(e.payload["updated"]))

        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("1000"), month=3, year=2025
            ))
            stored = await tracker.add_transaction(expense("500"), today=MARCH_20)
            before = await tracker.unread_count()
            await tracker.update_transaction(stored.copy_with(amount=Decimal("900")), today=MARCH_20)
            snapshot = await tracker.load_snapshot()
            return before, snapshot, await audit_storage.get_recent_events()

        before, snapshot, events = asyncio.run(run())
        assert before == 0
        assert [n.type for n in snapshot.notifications] == [NotificationType.BUDGET_WARNING]
        assert snapshot.transactions[0].amount == Decimal("900")
        assert saved == [False, True]
        assert any(
            e.event_type == AuditEventType.RECORD_UPDATED and e.entity_type == "transaction"
            for e in events
        )

    def test_update_missing_transaction(self, tracker):
        with pytest.raises(NotFoundError):
            asyncio.run(tracker.update_transaction(expense("10").copy_with(id="missing")))

    def test_update_goal_completes_once(self, tracker):
        completed = []
        tracker.events.subscribe(GOAL_COMPLETED, lambda e: completed.append(e.payload["goal_id"]))

        async def run():
            goal = await tracker.add_goal(Goal(
                name="Laptop",
                target_amount=Decimal("1000"),
                current_amount=Decimal("300"),
                target_date=datetime(2025, 12, 1),
            ))
            done = await tracker.update_goal(goal.copy_with(current_amount=Decimal("1000")))
            renamed = await tracker.update_goal(done.copy_with(name="New laptop"))
            return goal, renamed

        goal, renamed = asyncio.run(run())
        assert renamed.name == "New laptop"
        assert renamed.progress == Decimal("100")
        assert completed == [goal.id]

    def test_update_missing_goal(self, tracker):
        goal = Goal(
            id="missing", name="Trip", target_amount=Decimal("500"),
            target_date=datetime(2025, 8, 1),
        )
        with pytest.raises(RecordNotFoundError):
            asyncio.run(tracker.update_goal(goal))

    def test_update_and_delete_recurring_item(self, tracker):
        saved, deleted = [], []
        tracker.events.subscribe(RECURRING_SAVED, lambda e: saved.append(e.payload["next_due_date"]))
        tracker.events.subscribe(RECURRING_DELETED, lambda e: deleted.append(e.payload["recurring_id"]))

        async def run():
            item = await tracker.add_recurring_item(streaming_item())
            paused = await tracker.update_recurring_item(item.copy_with(is_active=False))
            due = await tracker.check_recurring_alerts(date(2025, 3, 10))
            removed = await tracker.delete_recurring_item(item.id)
            again = await tracker.delete_recurring_item(item.id)
            return item, paused, due, removed, again

        item, paused, due, removed, again = asyncio.run(run())
        assert paused.is_active is False
        assert due == []
        assert (removed, again) == (True, False)
        assert saved == ["2025-03-12T00:00:00", "2025-03-12T00:00:00"]
        assert deleted == [item.id]


class TestPostRecurringFailure:
    def test_item_is_not_advanced_when_the_transaction_fails(self, audit_storage):
        records = FailingTransactionStorage()
        tracker = FinanceTracker(
            records=records,
            notifications=InMemoryNotificationStorage(),
            audit_logger=AuditLogger(audit_storage),
        )

        async def run():
            item = await tracker.add_recurring_item(streaming_item())
            with pytest.raises(StorageError):
                await tracker.post_recurring_item(item.id, today=MARCH_20)
            return await records.list_recurring_items(), await records.list_transactions()

        items, transactions = asyncio.run(run())
        assert items[0].next_due_date == datetime(2025, 3, 12)
        assert transactions == []
        events = asyncio.run(audit_storage.get_recent_events())
        assert any(e.event_type == AuditEventType.STORAGE_ERROR for e in events)


class TestCreateBudget:
    def test_threshold_from_settings(self, audit_storage):
        tracker = build_tracker(audit_storage, default_threshold=70)
        budget = asyncio.run(tracker.create_budget("Food", Decimal("100"), month=3, year=2025))
        assert budget.id is not None
        assert (budget.month, budget.year, budget.alert_threshold) == (3, 2025, 70)

    @pytest.mark.parametrize("month", [0, 13])
    def test_out_of_range_month_is_rejected(self, tracker, month):
        with pytest.raises(InvalidInputError) as exc:
            asyncio.run(tracker.create_budget("Food", Decimal("100"), month=month, year=2025))
        assert exc.value.field == "month"


class TestFinancialReport:
    def test_report_for_march(self, tracker):
        async def run():
            await tracker.save_budget(Budget(
                category="Food", monthly_limit=Decimal("400"), month=3, year=2025
            ))
            await tracker.save_budget(Budget(
                category="Rent", monthly_limit=Decimal("900"), month=2, year=2025
            ))
            await tracker.add_goal(Goal(
                name="Trip", target_amount=Decimal("500"), target_date=datetime(2025, 8, 1)
            ))
            await tracker.add_transaction(Transaction(
                amount=Decimal("2000"), kind=TransactionKind.INCOME,
                category="Salary", date=datetime(2025, 3, 1),
            ), today=MARCH_20)
            await tracker.add_transaction(expense("100", day=5), today=MARCH_20)
            await tracker.add_transaction(expense("60", category="Transport", day=10), today=MARCH_20)
            await tracker.add_transaction(expense("999", day=1).copy_with(
                date=datetime(2025, 4, 1)
            ), today=MARCH_20)
            return await tracker.financial_report(
                datetime(2025, 3, 1), datetime(2025, 4, 1), now=datetime(2025, 4, 2, 9)
            )

        report = asyncio.run(run())
        assert report.net == Decimal("1840")
        assert report.savings_rate == Decimal("92")
        assert [t.date.day for t in report.transactions] == [10, 5, 1]
        assert [(c.category, c.amount) for c in report.categories] == [
            ("Food", Decimal("100")),
            ("Transport", Decimal("60")),
        ]
        assert report.categories[0].percent_of_expenses == Decimal("62.5")
        assert [b.category for b in report.budgets] == ["Food"]
        assert [g.name for g in report.goals] == ["Trip"]
        assert report.generated_at == datetime(2025, 4, 2, 9)
