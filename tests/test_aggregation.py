"""
Tests for the aggregation engine.

All fixtures sit around March 2025, which starts on a Saturday and has
31 days, so the weekly trend needs a short fifth bucket.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from easymoney.aggregation import (
    budget_utilization,
    build_report,
    category_spending,
    ranked_category_spending,
    summarize_period,
    total_expenses,
    total_income,
    transactions_in_range,
    trend_period,
    trend_series,
)
from easymoney.errors import InvalidInputError
from easymoney.models import (
    Budget,
    Goal,
    Granularity,
    RecordSnapshot,
    Transaction,
    TransactionKind,
)

MARCH_START = datetime(2025, 3, 1)
APRIL_START = datetime(2025, 4, 1)


def tx(amount: str, kind: TransactionKind, category: str, when: datetime) -> Transaction:
    return Transaction(amount=Decimal(amount), kind=kind, category=category, date=when)


@pytest.fixture
def transactions() -> list[Transaction]:
    return [
        tx("3000", TransactionKind.INCOME, "Salary", datetime(2025, 3, 1)),
        tx("1200", TransactionKind.EXPENSE, "Rent", datetime(2025, 3, 1, 9, 0)),
        tx("200", TransactionKind.EXPENSE, "Food", datetime(2025, 3, 5, 18, 30)),
        tx("50.25", TransactionKind.EXPENSE, "Food", datetime(2025, 3, 20, 12, 0)),
        tx("30", TransactionKind.EXPENSE, "Transport", datetime(2025, 4, 1)),
        tx("99", TransactionKind.EXPENSE, "Food", datetime(2025, 2, 28, 23, 59)),
    ]


class TestTotals:
    """Tests for income/expense totals."""

    def test_month_totals(self, transactions):
        """Test totals over [Mar 1, Apr 1)."""
        assert total_income(transactions, MARCH_START, APRIL_START) == Decimal("3000")
        assert total_expenses(transactions, MARCH_START, APRIL_START) == Decimal("1450.25")

    def test_boundaries_are_half_open(self, transactions):
        """Test that start is included and end is excluded."""
        matched = transactions_in_range(transactions, MARCH_START, APRIL_START)
        dates = {t.date for t in matched}
        assert datetime(2025, 3, 1) in dates
        assert datetime(2025, 4, 1) not in dates
        assert datetime(2025, 2, 28, 23, 59) not in dates

    def test_partition_law(self, transactions):
        """Test that splitting an interval splits the total."""
        middle = datetime(2025, 3, 15)
        whole = total_expenses(transactions, MARCH_START, APRIL_START)
        first = total_expenses(transactions, MARCH_START, middle)
        second = total_expenses(transactions, middle, APRIL_START)
        assert first + second == whole
        assert first == Decimal("1400")

    def test_empty_input(self):
        """Test that nothing sums to zero."""
        assert total_income([], MARCH_START, APRIL_START) == Decimal("0")
        assert category_spending([], MARCH_START, APRIL_START) == {}

    def test_empty_interval(self, transactions):
        """Test that start == end matches nothing."""
        assert total_income(transactions, MARCH_START, MARCH_START) == Decimal("0")

    def test_reversed_interval_is_rejected(self, transactions):
        """Test start > end."""
        with pytest.raises(InvalidInputError):
            total_expenses(transactions, APRIL_START, MARCH_START)

    def test_idempotent(self, transactions):
        """Test that repeated calls agree."""
        first = summarize_period(transactions, MARCH_START, APRIL_START)
        second = summarize_period(transactions, MARCH_START, APRIL_START)
        assert first == second


class TestCategorySpending:
    """Tests for the category breakdown."""

    def test_breakdown(self, transactions):
        """Test per-category expense totals."""
        spending = category_spending(transactions, MARCH_START, APRIL_START)
        assert spending == {"Rent": Decimal("1200"), "Food": Decimal("250.25")}

    def test_sum_equals_total_expenses(self, transactions):
        """Test that the breakdown accounts for every expense."""
        spending = category_spending(transactions, MARCH_START, APRIL_START)
        assert sum(spending.values()) == total_expenses(transactions, MARCH_START, APRIL_START)

    def test_income_is_excluded(self, transactions):
        """Test that income categories never appear."""
        spending = category_spending(transactions, MARCH_START, APRIL_START)
        assert "Salary" not in spending

    def test_ranked(self, transactions):
        """Test ordering by amount."""
        ranked = ranked_category_spending(transactions, MARCH_START, APRIL_START)
        assert ranked == [("Rent", Decimal("1200")), ("Food", Decimal("250.25"))]
        assert ranked_category_spending(transactions, MARCH_START, APRIL_START, limit=1) == [
            ("Rent", Decimal("1200"))
        ]

    def test_ranked_ties_sort_by_label(self):
        """Test deterministic order for equal amounts."""
        items = [
            tx("10", TransactionKind.EXPENSE, "Zoo", datetime(2025, 3, 2)),
            tx("10", TransactionKind.EXPENSE, "Art", datetime(2025, 3, 3)),
        ]
        ranked = ranked_category_spending(items, MARCH_START, APRIL_START)
        assert [label for label, _ in ranked] == ["Art", "Zoo"]


class TestPeriodSummary:
    """Tests for summarize_period."""

    def test_summary(self, transactions):
        """Test the combined summary."""
        summary = summarize_period(transactions, MARCH_START, APRIL_START)
        assert summary.transaction_count == 4
        assert summary.net == Decimal("1549.75")
        assert summary.category_spending["Food"] == Decimal("250.25")


class TestBudgetUtilization:
    """Tests for spent vs. limit."""

    def test_under_budget(self, transactions):
        """Test a budget well under its limit."""
        budget = Budget(id="b1", category="Food", monthly_limit=Decimal("1000"), month=3, year=2025)
        usage = budget_utilization(budget, transactions)
        assert usage.spent == Decimal("250.25")
        assert usage.is_over_budget is False
        assert usage.is_near_limit is False
        assert usage.remaining == Decimal("749.75")

    def test_over_budget(self, transactions):
        """Test a budget past its limit."""
        budget = Budget(id="b2", category="Rent", monthly_limit=Decimal("1000"), month=3, year=2025)
        usage = budget_utilization(budget, transactions)
        assert usage.percent_used == Decimal("120")
        assert usage.is_over_budget is True
        assert usage.is_near_limit is True
        assert usage.over_by == Decimal("200")

    def test_only_budget_month_counts(self, transactions):
        """Test that other months' spending is ignored."""
        budget = Budget(category="Food", monthly_limit=Decimal("500"), month=2, year=2025)
        assert budget_utilization(budget, transactions).spent == Decimal("99")

    def test_no_spending(self):
        """Test a category with no expenses."""
        budget = Budget(category="Gifts", monthly_limit=Decimal("100"), month=3, year=2025)
        usage = budget_utilization(budget, [])
        assert usage.spent == Decimal("0")
        assert usage.percent_used == Decimal("0")


class TestTrendSeries:
    """Tests for chart buckets."""

    def test_week(self, transactions):
        """Test seven daily points, Monday first."""
        points = trend_series(transactions, Granularity.WEEK, date(2025, 3, 5))
        assert [p.label for p in points] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        assert points[0].start == datetime(2025, 3, 3)
        assert points[2].expense == Decimal("200")

    def test_month_covers_every_day(self, transactions):
        """Test that the last week is truncated at month end, not dropped."""
        points = trend_series(transactions, Granularity.MONTH, date(2025, 3, 20))
        assert [p.label for p in points] == ["W1", "W2", "W3", "W4", "W5"]
        assert points[0].expense == Decimal("1400")
        assert points[-1].start == datetime(2025, 3, 29)
        assert points[-1].end == APRIL_START

    def test_month_buckets_sum_to_month_total(self, transactions):
        """Test that bucket totals match the whole period."""
        points = trend_series(transactions, "month", date(2025, 3, 20))
        window = trend_period(Granularity.MONTH, date(2025, 3, 20))
        assert sum(p.expense for p in points) == total_expenses(
            transactions, window.start, window.end
        )
        assert sum(p.income for p in points) == Decimal("3000")

    def test_year(self, transactions):
        """Test twelve monthly points."""
        points = trend_series(transactions, Granularity.YEAR, date(2025, 6, 1))
        assert len(points) == 12
        assert points[0].label == "J"
        assert points[1].expense == Decimal("99")
        assert points[2].expense == Decimal("1450.25")
        assert sum(p.expense for p in points) == Decimal("1579.25")


class TestAwareTimestamps:
    """Documents stored with a UTC offset still land in naive windows."""

    @pytest.fixture
    def aware(self) -> list[Transaction]:
        return [Transaction.from_document({
            "amount": 420,
            "type": "expense",
            "category": "Food",
            "date": "2025-03-10T12:00:00Z",
        })]

    def test_budget_utilization(self, aware):
        budget = Budget(id="b1", category="Food", monthly_limit=Decimal("1000"), month=3, year=2025)
        assert budget_utilization(budget, aware).spent == Decimal("420")

    def test_trend_series(self, aware):
        points = trend_series(aware, Granularity.MONTH, date(2025, 3, 10))
        assert sum(p.expense for p in points) == Decimal("420")

    def test_mixed_with_naive(self, aware, transactions):
        mixed = transactions + aware
        assert category_spending(mixed, MARCH_START, APRIL_START)["Food"] == Decimal("670.25")


class TestBuildReport:
    """Tests for the export report data."""

    @pytest.fixture
    def snapshot(self, transactions) -> RecordSnapshot:
        return RecordSnapshot(
            transactions=tuple(transactions),
            budgets=(
                Budget(id="b3", category="Food", monthly_limit=Decimal("300"), month=3, year=2025),
                Budget(id="b2", category="Food", monthly_limit=Decimal("300"), month=2, year=2025),
                Budget(id="b4", category="Food", monthly_limit=Decimal("300"), month=4, year=2025),
            ),
            goals=(
                Goal(id="g1", name="Trip", target_amount=Decimal("500"),
                     target_date=datetime(2025, 8, 1)),
            ),
        )

    def test_march(self, snapshot):
        """Test totals, ordering and the sections included."""
        report = build_report(snapshot, MARCH_START, APRIL_START, now=datetime(2025, 4, 2))

        assert report.start == MARCH_START
        assert report.summary.total_income == Decimal("3000")
        assert report.summary.total_expenses == Decimal("1450.25")
        assert report.net == Decimal("1549.75")
        assert report.savings_rate.quantize(Decimal("0.01")) == Decimal("51.66")
        assert [t.date for t in report.transactions] == [
            datetime(2025, 3, 20, 12, 0),
            datetime(2025, 3, 5, 18, 30),
            datetime(2025, 3, 1, 9, 0),
            datetime(2025, 3, 1),
        ]
        assert [(c.category, c.amount) for c in report.categories] == [
            ("Rent", Decimal("1200")),
            ("Food", Decimal("250.25")),
        ]
        assert sum(c.percent_of_expenses for c in report.categories).quantize(Decimal("0.01")) == Decimal("100.00")
        assert [b.budget_id for b in report.budgets] == ["b3"]
        assert report.budgets[0].spent == Decimal("250.25")
        assert [g.id for g in report.goals] == ["g1"]

    def test_budgets_of_every_overlapping_month(self, snapshot):
        report = build_report(snapshot, datetime(2025, 2, 15), datetime(2025, 4, 2))
        assert [b.budget_id for b in report.budgets] == ["b2", "b3", "b4"]

    def test_spending_without_income(self, transactions):
        """Test that the savings rate never goes below zero."""
        expenses_only = [t for t in transactions if t.is_expense]
        report = build_report(
            RecordSnapshot(transactions=tuple(expenses_only)), MARCH_START, APRIL_START
        )
        assert report.savings_rate == Decimal("0")
        assert report.net == Decimal("-1450.25")

    def test_empty_range(self, snapshot):
        report = build_report(snapshot, MARCH_START, MARCH_START)
        assert report.transactions == []
        assert report.categories == []

    def test_start_after_end(self, snapshot):
        with pytest.raises(InvalidInputError):
            build_report(snapshot, APRIL_START, MARCH_START)
