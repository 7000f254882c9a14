"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and PURE.
Every function takes an already-loaded sequence of transactions and a
half-open interval [start, end) and returns fresh values. Nothing is
cached and nothing is mutated, so calling twice with the same inputs
gives the same answer.

Callers pass naive start/end; transaction dates are already naive local
time (see DocumentRecord).
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from easymoney.models.records import Budget, Transaction, TransactionKind
from easymoney.models.reports import (
    BudgetUtilization,
    CategoryShare,
    FinancialReport,
    Granularity,
    PeriodSummary,
    TrendPoint,
)
from easymoney.models.snapshot import RecordSnapshot
from easymoney.utils.money import ZERO, clamp_percent, percent_of
from easymoney.utils.periods import (
    DateRange,
    make_range,
    month_range,
    week_range,
    year_range,
)

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_INITIALS = ("J", "F", "M", "A", "M", "J", "J", "A", "S", "O", "N", "D")


def transactions_in_range(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> list[Transaction]:
    """Transactions with start <= date < end, in input order."""
    window = make_range(start, end)
    return [t for t in transactions if window.contains(t.date)]


def _sum_kind(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
    kind: TransactionKind,
) -> Decimal:
    return sum(
        (t.amount for t in transactions_in_range(transactions, start, end) if t.kind == kind),
        ZERO,
    )


def total_income(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> Decimal:
    """Sum of income amounts dated in [start, end)."""
    return _sum_kind(transactions, start, end, TransactionKind.INCOME)


def total_expenses(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> Decimal:
    """Sum of expense amounts dated in [start, end)."""
    return _sum_kind(transactions, start, end, TransactionKind.EXPENSE)


def category_spending(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> dict[str, Decimal]:
    """
    Expense totals per category label within [start, end).

    Only categories with at least one matching expense appear.
    Iteration order carries no meaning; see ranked_category_spending().
    """
    totals: dict[str, Decimal] = {}
    for t in transactions_in_range(transactions, start, end):
        if t.kind != TransactionKind.EXPENSE:
            continue
        totals[t.category] = totals.get(t.category, ZERO) + t.amount
    return totals


def ranked_category_spending(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
    limit: Optional[int] = None,
) -> list[tuple[str, Decimal]]:
    """Category spending sorted by amount descending, ties by label."""
    ranked = sorted(
        category_spending(transactions, start, end).items(),
        key=lambda item: (-item[1], item[0]),
    )
    if limit is not None:
        ranked = ranked[: max(0, limit)]
    return ranked


def summarize_period(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> PeriodSummary:
    """Income, expenses, count and category breakdown for one interval."""
    matching = transactions_in_range(transactions, start, end)
    return PeriodSummary(
        start=start,
        end=end,
        total_income=total_income(matching, start, end),
        total_expenses=total_expenses(matching, start, end),
        transaction_count=len(matching),
        category_spending=category_spending(matching, start, end),
    )


def budget_utilization(
    budget: Budget,
    transactions: Iterable[Transaction],
) -> BudgetUtilization:
    """
    Spent vs. limit for a budget's own month.

    The interval is [first day of budget month, first day of next month).
    A zero limit yields percent_used 0 instead of a division error.
    """
    window = month_range(budget.month, budget.year)
    spent = category_spending(transactions, window.start, window.end).get(
        budget.category, ZERO
    )
    percent_used = percent_of(spent, budget.monthly_limit)
    return BudgetUtilization(
        budget_id=budget.id,
        category=budget.category,
        month=budget.month,
        year=budget.year,
        limit=budget.monthly_limit,
        spent=spent,
        percent_used=percent_used,
        alert_threshold=budget.alert_threshold,
        is_over_budget=spent > budget.monthly_limit,
        is_near_limit=percent_used >= budget.alert_threshold,
    )


def _trend_buckets(
    granularity: Granularity,
    reference: date,
) -> list[tuple[str, DateRange]]:
    """Labelled, disjoint, contiguous buckets covering the reference period."""
    buckets: list[tuple[str, DateRange]] = []

    if granularity == Granularity.WEEK:
        week = week_range(reference)
        for i, label in enumerate(WEEKDAY_LABELS):
            day_start = week.start + timedelta(days=i)
            buckets.append((label, DateRange(day_start, day_start + timedelta(days=1))))

    elif granularity == Granularity.MONTH:
        month = month_range(reference.month, reference.year)
        bucket_start = month.start
        index = 1
        while bucket_start < month.end:
            bucket_end = min(bucket_start + timedelta(days=7), month.end)
            buckets.append((f"W{index}", DateRange(bucket_start, bucket_end)))
            bucket_start = bucket_end
            index += 1

    else:
        year_range(reference.year)  # validates the year
        for month_number, label in enumerate(MONTH_INITIALS, start=1):
            buckets.append((label, month_range(month_number, reference.year)))

    return buckets


def trend_series(
    transactions: Iterable[Transaction],
    granularity: Granularity,
    reference: Optional[date] = None,
) -> list[TrendPoint]:
    """
    Income/expense series for charts.

    WEEK  -> 7 daily points (Mon..Sun) of the week containing `reference`
    MONTH -> weekly points W1..Wn of the month, last one cut at month end
    YEAR  -> 12 monthly points of the year

    Buckets are half-open and contiguous, so the points always sum to
    the totals of the whole period.
    """
    reference = reference or date.today()
    snapshot = list(transactions)
    points = []
    for label, window in _trend_buckets(Granularity(granularity), reference):
        points.append(TrendPoint(
            label=label,
            start=window.start,
            end=window.end,
            income=total_income(snapshot, window.start, window.end),
            expense=total_expenses(snapshot, window.start, window.end),
        ))
    return points


def trend_period(granularity: Granularity, reference: Optional[date] = None) -> DateRange:
    """The whole interval a trend_series() call covers."""
    reference = reference or date.today()
    granularity = Granularity(granularity)
    if granularity == Granularity.WEEK:
        return week_range(reference)
    if granularity == Granularity.MONTH:
        return month_range(reference.month, reference.year)
    return year_range(reference.year)



def build_report(
    snapshot: RecordSnapshot,
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
) -> FinancialReport:
    """
    Data behind an exported financial report for [start, end).

    Transactions are listed newest first. Budgets are those whose month
    overlaps the interval, each measured against its own whole month.
    Goals are included as stored; they have no period.
    """
    summary = summarize_period(snapshot.transactions, start, end)
    matching = sorted(
        transactions_in_range(snapshot.transactions, start, end),
        key=lambda t: t.date,
        reverse=True,
    )
    categories = [
        CategoryShare(
            category=category,
            amount=amount,
            percent_of_expenses=percent_of(amount, summary.total_expenses),
        )
        for category, amount in ranked_category_spending(matching, start, end)
    ]

    budgets = []
    for budget in sorted(snapshot.budgets, key=lambda b: (b.year, b.month, b.category)):
        window = month_range(budget.month, budget.year)
        if window.start < end and start < window.end:
            budgets.append(budget_utilization(budget, snapshot.transactions))

    return FinancialReport(
        summary=summary,
        savings_rate=clamp_percent(percent_of(summary.net, summary.total_income)),
        transactions=matching,
        categories=categories,
        budgets=budgets,
        goals=list(snapshot.goals),
        generated_at=now or datetime.now(),
    )
