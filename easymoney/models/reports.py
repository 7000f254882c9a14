"""
Report Models

Results produced by the aggregation engine. These are derived values,
never stored; they are recomputed from a snapshot on every request.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from easymoney.models.records import Goal, Transaction


class Granularity(str, Enum):
    """Chart period; each picks a different bucket size."""
    WEEK = "week"    # 7 daily buckets
    MONTH = "month"  # weekly buckets
    YEAR = "year"    # 12 monthly buckets


class BudgetUtilization(BaseModel):
    """How much of a budget has been used in its month."""
    model_config = ConfigDict(frozen=True)

    budget_id: Optional[str]
    category: str
    month: int
    year: int
    limit: Decimal
    spent: Decimal
    percent_used: Decimal = Field(
        ...,
        description="spent / limit * 100, 0 when limit is 0; not clamped"
    )
    alert_threshold: int
    is_over_budget: bool
    is_near_limit: bool

    @property
    def remaining(self) -> Decimal:
        return max(self.limit - self.spent, Decimal("0"))

    @property
    def over_by(self) -> Decimal:
        return max(self.spent - self.limit, Decimal("0"))


class PeriodSummary(BaseModel):
    """Totals for one [start, end) interval."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    total_income: Decimal
    total_expenses: Decimal
    transaction_count: int = Field(ge=0)
    category_spending: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expenses


class TrendPoint(BaseModel):
    """One chart bucket."""
    model_config = ConfigDict(frozen=True)

    label: str
    start: datetime
    end: datetime
    income: Decimal
    expense: Decimal


class CategoryShare(BaseModel):
    """One row of the ranked category table."""
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Decimal
    percent_of_expenses: Decimal = Field(
        ...,
        description="amount / total expenses * 100, 0 when there are no expenses"
    )


class FinancialReport(BaseModel):
    """
    Everything an exported report shows for one [start, end) interval.

    Rendering (PDF, CSV, screen) is left to the caller.
    """
    model_config = ConfigDict(frozen=True)

    summary: PeriodSummary
    savings_rate: Decimal = Field(
        ...,
        description="net / income * 100 clamped to [0, 100], 0 without income"
    )
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Transactions in the interval, newest first"
    )
    categories: list[CategoryShare] = Field(
        default_factory=list,
        description="Expense categories ranked by amount"
    )
    budgets: list[BudgetUtilization] = Field(
        default_factory=list,
        description="Budgets whose month overlaps the interval"
    )
    goals: list[Goal] = Field(default_factory=list)
    generated_at: datetime

    @property
    def start(self) -> datetime:
        return self.summary.start

    @property
    def end(self) -> datetime:
        return self.summary.end

    @property
    def net(self) -> Decimal:
        return self.summary.net
