"""Aggregation package."""

from easymoney.aggregation.engine import (
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

__all__ = [
    "budget_utilization",
    "build_report",
    "category_spending",
    "ranked_category_spending",
    "summarize_period",
    "total_expenses",
    "total_income",
    "transactions_in_range",
    "trend_period",
    "trend_series",
]
