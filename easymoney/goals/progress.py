"""
Goal Progress Calculator

Percent-complete maths for savings goals. Progress is always clamped to
[0, 100] for display; a goal that overshoots its target still reads 100%.
"""

from collections.abc import Iterable
from decimal import Decimal

from easymoney.errors import InvalidInputError
from easymoney.models.records import Goal
from easymoney.utils.money import (
    ZERO,
    Number,
    clamp_percent,
    percent_of,
    to_decimal,
)


def goal_progress(current: Number, target: Number) -> Decimal:
    """clamp(current / target * 100, 0, 100); a zero target gives 0."""
    return clamp_percent(percent_of(current, target))


def is_goal_completed(current: Number, target: Number) -> bool:
    return to_decimal(current) >= to_decimal(target)


def add_contribution(goal: Goal, amount: Number) -> Goal:
    """
    Return a copy of the goal with the contribution added.

    Only deposits are supported; there is no withdrawal path.

    Raises:
        InvalidInputError: If amount is zero or negative
    """
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidInputError(
            f"Contribution must be positive, got {amount}", field="amount"
        )
    return goal.copy_with(current_amount=goal.current_amount + amount)


def total_progress(goals: Iterable[Goal]) -> Decimal:
    """Combined progress over all goals: sum(current) / sum(target)."""
    current = ZERO
    target = ZERO
    for goal in goals:
        current += goal.current_amount
        target += goal.target_amount
    return goal_progress(current, target)


def split_goals(goals: Iterable[Goal]) -> tuple[list[Goal], list[Goal]]:
    """(active, completed), each in input order."""
    active: list[Goal] = []
    completed: list[Goal] = []
    for goal in goals:
        (completed if goal.is_completed else active).append(goal)
    return active, completed
