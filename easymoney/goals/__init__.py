"""Goal progress package."""

from easymoney.goals.progress import (
    add_contribution,
    goal_progress,
    is_goal_completed,
    split_goals,
    total_progress,
)

__all__ = [
    "add_contribution",
    "goal_progress",
    "is_goal_completed",
    "split_goals",
    "total_progress",
]
