"""Record validation package."""

from easymoney.validation.validator import (
    RECORD_TYPES,
    RecordValidator,
    find_duplicate_budgets,
)

__all__ = ["RECORD_TYPES", "RecordValidator", "find_duplicate_budgets"]
