"""
Domain Errors

Every computation in the library either succeeds or raises one of these.
Zero denominators are NOT errors: they resolve to 0% (see utils.money).
"""

from typing import Optional


class FinanceError(Exception):
    """Base exception for the finance core."""
    pass


class InvalidInputError(FinanceError, ValueError):
    """Non-positive amount, bad interval, or malformed document.

    Raised before any record is mutated.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class RecordNotFoundError(FinanceError, LookupError):
    """A referenced budget/goal/notification is not in the snapshot or store."""

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} not found: {entity_id}")
