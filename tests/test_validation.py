"""
Tests for two-stage record validation.
"""

import asyncio

import pytest
from datetime import date
from decimal import Decimal

from easymoney.errors import InvalidInputError
from easymoney.models import Budget, Transaction
from easymoney.services.storage import InMemoryRecordStorage
from easymoney.validation import RecordValidator, find_duplicate_budgets

TODAY = date(2025, 3, 10)


def validate(validator, entity_type, data, doc_id=None):
    return asyncio.run(validator.validate(entity_type, data, doc_id=doc_id, today=TODAY))


def expense_document(**overrides) -> dict:
    document = {
        "amount": "42.10",
        "type": "expense",
        "category": "Food",
        "date": "2025-03-09T12:00:00",
    }
    document.update(overrides)
    return document


class TestSchemaValidation:
    """Stage 1: decoding raw documents."""

    def test_valid_transaction(self):
        result = validate(RecordValidator(), "transaction", expense_document(), doc_id="t1")
        assert result.is_valid is True
        assert isinstance(result.record, Transaction)
        assert result.record.id == "t1"
        assert result.issues == []

    def test_malformed_amount(self):
        """Test that a bad amount fails stage 1 and skips stage 2."""
        result = validate(RecordValidator(), "transaction", expense_document(amount="abc"))
        assert result.schema_valid is False
        assert result.is_valid is False
        assert result.record is None
        assert result.errors[0].issue_type == "malformed"

    def test_missing_required_key(self):
        document = expense_document()
        del document["category"]
        result = validate(RecordValidator(), "transaction", document)
        assert result.has_errors
        assert result.errors[0].field == "category"

    def test_legacy_notification_type(self):
        """Test that prefixed enum names from older documents decode."""
        result = validate(RecordValidator(), "notification", {
            "title": "Budget Alert",
            "message": "You've spent 82%",
            "type": "NotificationType.budgetWarning",
        })
        assert result.is_valid is True
        assert result.record.type.value == "budgetWarning"

    def test_unknown_type(self):
        with pytest.raises(InvalidInputError):
            validate(RecordValidator(), "invoice", {})


class TestSemanticValidation:
    """Stage 2: well-formed but suspicious records."""

    def test_future_transaction(self):
        """Test the future-date warning beyond the one-day tolerance."""
        result = validate(
            RecordValidator(), "transaction", expense_document(date="2025-03-20T00:00:00")
        )
        assert result.is_valid is True
        assert any("in the future" in w for w in result.warnings)

    def test_tomorrow_is_tolerated(self):
        result = validate(
            RecordValidator(), "transaction", expense_document(date="2025-03-11T08:00:00")
        )
        assert result.warnings == []

    def test_zero_amount(self):
        result = validate(RecordValidator(), "transaction", expense_document(amount="0"))
        assert [i.issue_type for i in result.issues] == ["suspicious_value"]

    def test_unknown_currency_is_info(self):
        result = validate(RecordValidator(), "transaction", expense_document(currency="xyz"))
        assert result.issues[0].issue_type == "unknown_currency"
        assert result.issues[0].severity == "info"
        assert result.warnings == []

    def test_past_budget(self):
        result = validate(RecordValidator(), "budget", {
            "category": "Food", "monthlyLimit": "500", "month": 1, "year": 2025,
        })
        assert [i.issue_type for i in result.issues] == ["past_period"]

    def test_overdue_recurring_item(self):
        result = validate(RecordValidator(), "recurring", {
            "amount": "15.99",
            "type": "expense",
            "category": "Subscriptions",
            "frequency": "monthly",
            "nextDueDate": "2025-03-01T00:00:00",
        })
        assert [i.issue_type for i in result.issues] == ["overdue"]


class TestDuplicateBudgets:
    """Duplicate (category, month, year) detection."""

    def test_find_duplicate_budgets(self):
        budgets = [
            Budget(id="b1", category="Food", monthly_limit=Decimal("500"), month=3, year=2025),
            Budget(id="b2", category="Food", monthly_limit=Decimal("600"), month=3, year=2025),
            Budget(id="b3", category="Food", monthly_limit=Decimal("500"), month=4, year=2025),
            Budget(id="b4", category="Rent", monthly_limit=Decimal("900"), month=3, year=2025),
        ]
        duplicates = find_duplicate_budgets(budgets)
        assert list(duplicates) == [("Food", 3, 2025)]
        assert [b.id for b in duplicates[("Food", 3, 2025)]] == ["b1", "b2"]

    def test_validator_reports_duplicate(self):
        """Test the storage-backed duplicate check."""
        storage = InMemoryRecordStorage()
        asyncio.run(storage.add_budget(
            Budget(id="b1", category="Food", monthly_limit=Decimal("500"), month=3, year=2025)
        ))
        validator = RecordValidator(storage)
        document = {"category": "Food", "monthlyLimit": "700", "month": 3, "year": 2025}

        new_budget = validate(validator, "budget", document)
        assert [i.issue_type for i in new_budget.issues] == ["duplicate"]
        assert new_budget.is_valid is True

        same_budget = validate(validator, "budget", document, doc_id="b1")
        assert same_budget.issues == []

    def test_no_storage_skips_duplicate_check(self):
        result = validate(RecordValidator(), "budget", {
            "category": "Food", "monthlyLimit": "700", "month": 3, "year": 2025,
        })
        assert result.issues == []


class TestUserFriendlySummary:
    def test_all_passed(self):
        validator = RecordValidator()
        result = validate(validator, "transaction", expense_document())
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed!"

    def test_errors_and_fixes(self):
        validator = RecordValidator()
        result = validate(validator, "transaction", expense_document(amount="abc"))
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("❌ This transaction could not be read:")
        assert "💡" in summary
