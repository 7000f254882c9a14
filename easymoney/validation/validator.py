"""
Two-Stage Record Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- The raw document must decode into a record
- Required keys present, types and ranges correct
- This catches hand-edited rows and documents from older app versions

STAGE 2 - SEMANTIC VALIDATION:
- Future-dated transactions
- Currencies we can't display
- Budgets for months that will never be alerted on
- Duplicate budgets for the same (category, month, year)
- This catches data that is well-formed but probably wrong

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; nothing here writes to storage.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from typing import Any, Optional

import structlog

from easymoney.config import get_settings
from easymoney.errors import InvalidInputError
from easymoney.models.records import (
    Budget,
    BudgetPeriodKey,
    DocumentRecord,
    Goal,
    Notification,
    RecurringItem,
    Transaction,
)
from easymoney.models.validation import ValidationIssue, ValidationResult
from easymoney.services.storage import RecordStorageInterface, StorageError
from easymoney.utils.money import CURRENCY_SYMBOLS

logger = structlog.get_logger(__name__)

RECORD_TYPES: dict[str, type[DocumentRecord]] = {
    "transaction": Transaction,
    "budget": Budget,
    "goal": Goal,
    "recurring": RecurringItem,
    "notification": Notification,
}


def find_duplicate_budgets(
    budgets: Iterable[Budget],
) -> dict[BudgetPeriodKey, list[Budget]]:
    """
    Group budgets sharing a (category, month, year).

    Only groups with more than one budget are returned. Storage doesn't
    prevent duplicates, so callers surface them instead.
    """
    groups: dict[BudgetPeriodKey, list[Budget]] = {}
    for budget in budgets:
        groups.setdefault(budget.period_key, []).append(budget)
    return {key: group for key, group in groups.items() if len(group) > 1}


class RecordValidator:
    """
    Validates raw documents through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (storage only for duplicate budgets)
    """

    def __init__(
        self,
        record_storage: Optional[RecordStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            record_storage: Storage interface for duplicate checking.
                            If None, duplicate checking is skipped.
        """
        self._storage = record_storage
        self._settings = get_settings().app

    def _validate_schema(
        self,
        model: type[DocumentRecord],
        data: Mapping[str, Any],
        doc_id: Optional[str],
    ) -> tuple[Optional[DocumentRecord], list[ValidationIssue]]:
        """
        Stage 1: decode the document.

        Returns: (record or None, list_of_issues)
        """
        try:
            return model.from_document(data, doc_id=doc_id), []
        except InvalidInputError as e:
            return None, [ValidationIssue(
                field=e.field or "document",
                issue_type="malformed",
                message=str(e),
                severity="error",
                suggested_fix="Fix or remove this value in the stored document",
            )]

    def _validate_semantic(
        self,
        record: DocumentRecord,
        today: date,
    ) -> list[ValidationIssue]:
        """
        Stage 2: logic checks on a decoded record.

        Every issue here is a warning or info; a well-formed record is
        never rejected on semantic grounds.
        """
        issues = []

        currency = getattr(record, "currency", None)
        if currency and currency not in CURRENCY_SYMBOLS:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="unknown_currency",
                message=f"Currency {currency} has no display symbol; '$' will be shown",
                severity="info",
            ))

        if isinstance(record, Transaction):
            max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
            if record.date.date() > max_future:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Transaction date ({record.date.date()}) is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))
            if record.amount == 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Transaction amount is zero",
                    severity="warning",
                ))

        elif isinstance(record, Budget):
            if record.is_past_month(today):
                issues.append(ValidationIssue(
                    field="month",
                    issue_type="past_period",
                    message=f"Budget is for {record.period_label}, which has already ended",
                    severity="info",
                    suggested_fix="Past budgets are kept for history but never alerted on",
                ))
            if record.alert_threshold == 0:
                issues.append(ValidationIssue(
                    field="alertThreshold",
                    issue_type="suspicious_value",
                    message="An alert threshold of 0% warns before anything is spent",
                    severity="warning",
                ))

        elif isinstance(record, Goal):
            if record.target_date.date() < today and not record.is_completed:
                issues.append(ValidationIssue(
                    field="targetDate",
                    issue_type="past_date",
                    message=f"Goal {record.name} passed its target date unfinished",
                    severity="info",
                ))

        elif isinstance(record, RecurringItem):
            if record.is_active and record.next_due_date.date() < today:
                issues.append(ValidationIssue(
                    field="nextDueDate",
                    issue_type="overdue",
                    message=f"Recurring item is overdue since {record.next_due_date.date()}",
                    severity="warning",
                    suggested_fix="Advance the item once the payment is recorded",
                ))

        return issues

    async def _check_duplicates(
        self,
        budget: Budget,
    ) -> list[ValidationIssue]:
        """
        Check for other budgets covering the same category and month.

        This requires storage access.
        """
        issues = []

        if self._storage is None:
            return issues

        try:
            same_month = await self._storage.list_budgets(month=budget.month, year=budget.year)
        except StorageError as e:
            # Don't fail validation due to storage errors
            logger.warning("duplicate_check_failed", error=str(e))
            return issues

        others = [
            b for b in same_month
            if b.period_key == budget.period_key and b.id != budget.id
        ]
        if others:
            issues.append(ValidationIssue(
                field="category",
                issue_type="duplicate",
                message=(
                    f"A {budget.category} budget for {budget.period_label} "
                    f"already exists"
                ),
                severity="warning",
                suggested_fix="Edit the existing budget instead of adding another",
            ))

        return issues

    async def validate(
        self,
        entity_type: str,
        data: Mapping[str, Any],
        doc_id: Optional[str] = None,
        check_duplicates: bool = True,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            entity_type: One of RECORD_TYPES
            data: The raw document (camelCase keys)
            doc_id: Document id, if the document is already stored
            check_duplicates: Whether to check for duplicate budgets (requires storage)
            today: Reference date for date checks

        Returns:
            ValidationResult with all issues found
        """
        model = RECORD_TYPES.get(entity_type)
        if model is None:
            raise InvalidInputError(f"Unknown record type: {entity_type}", field="entity_type")
        today = today or datetime.now().date()

        # Stage 1: Schema validation
        record, all_issues = self._validate_schema(model, data, doc_id)
        schema_valid = record is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if record is not None:
            semantic_issues = self._validate_semantic(record, today)
            if check_duplicates and isinstance(record, Budget):
                semantic_issues.extend(await self._check_duplicates(record))
            all_issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        return ValidationResult(
            entity_type=entity_type,
            record=record,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Short text suitable for showing next to the record."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if not result.schema_valid:
            lines.append(f"❌ This {result.entity_type} could not be read:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
