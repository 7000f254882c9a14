"""
Data Models Package

This package contains all Pydantic models used in the EasyMoney core.
All data flowing through the engines must conform to these schemas.
"""

from easymoney.models.records import (
    Budget,
    BudgetPeriod,
    BudgetPeriodKey,
    DocumentRecord,
    Frequency,
    Goal,
    Notification,
    NotificationKey,
    NotificationType,
    RecurringItem,
    Transaction,
    TransactionKind,
)
from easymoney.models.snapshot import RecordSnapshot
from easymoney.models.reports import (
    BudgetUtilization,
    CategoryShare,
    FinancialReport,
    Granularity,
    PeriodSummary,
    TrendPoint,
)
from easymoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from easymoney.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Record models
    "Budget",
    "BudgetPeriod",
    "BudgetPeriodKey",
    "DocumentRecord",
    "Frequency",
    "Goal",
    "Notification",
    "NotificationKey",
    "NotificationType",
    "RecurringItem",
    "Transaction",
    "TransactionKind",
    "RecordSnapshot",
    # Report models
    "BudgetUtilization",
    "CategoryShare",
    "FinancialReport",
    "Granularity",
    "PeriodSummary",
    "TrendPoint",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
