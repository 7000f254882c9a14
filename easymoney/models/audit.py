"""
Audit Models for EasyMoney

Every significant state change in the finance core is logged for audit
purposes. This provides:
1. Traceability of why a notification exists
2. Debugging information when an alert fires (or does not)
3. A record of goal contributions and record edits

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Records
    RECORD_SAVED = "record_saved"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    RECORD_REJECTED = "record_rejected"
    DUPLICATE_BUDGET_DETECTED = "duplicate_budget_detected"

    # Alerting
    BUDGET_CHECK_COMPLETED = "budget_check_completed"
    NOTIFICATION_CREATED = "notification_created"
    NOTIFICATION_SUPPRESSED = "notification_suppressed"
    NOTIFICATION_READ = "notification_read"

    # Goals
    GOAL_CONTRIBUTION_ADDED = "goal_contribution_added"
    GOAL_COMPLETED = "goal_completed"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'budget', 'goal', 'notification')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Document id of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one budget check pass)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.notification_created(notification, correlation_id)
        event = AuditEventBuilder.goal_contribution(goal_id, amount, new_total)
    """

    @staticmethod
    def record_saved(
        entity_type: str,
        entity_id: Optional[str],
        summary: str,
        correlation_id: Optional[UUID] = None,
        updated: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED if updated else AuditEventType.RECORD_SAVED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {'updated' if updated else 'saved'}: {summary}",
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def record_rejected(
        entity_type: str,
        field: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Malformed {entity_type} rejected",
            details={"field": field},
            error_message=reason,
        )

    @staticmethod
    def duplicate_budgets(
        category: str,
        month: int,
        year: int,
        budget_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_BUDGET_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"{len(budget_ids)} budgets for {category} in {month:02d}/{year}",
            details={
                "category": category,
                "month": month,
                "year": year,
                "budget_ids": budget_ids,
            },
        )

    @staticmethod
    def budget_check_completed(
        budgets_checked: int,
        warnings_created: int,
        exceeded_created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CHECK_COMPLETED,
            entity_type="budget",
            correlation_id=correlation_id,
            description=(
                f"Checked {budgets_checked} budgets: "
                f"{warnings_created} warnings, {exceeded_created} exceeded"
            ),
            details={
                "budgets_checked": budgets_checked,
                "warnings_created": warnings_created,
                "exceeded_created": exceeded_created,
            },
        )

    @staticmethod
    def notification_created(
        notification_id: Optional[str],
        notification_type: str,
        related_id: Optional[str],
        period: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_CREATED,
            entity_type="notification",
            entity_id=notification_id,
            correlation_id=correlation_id,
            description=f"Notification created: {notification_type}",
            details={
                "type": notification_type,
                "related_id": related_id,
                "period": period,
            },
        )

    @staticmethod
    def notification_suppressed(
        notification_type: str,
        related_id: Optional[str],
        period: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SUPPRESSED,
            severity=AuditSeverity.DEBUG,
            entity_type="notification",
            correlation_id=correlation_id,
            description=f"Duplicate {notification_type} suppressed at insert",
            details={
                "type": notification_type,
                "related_id": related_id,
                "period": period,
            },
        )

    @staticmethod
    def notification_read(
        notification_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_READ,
            entity_type="notification",
            entity_id=notification_id,
            correlation_id=correlation_id,
            description="Notification marked as read" if notification_id else "All notifications marked as read",
            is_user_action=True,
        )

    @staticmethod
    def goal_contribution(
        goal_id: str,
        amount: str,
        new_total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION_ADDED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Contribution of {amount} added to goal",
            details={
                "amount": amount,
                "new_total": new_total,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_completed(
        goal_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal completed: {name}",
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
