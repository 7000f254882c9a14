"""
Audit Logger

DESIGN DECISION: Every state change the tracker makes is logged.
This provides:
1. Traceability of why a notification exists
2. Debugging capability when an alert does or doesn't fire
3. A history of goal contributions and record edits

The audit logger:
- Is async so persistence doesn't block the main flow
- Gracefully handles failures (a failed audit write never fails the action)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from easymoney.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from easymoney.models.records import Notification
from easymoney.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog for JSON output through the stdlib logging module.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper()))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                     If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("easymoney.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_saved(
        self,
        entity_type: str,
        entity_id: Optional[str],
        summary: str,
        correlation_id: Optional[UUID] = None,
        updated: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.record_saved(
            entity_type, entity_id, summary, correlation_id, updated
        ))

    async def log_record_deleted(
        self,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(entity_type, entity_id, correlation_id))

    async def log_record_rejected(
        self,
        entity_type: str,
        field: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_rejected(entity_type, field, reason, correlation_id))

    async def log_duplicate_budgets(
        self,
        category: str,
        month: int,
        year: int,
        budget_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_budgets(
            category, month, year, budget_ids, correlation_id
        ))

    async def log_budget_check(
        self,
        budgets_checked: int,
        warnings_created: int,
        exceeded_created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the summary of one budget check pass."""
        await self.log(AuditEventBuilder.budget_check_completed(
            budgets_checked, warnings_created, exceeded_created, correlation_id
        ))

    async def log_notification_created(
        self,
        notification: Notification,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_created(
            notification_id=notification.id,
            notification_type=notification.type.value,
            related_id=notification.related_id,
            period=notification.period,
            correlation_id=correlation_id,
        ))

    async def log_notification_suppressed(
        self,
        notification: Notification,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a candidate that lost the insert race to an identical one."""
        await self.log(AuditEventBuilder.notification_suppressed(
            notification_type=notification.type.value,
            related_id=notification.related_id,
            period=notification.period,
            correlation_id=correlation_id,
        ))

    async def log_notification_read(
        self,
        notification_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """notification_id None means 'all marked read'."""
        await self.log(AuditEventBuilder.notification_read(notification_id, correlation_id))

    async def log_goal_contribution(
        self,
        goal_id: str,
        amount: Decimal,
        new_total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.goal_contribution(
            goal_id, str(amount), str(new_total), correlation_id
        ))

    async def log_goal_completed(
        self,
        goal_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.goal_completed(goal_id, name, correlation_id))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(operation, error_message, correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new action (e.g., one budget check pass).
    Pass it through all subsequent operations.
    """
    return uuid4()
