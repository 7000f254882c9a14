"""
Notification Dispatcher

Runs an alert check and inserts its results without creating duplicates.

The check (read stored notifications, derive new ones) and the insert
are not atomic on their own: two overlapping passes could both see
"no warning yet" and both insert one. The dispatcher closes that gap
twice over:

1. Passes for the same user are serialised with an asyncio.Lock.
2. Inserts go through add_notification_if_absent, so even a writer
   outside this process can't produce a second copy of a dedup key
   in the in-memory backend.
"""

import asyncio
from typing import Callable, Optional
from uuid import UUID

import structlog

from easymoney.audit import AuditLogger
from easymoney.models.records import Notification
from easymoney.services.storage import NotificationStorageInterface

logger = structlog.get_logger(__name__)

# Receives the stored notifications, returns the candidates to insert.
AlertCheck = Callable[[list[Notification]], list[Notification]]


class NotificationDispatcher:
    """Serialised check-then-insert of notifications, one lock per user."""

    def __init__(
        self,
        storage: NotificationStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    async def dispatch(
        self,
        user_id: str,
        check: AlertCheck,
        correlation_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """
        Run `check` against the stored notifications and insert its output.

        Args:
            user_id: Whose notifications these are
            check: Pure function deriving new notifications
            correlation_id: Ties the audit events of this pass together

        Returns:
            The notifications actually stored, with their ids
        """
        async with self._lock_for(user_id):
            existing = await self._storage.list_notifications()
            candidates = check(existing)
            return await self._insert(user_id, candidates, correlation_id)

    async def _insert(
        self,
        user_id: str,
        candidates: list[Notification],
        correlation_id: Optional[UUID],
    ) -> list[Notification]:
        stored = []
        for candidate in candidates:
            result = await self._storage.add_notification_if_absent(candidate)
            if result is None:
                logger.debug(
                    "notification_suppressed",
                    user_id=user_id,
                    type=candidate.type.value,
                    related_id=candidate.related_id,
                    period=candidate.period,
                )
                await self._audit.log_notification_suppressed(candidate, correlation_id)
                continue
            logger.info(
                "notification_created",
                user_id=user_id,
                notification_id=result.id,
                type=result.type.value,
                related_id=result.related_id,
                period=result.period,
            )
            await self._audit.log_notification_created(result, correlation_id)
            stored.append(result)
        return stored
