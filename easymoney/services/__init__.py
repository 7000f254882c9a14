"""Services package."""

from easymoney.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryNotificationStorage,
    InMemoryRecordStorage,
    NotFoundError,
    NotificationStorageInterface,
    RecordStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsNotificationStorage",
    "GoogleSheetsRecordStorage",
    "InMemoryAuditStorage",
    "InMemoryNotificationStorage",
    "InMemoryRecordStorage",
    "NotFoundError",
    "NotificationStorageInterface",
    "RecordStorageInterface",
    "StorageError",
]
