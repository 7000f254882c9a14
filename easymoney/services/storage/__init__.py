"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend serves
tests and local runs.
"""

from easymoney.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    NotificationStorageInterface,
    RecordStorageInterface,
    StorageError,
)
from easymoney.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryNotificationStorage,
    InMemoryRecordStorage,
)
from easymoney.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsNotificationStorage,
    GoogleSheetsRecordStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "NotificationStorageInterface",
    "RecordStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryNotificationStorage",
    "InMemoryRecordStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsNotificationStorage",
    "GoogleSheetsRecordStorage",
]
