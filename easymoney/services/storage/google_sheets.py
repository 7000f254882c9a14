"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent backend because:
1. Users can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions; add_notification_if_absent is only atomic within
  one process (guarded by an asyncio.Lock)
- Limited query capabilities (we filter in Python)

Each collection lives in its own worksheet. Row 1 holds the column
names, which are the camelCase document keys with "id" first. List
fields are stored as JSON text.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional, TypeVar, get_origin
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from easymoney.config import get_settings
from easymoney.config.settings import GoogleSheetsSettings
from easymoney.errors import InvalidInputError
from easymoney.models.audit import AuditEvent, AuditEventType, AuditSeverity
from easymoney.models.records import (
    Budget,
    DocumentRecord,
    Goal,
    Notification,
    RecurringItem,
    Transaction,
)
from easymoney.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    NotificationStorageInterface,
    RecordStorageInterface,
    StorageError,
)
from easymoney.services.storage.memory import new_document_id

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=DocumentRecord)

# Column mappings for the AuditLog sheet (matches AuditEvent.to_sheets_row)
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


# =============================================================================
# ROW CODEC
# =============================================================================

def sheet_columns(model: type[DocumentRecord]) -> list[str]:
    """Header row for a record type: 'id' then the document keys."""
    columns = ["id"]
    for name, field in model.model_fields.items():
        if name != "id":
            columns.append(field.alias or name)
    return columns


def _json_columns(model: type[DocumentRecord]) -> set[str]:
    return {
        field.alias or name
        for name, field in model.model_fields.items()
        if get_origin(field.annotation) in (list, dict)
    }


def record_to_row(record: DocumentRecord, columns: list[str]) -> list[str]:
    """Convert a record to a spreadsheet row in header order."""
    document = record.to_document()
    document["id"] = record.id
    row = []
    for column in columns:
        value = document.get(column)
        if value is None:
            row.append("")
        elif isinstance(value, (list, dict)):
            row.append(json.dumps(value))
        else:
            row.append(str(value))
    return row


def row_to_record(model: type[RecordT], row: list[str], columns: list[str]) -> RecordT:
    """
    Convert a spreadsheet row back into a record.

    Empty cells are treated as missing so model defaults apply.

    Raises:
        InvalidInputError: If the row doesn't decode into a valid record
    """
    json_columns = _json_columns(model)
    document: dict[str, Any] = {}
    for index, column in enumerate(columns):
        cell = row[index] if index < len(row) else ""
        if cell == "":
            continue
        if column in json_columns:
            try:
                document[column] = json.loads(cell)
            except json.JSONDecodeError as e:
                raise InvalidInputError(f"Bad JSON in column {column}", field=column) from e
        else:
            document[column] = cell
    doc_id = document.pop("id", None)
    return model.from_document(document, doc_id=doc_id)


# =============================================================================
# CLIENT
# =============================================================================

class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    A ready spreadsheet can be passed in to bypass authentication.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
                sheet.append_row(columns)
                logger.info("worksheet_created", title=title)
            self._worksheets[title] = sheet
        return self._worksheets[title]


class SheetTable:
    """
    One worksheet holding one record type.

    Reads always fetch the whole sheet; rows that fail to decode are
    skipped and logged, so one hand-edited cell doesn't hide the rest.
    """

    def __init__(self, client: GoogleSheetsClient, title: str, model: type[RecordT]):
        self._client = client
        self._title = title
        self._model = model
        self._columns = sheet_columns(model)

    @property
    def entity_type(self) -> str:
        return self._model.__name__.lower()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self._columns)

    @sheets_retry
    def _values(self) -> list[list[str]]:
        return self._sheet().get_all_values()

    @sheets_retry
    def _append(self, row: list[str]) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    @sheets_retry
    def _replace(self, row_number: int, row: list[str]) -> None:
        self._sheet().update(values=[row], range_name=f"A{row_number}")

    @sheets_retry
    def _delete(self, row_number: int) -> None:
        self._sheet().delete_rows(row_number)

    def _rows(self) -> list[tuple[int, list[str]]]:
        """(sheet row number, cells) for every non-empty data row."""
        try:
            values = self._values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {self._title}: {e}")
        return [
            (number, row)
            for number, row in enumerate(values[1:], start=2)
            if row and row[0]
        ]

    def _find_row(self, record_id: str) -> Optional[int]:
        for number, row in self._rows():
            if row[0] == record_id:
                return number
        return None

    def all(self) -> list[RecordT]:
        records = []
        for number, row in self._rows():
            try:
                records.append(row_to_record(self._model, row, self._columns))
            except InvalidInputError as e:
                logger.warning(
                    "malformed_row_skipped",
                    sheet=self._title,
                    row=number,
                    field=e.field,
                    error=str(e),
                )
        return records

    def get(self, record_id: str) -> Optional[RecordT]:
        for record in self.all():
            if record.id == record_id:
                return record
        return None

    def insert(self, record: RecordT) -> RecordT:
        if record.id is not None and self._find_row(record.id) is not None:
            raise DuplicateError(f"{self.entity_type} {record.id} already exists")
        stored = record if record.id is not None else record.model_copy(
            update={"id": new_document_id()}
        )
        try:
            self._append(record_to_row(stored, self._columns))
        except Exception as e:
            raise StorageError(f"Failed to save {self.entity_type}: {e}")
        return stored

    def update(self, record: RecordT) -> RecordT:
        row_number = self._find_row(record.id) if record.id else None
        if row_number is None:
            raise NotFoundError(self.entity_type, str(record.id))
        try:
            self._replace(row_number, record_to_row(record, self._columns))
        except Exception as e:
            raise StorageError(f"Failed to update {self.entity_type}: {e}")
        return record

    def delete(self, record_id: str) -> bool:
        row_number = self._find_row(record_id)
        if row_number is None:
            return False
        try:
            self._delete(row_number)
        except Exception as e:
            raise StorageError(f"Failed to delete {self.entity_type}: {e}")
        return True


# =============================================================================
# STORAGES
# =============================================================================

class GoogleSheetsRecordStorage(RecordStorageInterface):
    """Google Sheets implementation of record storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._transactions = SheetTable(self._client, settings.transactions_sheet_name, Transaction)
        self._budgets = SheetTable(self._client, settings.budgets_sheet_name, Budget)
        self._goals = SheetTable(self._client, settings.goals_sheet_name, Goal)
        self._recurring = SheetTable(self._client, settings.recurring_sheet_name, RecurringItem)

    async def list_transactions(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        transactions = [
            t for t in self._transactions.all()
            if (date_from is None or t.date >= date_from)
            and (date_to is None or t.date < date_to)
        ]
        # Sort by date descending (newest first)
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        return self._transactions.insert(transaction)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return self._transactions.update(transaction)

    async def delete_transaction(self, transaction_id: str) -> bool:
        return self._transactions.delete(transaction_id)

    async def list_budgets(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        return [
            b for b in self._budgets.all()
            if (month is None or b.month == month) and (year is None or b.year == year)
        ]

    async def add_budget(self, budget: Budget) -> Budget:
        return self._budgets.insert(budget)

    async def update_budget(self, budget: Budget) -> Budget:
        return self._budgets.update(budget)

    async def delete_budget(self, budget_id: str) -> bool:
        return self._budgets.delete(budget_id)

    async def list_goals(self) -> list[Goal]:
        return sorted(self._goals.all(), key=lambda g: g.created_at, reverse=True)

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    async def add_goal(self, goal: Goal) -> Goal:
        return self._goals.insert(goal)

    async def update_goal(self, goal: Goal) -> Goal:
        return self._goals.update(goal)

    async def delete_goal(self, goal_id: str) -> bool:
        return self._goals.delete(goal_id)

    async def list_recurring_items(self, active_only: bool = False) -> list[RecurringItem]:
        items = [i for i in self._recurring.all() if i.is_active or not active_only]
        return sorted(items, key=lambda i: i.next_due_date)

    async def add_recurring_item(self, item: RecurringItem) -> RecurringItem:
        return self._recurring.insert(item)

    async def update_recurring_item(self, item: RecurringItem) -> RecurringItem:
        return self._recurring.update(item)

    async def delete_recurring_item(self, item_id: str) -> bool:
        return self._recurring.delete(item_id)


class GoogleSheetsNotificationStorage(NotificationStorageInterface):
    """Google Sheets implementation of notification storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._table = SheetTable(
            self._client, self._client.settings.notifications_sheet_name, Notification
        )
        self._lock = asyncio.Lock()

    async def list_notifications(self, unread_only: bool = False) -> list[Notification]:
        items = [n for n in self._table.all() if not (unread_only and n.is_read)]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    async def add_notification_if_absent(
        self,
        notification: Notification,
    ) -> Optional[Notification]:
        async with self._lock:
            key = notification.dedup_key
            if any(n.dedup_key == key for n in self._table.all()):
                return None
            return self._table.insert(notification)

    async def mark_as_read(self, notification_id: str) -> Notification:
        async with self._lock:
            notification = self._table.get(notification_id)
            if notification is None:
                raise NotFoundError("notification", notification_id)
            if notification.is_read:
                return notification
            return self._table.update(notification.mark_read())

    async def mark_all_as_read(self) -> int:
        async with self._lock:
            unread = [n for n in self._table.all() if not n.is_read]
            for notification in unread:
                self._table.update(notification.mark_read())
            return len(unread)

    async def delete_notification(self, notification_id: str) -> bool:
        async with self._lock:
            return self._table.delete(notification_id)

    async def delete_all_read(self) -> int:
        async with self._lock:
            read_ids = [n.id for n in self._table.all() if n.is_read]
            # Row numbers shift after each delete, so look each one up again.
            for notification_id in read_ids:
                self._table.delete(notification_id)
            return len(read_ids)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @sheets_retry
    def _append(self, row: list) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    def _events(self) -> list[AuditEvent]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row_skipped", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            self._append(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.error("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events() if e.correlation_id == correlation_id]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
