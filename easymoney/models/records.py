"""
Core Record Models for EasyMoney

These models define the strict schemas for every record the finance
core reads from or writes to the document store. They are designed to:
1. Reject malformed documents at the boundary instead of defaulting silently
2. Keep money as Decimal end to end
3. Round-trip through the store's camelCase document keys
4. Stay immutable: changes produce a new record (copy_with)

DESIGN DECISION: Records carry no references to each other.
Budgets join to transactions by category, notifications to budgets by
related_id. Joins happen at read time in the engines.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, NamedTuple, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from easymoney.errors import InvalidInputError
from easymoney.utils.money import (
    DEFAULT_CURRENCY,
    clamp_percent,
    percent_of,
    to_decimal,
)
from easymoney.utils.periods import (
    PeriodStatus,
    add_months,
    month_key as format_month_key,
    month_label,
    period_status,
)

DEFAULT_ALERT_THRESHOLD = 80
DEFAULT_GOAL_COLOR = "#10B981"

RecordT = TypeVar("RecordT", bound="DocumentRecord")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money. Stored under the document key 'type'."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetPeriod(str, Enum):
    """Budget period kind. Only monthly budgets exist today."""
    MONTHLY = "monthly"


class Frequency(str, Enum):
    """How often a recurring item comes due."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class NotificationType(str, Enum):
    """
    Notification kinds.

    Goal variants are only emitted when goal alerts are enabled
    in AlertSettings.
    """
    BUDGET_WARNING = "budgetWarning"
    BUDGET_EXCEEDED = "budgetExceeded"
    RECURRING_DUE = "recurringDue"
    GOAL_NEAR_TARGET = "goalNearTarget"
    GOAL_COMPLETED = "goalCompleted"


class NotificationKey(NamedTuple):
    """Identifies 'this alert condition has already been notified'."""
    type: NotificationType
    related_id: Optional[str]
    period: Optional[str]


class BudgetPeriodKey(NamedTuple):
    """(category, month, year) a budget applies to."""
    category: str
    month: int
    year: int


# =============================================================================
# BASE RECORD
# =============================================================================

class DocumentRecord(BaseModel):
    """
    Base for all stored records.

    Field names are snake_case in Python and camelCase in documents.
    Unknown document keys are ignored; missing required keys are errors.
    Every datetime field is naive local time once validated, so period
    windows built by the engines always compare against it.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: Optional[str] = Field(
        default=None,
        description="Document id, None until persisted"
    )

    @classmethod
    def from_document(
        cls: type[RecordT],
        data: Mapping[str, Any],
        doc_id: Optional[str] = None,
    ) -> RecordT:
        """
        Decode a loosely-typed document map into a validated record.

        Raises:
            InvalidInputError: If the document is malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidInputError(
                f"{cls.__name__} document must be a mapping, got {type(data).__name__}"
            )
        payload = dict(data)
        if doc_id is not None:
            payload["id"] = doc_id
        return cls._validate_or_raise(payload)

    @field_validator("*", mode="after")
    @classmethod
    def naive_local_datetime(cls, v: Any) -> Any:
        """Aware timestamps ('...Z', '+02:00') become naive local time."""
        if isinstance(v, datetime) and v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    def to_document(self) -> dict[str, Any]:
        """Encode for the document store (camelCase keys, id excluded)."""
        return self.model_dump(by_alias=True, exclude={"id"}, mode="json")

    def copy_with(self: RecordT, **overrides: Any) -> RecordT:
        """
        Full replacement with some fields overridden.

        Unlike model_copy(update=...), the result is re-validated.
        """
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise InvalidInputError(
                f"Unknown {type(self).__name__} fields: {', '.join(sorted(unknown))}"
            )
        data = self.model_dump()
        data.update(overrides)
        return type(self)._validate_or_raise(data)

    @classmethod
    def _validate_or_raise(cls: type[RecordT], data: dict[str, Any]) -> RecordT:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise InvalidInputError(
                f"Malformed {cls.__name__} document: {field}: {first['msg']}",
                field=field,
            ) from e


def _decimal_before(value: Any) -> Any:
    if value is None or isinstance(value, Decimal):
        return value
    return to_decimal(value)


def _currency_before(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(DocumentRecord):
    """A single income or expense entry."""

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount; direction comes from kind"
    )
    kind: TransactionKind = Field(
        ...,
        alias="type",
        description="income or expense"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-text category label"
    )
    description: str = Field(default="", max_length=500)
    date: datetime = Field(
        ...,
        description="When the transaction occurred"
    )
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=1000)
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        pattern="^[A-Z]{3}$",
        description="ISO 4217-like currency code"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_to_decimal(cls, v: Any) -> Any:
        return _decimal_before(v)

    @field_validator("currency", mode="before")
    @classmethod
    def normalise_currency(cls, v: Any) -> Any:
        return _currency_before(v)

    @property
    def is_income(self) -> bool:
        return self.kind == TransactionKind.INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionKind.EXPENSE


# =============================================================================
# BUDGET
# =============================================================================

class Budget(DocumentRecord):
    """
    A monthly spending limit for one category.

    NOTE: Nothing prevents two budgets for the same (category, month, year).
    Use validation.find_duplicate_budgets() to surface them.
    """

    category: str = Field(..., min_length=1, max_length=100)
    monthly_limit: Decimal = Field(
        ...,
        gt=0,
        description="Spending limit for the month"
    )
    period: BudgetPeriod = Field(default=BudgetPeriod.MONTHLY)
    alert_threshold: int = Field(
        default=DEFAULT_ALERT_THRESHOLD,
        ge=0,
        le=100,
        description="Percent of the limit that triggers a warning"
    )
    month: int = Field(default_factory=lambda: date.today().month, ge=1, le=12)
    year: int = Field(default_factory=lambda: date.today().year, ge=1000, le=9999)
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("monthly_limit", mode="before")
    @classmethod
    def limit_to_decimal(cls, v: Any) -> Any:
        return _decimal_before(v)

    @property
    def period_key(self) -> BudgetPeriodKey:
        return BudgetPeriodKey(self.category, self.month, self.year)

    @property
    def period_label(self) -> str:
        """'Mar 2025'."""
        return month_label(self.month, self.year)

    @property
    def month_key(self) -> str:
        """'2025-03'."""
        return format_month_key(self.month, self.year)

    def status(self, today: Optional[date] = None) -> PeriodStatus:
        return period_status(self.month, self.year, today)

    def is_current_month(self, today: Optional[date] = None) -> bool:
        return self.status(today) == PeriodStatus.CURRENT

    def is_future_month(self, today: Optional[date] = None) -> bool:
        return self.status(today) == PeriodStatus.FUTURE

    def is_past_month(self, today: Optional[date] = None) -> bool:
        return self.status(today) == PeriodStatus.PAST


# =============================================================================
# GOAL
# =============================================================================

class Goal(DocumentRecord):
    """A savings goal."""

    name: str = Field(..., min_length=1, max_length=200)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    target_date: datetime
    color: str = Field(default=DEFAULT_GOAL_COLOR, pattern="^#[0-9A-Fa-f]{6}$")
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("target_amount", "current_amount", mode="before")
    @classmethod
    def amounts_to_decimal(cls, v: Any) -> Any:
        return _decimal_before(v)

    @property
    def progress(self) -> Decimal:
        """Completion percentage, clamped to [0, 100]."""
        return clamp_percent(percent_of(self.current_amount, self.target_amount))

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount

    @property
    def remaining(self) -> Decimal:
        return max(self.target_amount - self.current_amount, Decimal("0"))


# =============================================================================
# RECURRING ITEM
# =============================================================================

class RecurringItem(DocumentRecord):
    """A transaction that repeats on a schedule."""

    amount: Decimal = Field(..., ge=0)
    kind: TransactionKind = Field(..., alias="type")
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    frequency: Frequency
    next_due_date: datetime
    is_active: bool = True
    currency: str = Field(default=DEFAULT_CURRENCY, pattern="^[A-Z]{3}$")
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_to_decimal(cls, v: Any) -> Any:
        return _decimal_before(v)

    @field_validator("currency", mode="before")
    @classmethod
    def normalise_currency(cls, v: Any) -> Any:
        return _currency_before(v)

    def next_occurrence(self) -> datetime:
        """The due date one frequency step after next_due_date."""
        due = self.next_due_date
        if self.frequency == Frequency.DAILY:
            return due + timedelta(days=1)
        if self.frequency == Frequency.WEEKLY:
            return due + timedelta(days=7)
        if self.frequency == Frequency.MONTHLY:
            return add_months(due, 1)
        if self.frequency == Frequency.QUARTERLY:
            return add_months(due, 3)
        return add_months(due, 12)

    def advance(self) -> "RecurringItem":
        """Copy with next_due_date moved forward one step."""
        return self.copy_with(next_due_date=self.next_occurrence())


# =============================================================================
# NOTIFICATION
# =============================================================================

class Notification(DocumentRecord):
    """
    An alert shown to the user.

    Created once per condition (see dedup_key), later only marked read.
    Never deleted automatically.
    """

    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., max_length=1000)
    type: NotificationType
    created_at: datetime = Field(default_factory=datetime.now)
    is_read: bool = False
    related_id: Optional[str] = Field(
        default=None,
        description="Budget/goal/recurring id this alert is about"
    )
    related_screen: Optional[str] = Field(
        default=None,
        description="Screen the app should open for this alert"
    )
    period: Optional[str] = Field(
        default=None,
        description="YYYY-MM for budget alerts, YYYY-MM-DD for recurring due dates"
    )

    @field_validator("type", mode="before")
    @classmethod
    def strip_legacy_prefix(cls, v: Any) -> Any:
        """Older documents store 'NotificationType.budgetWarning'."""
        if isinstance(v, str) and v.startswith("NotificationType."):
            return v.split(".", 1)[1]
        return v

    @property
    def dedup_key(self) -> NotificationKey:
        return NotificationKey(self.type, self.related_id, self.period)

    def mark_read(self) -> "Notification":
        return self.model_copy(update={"is_read": True})
