"""
Period Helpers

Every period is a half-open interval [start, end): a moment exactly at
`end` belongs to the NEXT period. This keeps consecutive buckets disjoint
so nothing is counted twice or dropped at a boundary.

Windows are naive. Records normalise aware timestamps to naive local
time when they are validated, so containment checks never mix the two.
"""

import calendar
from datetime import date, datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional

from easymoney.errors import InvalidInputError

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class PeriodStatus(str, Enum):
    """Where a (month, year) sits relative to the evaluation date."""
    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


class DateRange(NamedTuple):
    """Half-open interval [start, end)."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def _validate_month(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise InvalidInputError(f"Month must be 1-12, got {month}", field="month")
    if not 1000 <= year <= 9999:
        raise InvalidInputError(f"Year must have four digits, got {year}", field="year")


def make_range(start: datetime, end: datetime) -> DateRange:
    """Build a range, rejecting start > end. start == end is an empty range."""
    if start > end:
        raise InvalidInputError(f"Range start {start} is after end {end}")
    return DateRange(start, end)


def in_range(moment: datetime, start: datetime, end: datetime) -> bool:
    """True when start <= moment < end."""
    return start <= moment < end


def day_range(day: date) -> DateRange:
    start = datetime(day.year, day.month, day.day)
    return DateRange(start, start + timedelta(days=1))


def week_range(day: date) -> DateRange:
    """The Monday-to-Monday week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    start = datetime(monday.year, monday.month, monday.day)
    return DateRange(start, start + timedelta(days=7))


def month_range(month: int, year: int) -> DateRange:
    """[first day of month, first day of next month)."""
    _validate_month(month, year)
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return DateRange(start, end)


def year_range(year: int) -> DateRange:
    _validate_month(1, year)
    return DateRange(datetime(year, 1, 1), datetime(year + 1, 1, 1))


def period_status(month: int, year: int, today: Optional[date] = None) -> PeriodStatus:
    """Classify (month, year) against the current (month, year)."""
    _validate_month(month, year)
    today = today or date.today()
    if (year, month) < (today.year, today.month):
        return PeriodStatus.PAST
    if (year, month) > (today.year, today.month):
        return PeriodStatus.FUTURE
    return PeriodStatus.CURRENT


def month_label(month: int, year: int) -> str:
    """'Mar 2025'."""
    _validate_month(month, year)
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def month_key(month: int, year: int) -> str:
    """'2025-03'. Used as the period component of dedup keys."""
    _validate_month(month, year)
    return f"{year:04d}-{month:02d}"


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
