"""Money and period helpers."""

from easymoney.utils.money import (
    CURRENCY_SYMBOLS,
    DEFAULT_CURRENCY,
    clamp_percent,
    currency_symbol,
    format_currency,
    percent_of,
    quantize_money,
    to_decimal,
)
from easymoney.utils.periods import (
    DateRange,
    PeriodStatus,
    add_months,
    day_range,
    in_range,
    make_range,
    month_key,
    month_label,
    month_range,
    period_status,
    week_range,
    year_range,
)

__all__ = [
    # Money
    "CURRENCY_SYMBOLS",
    "DEFAULT_CURRENCY",
    "clamp_percent",
    "currency_symbol",
    "format_currency",
    "percent_of",
    "quantize_money",
    "to_decimal",
    # Periods
    "DateRange",
    "PeriodStatus",
    "add_months",
    "day_range",
    "in_range",
    "make_range",
    "month_key",
    "month_label",
    "month_range",
    "period_status",
    "week_range",
    "year_range",
]
