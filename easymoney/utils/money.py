"""
Money Helpers

DESIGN DECISION: All amounts are Decimal end to end.
Floats coming from the document store are converted through str()
so 0.1 stays 0.1 instead of 0.1000000000000000055511151231257827.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from easymoney.errors import InvalidInputError

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")

DEFAULT_CURRENCY = "USD"

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CHF": "Fr",
    "CAD": "C$",
    "AUD": "A$",
    "NZD": "NZ$",
    "CNY": "¥",
    "INR": "₹",
    "RUB": "₽",
    "MXN": "$",
    "BRL": "R$",
    "ZAR": "R",
    "SGD": "S$",
    "HKD": "HK$",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "NTD": "NT$",
    "KRW": "₩",
    "THB": "฿",
    "MYR": "RM",
    "PHP": "₱",
    "VND": "₫",
    "PKR": "₨",
    "IDR": "Rp",
    "TRY": "₺",
    "AED": "د.إ",
    "SAR": "ر.س",
}


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal, rejecting NaN and garbage."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidInputError(f"Not an amount: {value!r}")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidInputError(f"Not an amount: {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"Not a finite amount: {value!r}")
    return result


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def percent_of(value: Number, total: Number) -> Decimal:
    """
    value / total * 100.

    A zero total yields 0 rather than a division error.
    """
    total_dec = to_decimal(total)
    if total_dec == 0:
        return ZERO
    return to_decimal(value) / total_dec * HUNDRED


def clamp_percent(percent: Decimal) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    return max(ZERO, min(HUNDRED, percent))


def currency_symbol(currency: str) -> str:
    """Symbol for an ISO code, falling back to '$' like the mobile app."""
    return CURRENCY_SYMBOLS.get(currency.upper(), "$")


def format_currency(amount: Number, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Format an amount for display, e.g. format_currency(1234.5, "EUR") -> "€1,234.50".

    Negative amounts keep the sign in front of the symbol.
    """
    value = quantize_money(to_decimal(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.2f}"
