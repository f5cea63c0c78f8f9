"""
Money helpers
Amounts travel as decimal strings tagged with a currency code. Arithmetic is done
on Decimal; formatting for display is a pure projection.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")
DEFAULT_CURRENCY = "USD"

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "INR": "₹",
}

# Currencies quoted without minor units
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})

# Locales that group with "." and use "," as the decimal mark, symbol after amount
COMMA_DECIMAL_LANGUAGES = frozenset({"de", "fr", "es", "it", "nl", "pt", "da", "sv", "nb", "fi", "pl"})


def to_decimal(value: Any, fallback: str = "0") -> Decimal:
    """Parse a number or decimal string; unparsable input yields ``fallback``."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal(fallback)
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(fallback)


def quantize(value: Any) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(value: Any) -> str:
    """Render an amount with exactly two fraction digits."""
    return f"{quantize(value):.2f}"


def _group_digits(integer_part: str, separator: str) -> str:
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return separator.join(groups)


def format_money(money: Any, locale: str = "en-US") -> str:
    """
    Format a Money (or ``{"amount", "currencyCode"}`` mapping) for display.

    ``format_money(Money("1234.56", "USD"))`` -> ``"$1,234.56"``
    ``format_money(Money("19.50", "EUR"), "de-DE")`` -> ``"19,50 €"``
    """
    if isinstance(money, dict):
        amount, currency = money.get("amount"), money.get("currencyCode")
    else:
        amount, currency = money.amount, money.currency_code
    currency = (currency or DEFAULT_CURRENCY).upper()

    value = to_decimal(amount)
    places = Decimal("1") if currency in ZERO_DECIMAL_CURRENCIES else TWO_PLACES
    value = value.quantize(places, rounding=ROUND_HALF_UP)
    negative = value < 0
    text = f"{abs(value):f}"
    integer_part, _, fraction = text.partition(".")

    language = locale.replace("_", "-").split("-")[0].lower()
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    if language in COMMA_DECIMAL_LANGUAGES:
        body = _group_digits(integer_part, ".") + ("," + fraction if fraction else "")
        formatted = f"{body} {symbol.strip()}"
    else:
        body = _group_digits(integer_part, ",") + ("." + fraction if fraction else "")
        formatted = f"{symbol}{body}"
    return f"-{formatted}" if negative else formatted


def format_percentage(percentage: Optional[float]) -> str:
    rounded = Decimal(str(percentage or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{rounded}%"


def format_savings(savings: Any, percentage: Optional[float], locale: str = "en-US") -> str:
    """``format_savings(Money("10.00", "USD"), 20)`` -> ``"Save $10.00 (20%)"``"""
    return f"Save {format_money(savings, locale)} ({format_percentage(percentage)})"
