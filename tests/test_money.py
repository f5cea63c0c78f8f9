from decimal import Decimal

import pytest

from schemas.bundle_schemas import Money
from services.money import format_amount, format_money, format_savings, to_decimal


def test_money_of_formats_two_digits():
    assert Money.of(10) == Money("10.00", "USD")
    assert Money.of("14.285", "EUR") == Money("14.29", "EUR")
    assert Money.of(Decimal("0.005")).amount == "0.01"


def test_money_decimal_property():
    assert Money("19.99").decimal == Decimal("19.99")


def test_to_decimal_fallback():
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal(None) == Decimal("0")
    assert to_decimal(" 12.5 ") == Decimal("12.5")


def test_format_amount():
    assert format_amount(35) == "35.00"
    assert format_amount("2.345") == "2.35"


@pytest.mark.parametrize("money,locale,expected", [
    (Money("1234.56", "USD"), "en-US", "$1,234.56"),
    (Money("19.5", "EUR"), "de-DE", "19,50 €"),
    (Money("1234567.00", "EUR"), "de-DE", "1.234.567,00 €"),
    (Money("5.00", "GBP"), "en-GB", "£5.00"),
    (Money("1500", "JPY"), "en-US", "¥1,500"),
    (Money("-3.00", "USD"), "en-US", "-$3.00"),
    ({"amount": "7.10", "currencyCode": "CAD"}, "en-CA", "CA$7.10"),
    (Money("7.00", "CHF"), "en-US", "CHF 7.00"),
])
def test_format_money(money, locale, expected):
    assert format_money(money, locale) == expected


def test_format_savings():
    assert format_savings(Money("10.00", "USD"), 20) == "Save $10.00 (20%)"
    assert format_savings(Money("5.00", "USD"), 14.2857) == "Save $5.00 (14%)"
    assert format_savings(Money("1.00", "USD"), 12.5) == "Save $1.00 (13%)"
