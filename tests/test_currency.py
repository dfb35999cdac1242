"""Tests for currency helpers."""

from decimal import Decimal

from trip_split.currency import convert_currency, format_currency, get_currency_symbol


def test_convert_same_currency_is_untouched():
    """Same-currency amounts keep full precision."""
    assert convert_currency(Decimal("10.005"), "cny", "CNY", Decimal("3")) == Decimal(
        "10.005"
    )


def test_convert_rounds_to_cents():
    """Converted amounts are rounded half-up to cents."""
    assert convert_currency(Decimal("1"), "USD", "CNY", Decimal("7.125")) == Decimal(
        "7.13"
    )


def test_currency_symbol():
    """Known codes map to symbols, unknown ones fall back to the code."""
    assert get_currency_symbol("eur") == "€"
    assert get_currency_symbol("XYZ") == "XYZ"


def test_format_currency():
    """Amounts are formatted with symbol, thousands separator and sign."""
    assert format_currency(Decimal("1234.5"), "USD") == "$1,234.50"
    assert format_currency(Decimal("-8"), "GBP") == "-£8.00"
