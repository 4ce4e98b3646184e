"""Tests for note formatting helpers."""

from datetime import date
from decimal import Decimal

from crmsync.utils.formatting import format_currency, format_date


def test_format_currency():
    assert format_currency(Decimal("1234.56")) == "R$ 1.234,56"
    assert format_currency(Decimal("500")) == "R$ 500,00"
    assert format_currency(Decimal("1234567.891")) == "R$ 1.234.567,89"


def test_format_currency_negative_and_missing():
    assert format_currency(Decimal("-10.5")) == "-R$ 10,50"
    assert format_currency(None) == "R$ 0,00"


def test_format_date():
    assert format_date(date(2024, 3, 5)) == "05/03/2024"
    assert format_date(None) == "-"
