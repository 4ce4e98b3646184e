"""Display formatting for values embedded in generated notes."""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def format_currency(value: Optional[Decimal]) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1.234,56``."""
    if value is None:
        value = Decimal("0")
    quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    # Format with US separators first, then swap them
    text = f"{abs(quantized):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"


def format_date(value: Optional[date]) -> str:
    """Format a date as ``dd/mm/yyyy`` (``-`` when missing)."""
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")
