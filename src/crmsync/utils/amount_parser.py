"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

_US_GROUPED = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles Brazilian and international notations:
    - "500,00", "1.234,56", "R$ 1.234,56" (comma is the decimal separator)
    - "1234.56" (without a comma, the dot is the decimal separator)
    - "1,234.56" (the last separator is a dot, so commas group thousands)
    - "(123,45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and whitespace
    cleaned = re.sub(r"[R$€£\s]", "", amount_str)

    if "," in cleaned and "." in cleaned and cleaned.rfind(".") > cleaned.rfind(","):
        # US format: commas group thousands, the dot marks decimals
        if not _US_GROUPED.match(cleaned):
            raise ValueError(f"Could not parse amount '{amount_str}'")
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        # Brazilian format: dots group thousands, comma marks decimals
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")

    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
