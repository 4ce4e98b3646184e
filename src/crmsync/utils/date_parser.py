"""Date parsing utilities."""

import re
from datetime import date
from dateutil import parser as date_parser

_DAY_FIRST = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})")
_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def parse_date(date_str: str) -> date:
    """Parse a spreadsheet date string into a date object.

    Supports the formats found in Brazilian exports:
    - Day-first dates: "15/03/2024", "15.03.2024", "15-03-24" (2-digit years mean 20xx)
    - ISO dates, with or without a time part: "2024-03-15", "2024-03-15T00:00:00Z"
    - Anything else dateutil understands, read day-first

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Empty date string")

    date_str = date_str.strip()

    match = _DAY_FIRST.match(date_str)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError as e:
            raise ValueError(f"Could not parse date '{date_str}': {e}")

    match = _ISO.match(date_str)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError as e:
            raise ValueError(f"Could not parse date '{date_str}': {e}")

    try:
        return date_parser.parse(date_str, dayfirst=True).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
