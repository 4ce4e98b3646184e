"""Utility functions for crmsync."""

from crmsync.utils.date_parser import parse_date
from crmsync.utils.amount_parser import parse_amount
from crmsync.utils.row_resolver import resolve_value
from crmsync.utils.csv_reader import read_rows

__all__ = ["parse_date", "parse_amount", "resolve_value", "read_rows"]
