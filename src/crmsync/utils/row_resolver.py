"""Utility for picking a field out of a loosely-labelled spreadsheet row."""

from typing import Iterable, Mapping, Optional


def resolve_value(
    row: Mapping[str, str],
    candidates: Iterable[str],
    exclude: Iterable[str] = (),
    exact_only: bool = False,
) -> Optional[str]:
    """Return the first non-empty value whose column matches a candidate name.

    Lookup runs in two passes:
    1. Exact match: each candidate (lower-cased) is looked up as a key, in
       candidate order.
    2. Substring match: row keys are scanned in row order and the first key
       containing any candidate wins. This tolerates header variants such as
       "nome_fantasia" for "fantasia".

    Args:
        row: Row mapping with lower-cased column names
        candidates: Synonyms for the wanted field, most specific first
        exclude: Tokens that disqualify a column (e.g. "legal" to skip
            "representante legal")
        exact_only: Skip the substring pass

    Returns:
        The stripped value, or None if no column matches
    """
    names = [c.lower() for c in candidates]
    blocked = [e.lower() for e in exclude]

    def allowed(key: str) -> bool:
        return not any(token in key for token in blocked)

    for name in names:
        value = row.get(name)
        if value and value.strip() and allowed(name):
            return value.strip()

    if exact_only:
        return None

    for key, value in row.items():
        if not value or not value.strip() or not allowed(key):
            continue
        if any(name in key for name in names):
            return value.strip()

    return None
