"""Infer what kind of spreadsheet an import batch contains."""

from typing import Iterable, Optional, Union

from crmsync.domain.entities import ImportType

ORDER_TOKENS = ("pedido", "order")
VALUE_TOKENS = ("valor", "value")
DUE_DATE_TOKENS = ("vencimento", "due")
DATE_TOKENS = ("data", "date")


def _has_any(header_text: str, tokens: tuple[str, ...]) -> bool:
    return any(token in header_text for token in tokens)


def classify_import(
    headers: Iterable[str],
    declared_type: Optional[Union[ImportType, str]] = None,
) -> ImportType:
    """Classify a batch as a contact list, sales ledger or delinquency ledger.

    An explicit declared type other than ``general`` always wins. Otherwise the
    header tokens decide:
    - "order" and "value" -> sales
    - "due date", or "value" and "date" without "order" -> delinquency
    - anything else -> general

    Args:
        headers: Column names of the batch
        declared_type: Type pinned by the caller, if any

    Returns:
        Import type

    Raises:
        ValueError: If declared_type is not a known import type
    """
    if declared_type is not None:
        declared = ImportType(declared_type)
        if declared is not ImportType.GENERAL:
            return declared

    header_text = " ".join(h.lower() for h in headers)
    has_order = _has_any(header_text, ORDER_TOKENS)
    has_value = _has_any(header_text, VALUE_TOKENS)

    if has_order and has_value:
        return ImportType.SALES
    if _has_any(header_text, DUE_DATE_TOKENS):
        return ImportType.DELINQUENCY
    if has_value and _has_any(header_text, DATE_TOKENS) and not has_order:
        return ImportType.DELINQUENCY
    return ImportType.GENERAL


def batch_headers(rows: Iterable[dict[str, str]]) -> list[str]:
    """Return the union of column names across rows, in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)
