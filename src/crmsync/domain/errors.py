"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class SyncError(DomainError):
    """A queued mutation could not be translated or delivered."""


def company_not_found(company_id: str) -> str:
    """Return message for missing company."""
    return f"Company '{company_id}' not found"


def import_batch_not_found(batch_id: str) -> str:
    """Return message for missing import batch."""
    return f"Import batch '{batch_id}' not found"


def sync_item_not_found(seq: int) -> str:
    """Return message for missing sync queue item."""
    return f"Sync item {seq} not found"


def duplicate_company_id(company_id: str) -> str:
    """Return message for a company id that is already taken."""
    return f"Company with id '{company_id}' already exists"


def invalid_color(color: str, allowed: tuple[str, ...]) -> str:
    """Return message for an unsupported batch color."""
    return f"Invalid color '{color}'. Choose one of: {', '.join(allowed)}"


def remote_row_not_found(sheet: str, item_id: str) -> str:
    """Return message when an update targets a row missing from the remote store."""
    return f"Remote row for '{item_id}' not found in sheet '{sheet}'"
