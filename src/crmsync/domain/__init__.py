"""Domain layer for crmsync.

Services live in their own modules (``crmsync.domain.reconciliation`` and
friends) and are imported from there.
"""

from crmsync.domain.classifier import classify_import
from crmsync.domain.entities import (
    Company,
    DelinquencyRecord,
    ImportBatch,
    ImportType,
    Note,
    Purchase,
    Snapshot,
    SyncAction,
    SyncEntityType,
    SyncItem,
    SyncStatus,
)
from crmsync.domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    SyncError,
    ValidationError,
)

__all__ = [
    "classify_import",
    "Company",
    "DelinquencyRecord",
    "ImportBatch",
    "ImportType",
    "Note",
    "Purchase",
    "Snapshot",
    "SyncAction",
    "SyncEntityType",
    "SyncItem",
    "SyncStatus",
    "ConflictError",
    "DomainError",
    "NotFoundError",
    "SyncError",
    "ValidationError",
]
