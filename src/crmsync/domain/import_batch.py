"""Import batch audit records."""

import logging
from dataclasses import replace
from datetime import datetime, UTC
from typing import Optional

from crmsync.database.base import Database
from crmsync.domain.entities import (
    BATCH_COLORS,
    ImportBatch,
    ImportType,
    SyncAction,
    SyncEntityType,
)
from crmsync.domain.errors import (
    NotFoundError,
    ValidationError,
    import_batch_not_found,
    invalid_color,
)
from crmsync.domain.identity import generate_id
from crmsync.domain.sync import SyncQueue

logger = logging.getLogger(__name__)


def default_color(import_type: ImportType) -> str:
    """Delinquency batches show in red, everything else in blue."""
    return "red" if import_type is ImportType.DELINQUENCY else "blue"


class ImportBatchService:
    """Service for recording and managing import batches.

    A batch only records what happened. Deleting it never touches the
    companies the import created or updated.
    """

    def __init__(self, db: Database, queue: SyncQueue):
        self.db = db
        self.queue = queue

    def _validate_color(self, color: str) -> None:
        if color not in BATCH_COLORS:
            raise ValidationError(invalid_color(color, BATCH_COLORS))

    def record(
        self,
        tag_name: str,
        file_name: str,
        import_type: ImportType,
        matched_count: int,
        total_rows: int,
        color: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ImportBatch:
        """Record one import operation.

        Args:
            tag_name: Source tag of the import
            file_name: Originating file name
            import_type: Inferred or declared type
            matched_count: Rows that matched an existing company
            total_rows: Rows in the batch
            color: Display color (defaults by import type)
            now: Import timestamp

        Returns:
            The recorded batch

        Raises:
            ValidationError: If color is not one of BATCH_COLORS
        """
        color = color or default_color(import_type)
        self._validate_color(color)

        batch = ImportBatch(
            id=generate_id(),
            tag_name=tag_name.upper(),
            file_name=file_name,
            imported_at=now or datetime.now(UTC),
            matched_count=matched_count,
            total_rows=total_rows,
            color=color,
            type=import_type,
        )

        snapshot = self.db.load_snapshot()
        snapshot.import_batches = [batch] + snapshot.import_batches
        self.db.save_snapshot(snapshot)
        self.queue.enqueue(batch.id, SyncEntityType.IMPORT_BATCH, SyncAction.CREATE, batch)
        return batch

    def list_batches(self) -> list[ImportBatch]:
        """List batches, newest first."""
        return self.db.load_snapshot().import_batches

    def get_batch(self, batch_id: str) -> Optional[ImportBatch]:
        """Get batch by ID, or None if not found."""
        for batch in self.db.load_snapshot().import_batches:
            if batch.id == batch_id:
                return batch
        return None

    def recolor(self, batch_id: str, color: str) -> ImportBatch:
        """Change a batch's display color.

        Raises:
            ValidationError: If color is not one of BATCH_COLORS
            NotFoundError: If the batch does not exist
        """
        self._validate_color(color)

        snapshot = self.db.load_snapshot()
        for i, batch in enumerate(snapshot.import_batches):
            if batch.id == batch_id:
                updated = replace(batch, color=color)
                snapshot.import_batches[i] = updated
                self.db.save_snapshot(snapshot)
                self.queue.enqueue(
                    batch_id, SyncEntityType.IMPORT_BATCH, SyncAction.UPDATE, updated
                )
                return updated
        raise NotFoundError(import_batch_not_found(batch_id))

    def delete(self, batch_id: str) -> None:
        """Delete a batch record.

        Raises:
            NotFoundError: If the batch does not exist
        """
        snapshot = self.db.load_snapshot()
        remaining = [b for b in snapshot.import_batches if b.id != batch_id]
        if len(remaining) == len(snapshot.import_batches):
            raise NotFoundError(import_batch_not_found(batch_id))

        snapshot.import_batches = remaining
        self.db.save_snapshot(snapshot)
        self.queue.enqueue(batch_id, SyncEntityType.IMPORT_BATCH, SyncAction.DELETE, batch_id)
        logger.info("Deleted import batch %s", batch_id)
