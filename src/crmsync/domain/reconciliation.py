"""Spreadsheet import domain service."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from crmsync.database.base import Database
from crmsync.domain.company import enqueue_bulk_create
from crmsync.domain.entities import (
    ImportBatch,
    ImportType,
    SyncAction,
    SyncEntityType,
)
from crmsync.domain.errors import ValidationError
from crmsync.domain.import_batch import ImportBatchService
from crmsync.domain.merge import reconcile_rows
from crmsync.domain.notes import NoteService
from crmsync.domain.sync import SyncQueue
from crmsync.utils.csv_reader import read_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportReport:
    """What one import did."""

    matched: int
    total: int
    created: int
    notes: int
    import_type: ImportType
    batch: ImportBatch


class ReconciliationService:
    """Service for absorbing spreadsheet exports into the local cache."""

    def __init__(self, db: Database, queue: SyncQueue):
        """Initialize reconciliation service.

        Args:
            db: Database instance
            queue: Queue receiving the resulting mutations
        """
        self.db = db
        self.queue = queue
        self.note_service = NoteService(db, queue)
        self.batch_service = ImportBatchService(db, queue)

    def import_rows(
        self,
        rows: Sequence[Mapping[str, str]],
        tag_name: str,
        file_name: str,
        declared_type: Optional[Union[ImportType, str]] = None,
        now: Optional[datetime] = None,
    ) -> ImportReport:
        """Reconcile rows into the local cache and queue the changes.

        Queue order: new companies (bulk creates), matched companies
        (updates), new notes, then the batch record.

        Args:
            rows: Rows with lower-cased column names, in source order
            tag_name: Source tag applied to every touched company
            file_name: Originating file name
            declared_type: Import type pinned by the caller, if any
            now: Import timestamp (defaults to now)

        Returns:
            Import report

        Raises:
            ValidationError: If there are no rows, no tag, or the declared
                type is unknown
        """
        if not rows:
            raise ValidationError("No rows to import")
        if not tag_name or not tag_name.strip():
            raise ValidationError("Import tag cannot be empty")

        if declared_type is not None:
            try:
                declared_type = ImportType(declared_type)
            except ValueError as e:
                raise ValidationError(f"Unknown import type '{declared_type}'") from e

        snapshot = self.db.load_snapshot()
        result = reconcile_rows(
            snapshot.companies,
            rows,
            tag_name=tag_name.strip(),
            file_name=file_name,
            declared_type=declared_type,
            existing_notes=snapshot.notes,
            now=now,
        )

        snapshot.companies = result.companies
        self.db.save_snapshot(snapshot)

        enqueue_bulk_create(self.queue, result.new_companies)
        for company in result.updated_companies:
            self.queue.enqueue(company.id, SyncEntityType.COMPANY, SyncAction.UPDATE, company)
        self.note_service.create_notes(result.notes)

        batch = self.batch_service.record(
            tag_name=tag_name.strip(),
            file_name=file_name,
            import_type=result.import_type,
            matched_count=result.matched_count,
            total_rows=result.total_rows,
            now=now,
        )

        logger.info(
            "Imported %s: %d/%d matched, %d created",
            file_name,
            result.matched_count,
            result.total_rows,
            len(result.new_companies),
        )
        return ImportReport(
            matched=result.matched_count,
            total=result.total_rows,
            created=len(result.new_companies),
            notes=len(result.notes),
            import_type=result.import_type,
            batch=batch,
        )

    def import_file(
        self,
        csv_file_path: str,
        tag_name: str,
        declared_type: Optional[Union[ImportType, str]] = None,
        now: Optional[datetime] = None,
    ) -> ImportReport:
        """Read a CSV export and import its rows.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValidationError: See import_rows
        """
        try:
            rows = read_rows(csv_file_path)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return self.import_rows(
            rows, tag_name, Path(csv_file_path).name, declared_type=declared_type, now=now
        )
