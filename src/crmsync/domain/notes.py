"""Note domain service."""

from datetime import datetime, UTC
from typing import Iterable, Optional

from crmsync.database.base import Database
from crmsync.domain.entities import Note, SyncAction, SyncEntityType
from crmsync.domain.errors import ValidationError
from crmsync.domain.identity import generate_id
from crmsync.domain.sync import SyncQueue


class NoteService:
    """Service for company notes."""

    def __init__(self, db: Database, queue: SyncQueue):
        """Initialize note service.

        Args:
            db: Database instance
            queue: Queue receiving the note mutations
        """
        self.db = db
        self.queue = queue

    def create_note(self, note: Note) -> Note:
        """Record a note and queue it for the remote store.

        Raises:
            ValidationError: If the note has no company or no content
        """
        self.create_notes([note])
        return note

    def create_notes(self, notes: Iterable[Note]) -> list[Note]:
        """Record several notes with a single cache write.

        New notes are placed before existing ones (newest first).
        """
        notes = list(notes)
        for note in notes:
            if not note.company_id:
                raise ValidationError("Note must belong to a company")
            if not note.content.strip():
                raise ValidationError("Note content cannot be empty")
        if not notes:
            return []

        snapshot = self.db.load_snapshot()
        snapshot.notes = notes + snapshot.notes
        self.db.save_snapshot(snapshot)

        for note in notes:
            self.queue.enqueue(note.id, SyncEntityType.NOTE, SyncAction.CREATE, note)
        return notes

    def add_note(
        self, company_id: str, content: str, now: Optional[datetime] = None
    ) -> Note:
        """Build and record a plain note for a company."""
        note = Note(
            id=generate_id(),
            company_id=company_id,
            content=content,
            created_at=now or datetime.now(UTC),
        )
        return self.create_note(note)

    def list_notes(self, company_id: Optional[str] = None) -> list[Note]:
        """List notes, newest first, optionally for one company."""
        notes = self.db.load_snapshot().notes
        if company_id is None:
            return notes
        return [n for n in notes if n.company_id == company_id]
