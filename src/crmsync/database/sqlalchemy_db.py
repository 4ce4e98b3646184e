"""Generic SQLAlchemy database implementation."""

import logging
from datetime import datetime, UTC
from typing import Any, Optional
from sqlalchemy.orm import Session

from crmsync.database.base import Database
from crmsync.database.models import (
    SnapshotRecord,
    SyncQueueEntry,
    create_session_factory,
)
from crmsync.database.mappers import (
    encode_payload,
    snapshot_from_dict,
    snapshot_to_dict,
    sync_item_to_domain,
)
from crmsync.domain.entities import (
    Snapshot,
    SyncAction,
    SyncEntityType,
    SyncItem,
    SyncStatus,
)
from crmsync.domain.errors import NotFoundError, sync_item_not_found

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "local"


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of Database interface."""

    def __init__(self, database_url: str):
        """Initialize SQLAlchemy database.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
        """
        self.database_url = database_url
        self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        # Schema is created automatically by create_session_factory
        pass

    # Snapshot operations
    def load_snapshot(self) -> Snapshot:
        """Load the local cache. Returns an empty snapshot if none was saved."""
        session = self._get_session()
        record = session.get(SnapshotRecord, SNAPSHOT_KEY)
        if record is None:
            return Snapshot()
        return snapshot_from_dict(record.payload)

    def save_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the local cache with snapshot."""
        session = self._get_session()
        payload = snapshot_to_dict(snapshot)
        record = session.get(SnapshotRecord, SNAPSHOT_KEY)
        if record is None:
            session.add(SnapshotRecord(key=SNAPSHOT_KEY, payload=payload))
        else:
            record.payload = payload
            record.updated_at = datetime.now(UTC)
        session.commit()
        logger.debug(
            "Saved snapshot: %d companies, %d notes",
            len(snapshot.companies),
            len(snapshot.notes),
        )

    # Sync queue operations
    def append_sync_item(
        self,
        item_id: str,
        entity_type: SyncEntityType,
        action: SyncAction,
        payload: Any,
    ) -> int:
        """Append a pending mutation to the queue. Returns its sequence number."""
        session = self._get_session()
        entry = SyncQueueEntry(
            item_id=item_id,
            entity_type=entity_type.value,
            action=action.value,
            payload=encode_payload(entity_type, action, payload),
            status=SyncStatus.PENDING.value,
            attempts=0,
        )
        session.add(entry)
        session.commit()
        return entry.seq

    def get_sync_item(self, seq: int) -> Optional[SyncItem]:
        """Get queue item by sequence number."""
        session = self._get_session()
        entry = session.get(SyncQueueEntry, seq)
        if entry is None:
            return None
        return sync_item_to_domain(entry)

    def list_sync_items(self, status: Optional[SyncStatus] = None) -> list[SyncItem]:
        """List queue items in sequence order, optionally filtered by status."""
        session = self._get_session()
        query = session.query(SyncQueueEntry)
        if status is not None:
            query = query.filter(SyncQueueEntry.status == status.value)
        return [sync_item_to_domain(e) for e in query.order_by(SyncQueueEntry.seq).all()]

    def count_sync_items(self, status: SyncStatus) -> int:
        """Count queue items in the given status."""
        session = self._get_session()
        return session.query(SyncQueueEntry).filter(SyncQueueEntry.status == status.value).count()

    def claim_pending_sync_items(self) -> list[SyncItem]:
        """Move every pending item to in_flight and return them in sequence order."""
        session = self._get_session()
        entries = (
            session.query(SyncQueueEntry)
            .filter(SyncQueueEntry.status == SyncStatus.PENDING.value)
            .order_by(SyncQueueEntry.seq)
            .all()
        )
        for entry in entries:
            entry.status = SyncStatus.IN_FLIGHT.value
        session.commit()
        return [sync_item_to_domain(e) for e in entries]

    def mark_sync_item(
        self, seq: int, status: SyncStatus, error: Optional[str] = None
    ) -> None:
        """Record the outcome of a delivery attempt."""
        session = self._get_session()
        entry = session.get(SyncQueueEntry, seq)
        if entry is None:
            raise NotFoundError(sync_item_not_found(seq))

        entry.status = status.value
        if status in (SyncStatus.DELIVERED, SyncStatus.FAILED):
            entry.attempts = (entry.attempts or 0) + 1
        entry.last_error = error
        session.commit()

    def _move_status(self, source: SyncStatus, target: SyncStatus) -> int:
        session = self._get_session()
        count = (
            session.query(SyncQueueEntry)
            .filter(SyncQueueEntry.status == source.value)
            .update({SyncQueueEntry.status: target.value}, synchronize_session=False)
        )
        session.commit()
        session.expire_all()
        return count

    def reset_in_flight_sync_items(self) -> int:
        """Return items stuck in_flight to pending. Returns how many were reset."""
        return self._move_status(SyncStatus.IN_FLIGHT, SyncStatus.PENDING)

    def requeue_failed_sync_items(self) -> int:
        """Return failed items to pending. Returns how many were requeued."""
        return self._move_status(SyncStatus.FAILED, SyncStatus.PENDING)

    def purge_sync_items(self, status: SyncStatus = SyncStatus.DELIVERED) -> int:
        """Delete items in the given status. Returns how many were deleted."""
        session = self._get_session()
        count = (
            session.query(SyncQueueEntry)
            .filter(SyncQueueEntry.status == status.value)
            .delete(synchronize_session=False)
        )
        session.commit()
        session.expire_all()
        return count
