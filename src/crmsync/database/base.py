"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from crmsync.domain.entities import (
    Snapshot,
    SyncAction,
    SyncEntityType,
    SyncItem,
    SyncStatus,
)


class Database(ABC):
    """Abstract local store for crmsync.

    Holds two things: the local cache snapshot (read and written whole) and
    the durable sync queue.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Snapshot operations
    @abstractmethod
    def load_snapshot(self) -> Snapshot:
        """Load the local cache. Returns an empty snapshot if none was saved."""
        pass

    @abstractmethod
    def save_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the local cache with snapshot."""
        pass

    # Sync queue operations
    @abstractmethod
    def append_sync_item(
        self,
        item_id: str,
        entity_type: SyncEntityType,
        action: SyncAction,
        payload: Any,
    ) -> int:
        """Append a pending mutation to the queue. Returns its sequence number."""
        pass

    @abstractmethod
    def get_sync_item(self, seq: int) -> Optional[SyncItem]:
        """Get queue item by sequence number."""
        pass

    @abstractmethod
    def list_sync_items(self, status: Optional[SyncStatus] = None) -> list[SyncItem]:
        """List queue items in sequence order, optionally filtered by status."""
        pass

    @abstractmethod
    def count_sync_items(self, status: SyncStatus) -> int:
        """Count queue items in the given status."""
        pass

    @abstractmethod
    def claim_pending_sync_items(self) -> list[SyncItem]:
        """Move every pending item to in_flight and return them in sequence order."""
        pass

    @abstractmethod
    def mark_sync_item(
        self, seq: int, status: SyncStatus, error: Optional[str] = None
    ) -> None:
        """Record the outcome of a delivery attempt."""
        pass

    @abstractmethod
    def reset_in_flight_sync_items(self) -> int:
        """Return items stuck in_flight to pending. Returns how many were reset."""
        pass

    @abstractmethod
    def requeue_failed_sync_items(self) -> int:
        """Return failed items to pending. Returns how many were requeued."""
        pass

    @abstractmethod
    def purge_sync_items(self, status: SyncStatus = SyncStatus.DELIVERED) -> int:
        """Delete items in the given status. Returns how many were deleted."""
        pass
