"""Durable mutation queue and the processor that drains it to the remote store.

Every local write is appended to the ``sync_queue`` table as a ``pending``
item. A drain pass claims all pending items (``in_flight``), delivers them
in sequence order and records each outcome as ``delivered`` or ``failed``.
Items enqueued while a pass is running stay ``pending`` and are picked up by
the next pass of the same drain.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from crmsync.database.base import Database
from crmsync.domain.entities import SyncAction, SyncEntityType, SyncItem, SyncStatus
from crmsync.domain.errors import SyncError, remote_row_not_found
from crmsync.remote.base import RemoteStore
from crmsync.remote.schema import SHEETS, entity_to_row

logger = logging.getLogger(__name__)

DEFAULT_SYNC_DELAY = 0.3
DEFAULT_DRAIN_DEBOUNCE = 0.5


@dataclass
class DrainReport:
    """Outcome of one drain() call."""

    delivered: int = 0
    failed: int = 0
    skipped: bool = False


class SyncProcessor:
    """Delivers queued mutations to the remote store, oldest first.

    ``drain()`` is not reentrant: a call made while another drain is running
    returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        db: Database,
        remote: RemoteStore,
        delay: float = DEFAULT_SYNC_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize sync processor.

        Args:
            db: Database instance holding the queue
            remote: Remote store receiving the mutations
            delay: Seconds to wait after each remote call (rate limiting)
            sleep: Async sleep function, injectable for tests
        """
        self.db = db
        self.remote = remote
        self.delay = delay
        self.sleep = sleep
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def drain(self) -> DrainReport:
        """Deliver every pending item, looping until none is left.

        Returns:
            Counts of delivered and failed items
        """
        if self._in_flight:
            logger.debug("Drain already in progress, skipping")
            return DrainReport(skipped=True)

        self._in_flight = True
        report = DrainReport()
        try:
            while True:
                items = self.db.claim_pending_sync_items()
                if not items:
                    break
                logger.info("Processing %d items from sync queue", len(items))
                for item in items:
                    await self._process(item, report)
        finally:
            self._in_flight = False

        if report.delivered or report.failed:
            logger.info(
                "Drain finished: %d delivered, %d failed", report.delivered, report.failed
            )
        return report

    async def _process(self, item: SyncItem, report: DrainReport) -> None:
        called_remote = True
        try:
            called_remote = await self._deliver(item)
        except SyncError as e:
            logger.error(
                "Sync item %d (%s %s) failed: %s", item.seq, item.action.value, item.item_id, e
            )
            self.db.mark_sync_item(item.seq, SyncStatus.FAILED, str(e))
            report.failed += 1
        except Exception as e:
            logger.exception(
                "Failed to process sync item %d (%s %s)", item.seq, item.action.value, item.item_id
            )
            self.db.mark_sync_item(item.seq, SyncStatus.FAILED, str(e) or type(e).__name__)
            report.failed += 1
        else:
            self.db.mark_sync_item(item.seq, SyncStatus.DELIVERED)
            report.delivered += 1

        if called_remote and self.delay:
            await self.sleep(self.delay)

    async def _deliver(self, item: SyncItem) -> bool:
        """Send one item. Returns True if the remote store was called."""
        sheet = SHEETS[item.entity_type]

        if item.action is SyncAction.DELETE:
            # The remote store has no row delete primitive
            logger.info("Delete of %s %s acknowledged locally only", item.entity_type.value, item.item_id)
            return False

        if item.action is SyncAction.BULK_CREATE:
            rows = [entity_to_row(item.entity_type, p) for p in item.payload]
            await asyncio.to_thread(self.remote.append_rows, sheet, rows)
            return True

        row = entity_to_row(item.entity_type, item.payload)
        if item.action is SyncAction.CREATE:
            await asyncio.to_thread(self.remote.append_rows, sheet, [row])
            return True

        row_number = await self.find_row(sheet, item.item_id)
        if row_number is None:
            raise SyncError(remote_row_not_found(sheet, item.item_id))
        await asyncio.to_thread(self.remote.update_row, f"{sheet}!A{row_number}", row)
        return True

    async def find_row(self, sheet: str, item_id: str) -> Optional[int]:
        """Return the 1-based row number holding item_id in column A, or None."""
        values = await asyncio.to_thread(self.remote.read_range, f"{sheet}!A:A")
        for row_number, row in enumerate(values, start=1):
            if row and str(row[0]).strip() == item_id:
                return row_number
        return None


class SyncQueue:
    """Append-only queue of local mutations, persisted in the database."""

    def __init__(
        self,
        db: Database,
        processor: Optional[SyncProcessor] = None,
        debounce: float = DEFAULT_DRAIN_DEBOUNCE,
    ):
        """Initialize sync queue.

        Args:
            db: Database instance holding the queue
            processor: Processor to drain the queue after enqueues, if any
            debounce: Seconds to wait after an enqueue before draining
        """
        self.db = db
        self.processor = processor
        self.debounce = debounce
        self._pending_drain: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    def enqueue(
        self,
        item_id: str,
        entity_type: SyncEntityType,
        action: SyncAction,
        payload: Any,
    ) -> int:
        """Persist a mutation and schedule a drain.

        Args:
            item_id: Id of the target entity (or of the batch for bulk creates)
            entity_type: Target entity type
            action: Mutation kind
            payload: Entity, list of entities (bulk_create) or id (delete)

        Returns:
            Sequence number of the queued item
        """
        seq = self.db.append_sync_item(item_id, entity_type, action, payload)
        logger.debug("Queued %s %s %s as item %d", action.value, entity_type.value, item_id, seq)
        self._schedule_drain()
        return seq

    def _schedule_drain(self) -> None:
        if self.processor is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop: the caller drains explicitly
            return

        if self._pending_drain is not None:
            self._pending_drain.cancel()
        self._pending_drain = loop.call_later(self.debounce, self._start_drain)

    def _start_drain(self) -> None:
        self._pending_drain = None
        task = asyncio.get_running_loop().create_task(self.processor.drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for any scheduled or running drain to finish."""
        while self._pending_drain is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks)
            else:
                await asyncio.sleep(self.debounce)

    def recover_in_flight(self) -> int:
        """Return items left in_flight by an interrupted drain to pending."""
        count = self.db.reset_in_flight_sync_items()
        if count:
            logger.warning("Recovered %d sync items interrupted mid-delivery", count)
        return count

    def requeue_failed(self) -> int:
        """Return failed items to pending so the next drain retries them."""
        count = self.db.requeue_failed_sync_items()
        logger.info("Requeued %d failed sync items", count)
        return count

    def purge(self) -> int:
        """Delete delivered items."""
        return self.db.purge_sync_items(SyncStatus.DELIVERED)

    def pending_count(self) -> int:
        return self.db.count_sync_items(SyncStatus.PENDING)

    def list_items(self, status: Optional[SyncStatus] = None) -> list[SyncItem]:
        return self.db.list_sync_items(status)
