"""Tests for the sync queue and processor."""

import asyncio
import logging
from datetime import date
from decimal import Decimal

import pytest

from crmsync.database.factories import create_sqlite_database
from crmsync.domain.entities import (
    Company,
    ImportBatch,
    ImportType,
    Note,
    SyncAction,
    SyncEntityType,
    SyncStatus,
)
from crmsync.domain.errors import NotFoundError
from crmsync.domain.sync import DrainReport, SyncProcessor, SyncQueue
from crmsync.remote.schema import HEADERS

from conftest import FIXED_NOW, FakeRemoteStore, no_sleep


def company(company_id="c1", **overrides):
    values = dict(id=company_id, name="Padaria Central", tax_id="12345678000190", tags=("CLIENT",))
    values.update(overrides)
    return Company(**values)


def note(note_id="n1", company_id="c1"):
    return Note(id=note_id, company_id=company_id, content="Call back", created_at=FIXED_NOW)


def drain(processor):
    return asyncio.run(processor.drain())


class TestSyncQueue:
    def test_enqueue_is_pending_with_increasing_seq(self, queue):
        first = queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        second = queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())

        assert second > first
        items = queue.list_items()
        assert [i.seq for i in items] == [first, second]
        assert all(i.status is SyncStatus.PENDING for i in items)
        assert queue.pending_count() == 2

    def test_payloads_come_back_as_domain_objects(self, queue):
        stored = company(last_purchase_value=Decimal("12.50"), birth_date=date(1990, 5, 1))
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.UPDATE, stored)
        queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())
        queue.enqueue("c2", SyncEntityType.COMPANY, SyncAction.DELETE, "c2")
        queue.enqueue("bulk_1", SyncEntityType.COMPANY, SyncAction.BULK_CREATE, [company("a"), company("b")])
        queue.enqueue("t1", SyncEntityType.TASK, SyncAction.CREATE, {"id": "t1", "title": "Visit"})

        update, created_note, delete, bulk, task = queue.list_items()
        assert update.payload == stored
        assert created_note.payload == note()
        assert delete.payload == "c2"
        assert [c.id for c in bulk.payload] == ["a", "b"]
        assert task.payload == {"id": "t1", "title": "Visit"}
        assert update.enqueued_at.tzinfo is not None

    def test_queue_survives_restart(self, temp_db):
        SyncQueue(temp_db).enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())

        reopened = create_sqlite_database(database_path=temp_db.database_path)
        reopened.connect()
        try:
            [item] = SyncQueue(reopened).list_items()
            assert item.item_id == "c1"
            assert item.status is SyncStatus.PENDING
            assert item.payload == company()
        finally:
            reopened.disconnect()

    def test_recover_in_flight(self, temp_db, queue):
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        temp_db.claim_pending_sync_items()
        assert queue.pending_count() == 0

        assert queue.recover_in_flight() == 1
        assert queue.pending_count() == 1

    def test_requeue_failed(self, temp_db, queue):
        seq = queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        temp_db.claim_pending_sync_items()
        temp_db.mark_sync_item(seq, SyncStatus.FAILED, "boom")

        assert queue.list_items(SyncStatus.FAILED)[0].last_error == "boom"
        assert queue.requeue_failed() == 1
        assert queue.pending_count() == 1

    def test_purge_removes_delivered_only(self, temp_db, queue):
        delivered = queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        queue.enqueue("c2", SyncEntityType.COMPANY, SyncAction.CREATE, company("c2"))
        temp_db.mark_sync_item(delivered, SyncStatus.DELIVERED)

        assert queue.purge() == 1
        assert [i.item_id for i in queue.list_items()] == ["c2"]

    def test_mark_unknown_item(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.mark_sync_item(999, SyncStatus.DELIVERED)

    def test_enqueue_without_loop_does_not_drain(self, temp_db, remote):
        processor = SyncProcessor(temp_db, remote, sleep=no_sleep)
        queue = SyncQueue(temp_db, processor)

        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())

        assert remote.calls == []
        assert queue.pending_count() == 1

    def test_enqueue_inside_loop_schedules_drain(self, temp_db, remote):
        processor = SyncProcessor(temp_db, remote, sleep=no_sleep)
        queue = SyncQueue(temp_db, processor, debounce=0.01)

        async def run():
            queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
            queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())
            await queue.wait_idle()

        asyncio.run(run())

        assert queue.pending_count() == 0
        assert len(remote.data_rows("companies")) == 1
        assert len(remote.data_rows("notes")) == 1


class TestSyncProcessor:
    def test_drain_delivers_in_order(self, queue, processor, remote):
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())

        report = drain(processor)

        assert report == DrainReport(delivered=2, failed=0)
        assert [c[:2] for c in remote.calls] == [("append", "companies"), ("append", "notes")]
        [row] = remote.data_rows("companies")
        assert row[0] == "c1"
        assert row[HEADERS["companies"].index("NOME")] == "Padaria Central"
        assert row[HEADERS["companies"].index("tags")] == '["CLIENT"]'
        assert all(i.status is SyncStatus.DELIVERED for i in queue.list_items())
        assert all(i.attempts == 1 for i in queue.list_items())

    def test_bulk_create_appends_all_rows_at_once(self, queue, processor, remote):
        companies = [company(f"c{i}") for i in range(3)]
        queue.enqueue("bulk_x", SyncEntityType.COMPANY, SyncAction.BULK_CREATE, companies)

        drain(processor)

        assert remote.calls == [("append", "companies", 3)]
        assert [r[0] for r in remote.data_rows("companies")] == ["c0", "c1", "c2"]

    def test_update_rewrites_matching_row(self, queue, processor, remote):
        remote.sheets["companies"].append(["c0"])
        remote.sheets["companies"].append(["c1", "old"])
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.UPDATE, company(name="Renamed"))

        report = drain(processor)

        assert report.delivered == 1
        assert ("update", "companies!A3") in remote.calls
        assert remote.sheets["companies"][2][HEADERS["companies"].index("NOME")] == "Renamed"

    def test_update_of_missing_row_fails(self, queue, processor, remote, caplog):
        seq = queue.enqueue("c9", SyncEntityType.COMPANY, SyncAction.UPDATE, company("c9"))

        with caplog.at_level(logging.WARNING, logger="crmsync"):
            report = drain(processor)

        assert report == DrainReport(delivered=0, failed=1)
        item = queue.list_items()[0]
        assert item.seq == seq
        assert item.status is SyncStatus.FAILED
        assert "not found" in item.last_error
        assert not any(c[0] == "append" for c in remote.calls)
        assert "c9" in caplog.text
        assert any(r.levelno == logging.ERROR and "c9" in r.getMessage() for r in caplog.records)

    def test_delete_makes_no_remote_call(self, queue, processor, remote):
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        processor.sleep = record_sleep
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.DELETE, "c1")

        report = drain(processor)

        assert report.delivered == 1
        assert remote.calls == []
        assert sleeps == []

    def test_failure_does_not_block_later_items(self, queue, processor, remote):
        remote.fail_appends.add("companies")
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())

        report = drain(processor)

        assert report == DrainReport(delivered=1, failed=1)
        failed, delivered = queue.list_items()
        assert failed.status is SyncStatus.FAILED
        assert "cannot append" in failed.last_error
        assert delivered.status is SyncStatus.DELIVERED
        assert len(remote.data_rows("notes")) == 1

    def test_failed_items_are_retried_after_requeue(self, queue, processor, remote):
        remote.fail_appends.add("companies")
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        drain(processor)

        remote.fail_appends.clear()
        queue.requeue_failed()
        report = drain(processor)

        assert report.delivered == 1
        [item] = queue.list_items()
        assert item.status is SyncStatus.DELIVERED
        assert item.attempts == 2

    def test_waits_after_each_remote_call(self, queue, temp_db, remote):
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        processor = SyncProcessor(temp_db, remote, delay=0.3, sleep=record_sleep)
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())
        queue.enqueue("c2", SyncEntityType.COMPANY, SyncAction.CREATE, company("c2"))

        drain(processor)

        assert sleeps == [0.3, 0.3]

    def test_concurrent_drain_is_skipped(self, queue, temp_db, remote):
        started = []

        async def slow_sleep(seconds):
            started.append(seconds)
            await asyncio.sleep(0)

        processor = SyncProcessor(temp_db, remote, delay=0.1, sleep=slow_sleep)
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())

        async def run():
            first = asyncio.create_task(processor.drain())
            await asyncio.sleep(0)
            assert processor.in_flight
            second = await processor.drain()
            return await first, second

        first, second = asyncio.run(run())

        assert second.skipped
        assert first.delivered == 1
        assert not processor.in_flight

    def test_items_enqueued_during_drain_are_picked_up(self, queue, temp_db, remote):
        async def enqueue_once(seconds):
            if queue.pending_count() == 0 and len(queue.list_items()) == 1:
                queue.enqueue("n1", SyncEntityType.NOTE, SyncAction.CREATE, note())

        processor = SyncProcessor(temp_db, remote, delay=0.1, sleep=enqueue_once)
        queue.enqueue("c1", SyncEntityType.COMPANY, SyncAction.CREATE, company())

        report = drain(processor)

        assert report.delivered == 2
        assert len(remote.data_rows("notes")) == 1

    def test_import_batch_and_task_rows(self, queue, processor, remote):
        batch = ImportBatch(
            id="b1",
            tag_name="FEIRA",
            file_name="feira.csv",
            imported_at=FIXED_NOW,
            matched_count=3,
            total_rows=5,
            color="blue",
            type=ImportType.GENERAL,
        )
        queue.enqueue("b1", SyncEntityType.IMPORT_BATCH, SyncAction.CREATE, batch)
        queue.enqueue(
            "t1", SyncEntityType.TASK, SyncAction.CREATE,
            {"id": "t1", "companyId": "c1", "title": "Visit", "isCompleted": False},
        )

        drain(processor)

        assert remote.data_rows("databases") == [
            ["b1", "FEIRA", "feira.csv", FIXED_NOW.isoformat(), 3, 5, "blue", "general"]
        ]
        assert remote.data_rows("tasks") == [["t1", "c1", "Visit", "", False]]

    def test_find_row(self, processor, remote):
        remote.sheets["notes"].extend([["n1"], ["n2"]])
        assert asyncio.run(processor.find_row("notes", "n2")) == 3
        assert asyncio.run(processor.find_row("notes", "missing")) is None


def test_items_survive_restart_and_are_delivered_once(temp_db, remote):
    queue = SyncQueue(temp_db)
    for i in range(5):
        queue.enqueue(f"n{i}", SyncEntityType.NOTE, SyncAction.CREATE, note(f"n{i}"))

    reopened = create_sqlite_database(database_path=temp_db.database_path)
    reopened.connect()
    try:
        processor = SyncProcessor(reopened, remote, sleep=no_sleep)
        first = drain(processor)
        second = drain(processor)
    finally:
        reopened.disconnect()

    assert first.delivered == 5
    assert second.delivered == 0
    assert [r[0] for r in remote.data_rows("notes")] == [f"n{i}" for i in range(5)]
