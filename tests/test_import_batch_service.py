"""Tests for import batch records."""

import pytest

from crmsync.domain.entities import ImportType, SyncAction, SyncEntityType
from crmsync.domain.errors import NotFoundError, ValidationError
from crmsync.domain.import_batch import default_color

from conftest import FIXED_NOW


@pytest.fixture
def sample_batch(batch_service):
    return batch_service.record(
        tag_name="feira",
        file_name="feira.csv",
        import_type=ImportType.GENERAL,
        matched_count=3,
        total_rows=5,
        now=FIXED_NOW,
    )


def test_default_color():
    assert default_color(ImportType.DELINQUENCY) == "red"
    assert default_color(ImportType.SALES) == "blue"
    assert default_color(ImportType.GENERAL) == "blue"


def test_record(sample_batch, batch_service, queue):
    assert sample_batch.tag_name == "FEIRA"
    assert sample_batch.imported_at == FIXED_NOW
    assert batch_service.list_batches() == [sample_batch]

    [item] = queue.list_items()
    assert item.entity_type is SyncEntityType.IMPORT_BATCH
    assert item.action is SyncAction.CREATE


def test_record_invalid_color(batch_service):
    with pytest.raises(ValidationError, match="Invalid color"):
        batch_service.record("x", "x.csv", ImportType.GENERAL, 0, 1, color="beige")


def test_newest_first(sample_batch, batch_service):
    newer = batch_service.record("vendas", "s.csv", ImportType.SALES, 1, 1, now=FIXED_NOW)
    assert [b.id for b in batch_service.list_batches()] == [newer.id, sample_batch.id]


def test_recolor(sample_batch, batch_service, queue):
    updated = batch_service.recolor(sample_batch.id, "green")

    assert updated.color == "green"
    assert batch_service.get_batch(sample_batch.id).color == "green"
    item = queue.list_items()[-1]
    assert item.action is SyncAction.UPDATE
    assert item.payload.color == "green"


def test_recolor_errors(sample_batch, batch_service):
    with pytest.raises(ValidationError):
        batch_service.recolor(sample_batch.id, "beige")
    with pytest.raises(NotFoundError):
        batch_service.recolor("missing", "green")


def test_delete_keeps_companies(reconciliation_service, batch_service, temp_db, queue):
    report = reconciliation_service.import_rows([{"nome": "Acme"}], "feira", "f.csv", now=FIXED_NOW)

    batch_service.delete(report.batch.id)

    assert batch_service.list_batches() == []
    assert [c.name for c in temp_db.load_snapshot().companies] == ["Acme"]
    item = queue.list_items()[-1]
    assert (item.action, item.payload) == (SyncAction.DELETE, report.batch.id)


def test_delete_unknown(batch_service):
    with pytest.raises(NotFoundError):
        batch_service.delete("missing")
