"""Mapper functions between domain entities and their stored forms.

The local cache and the queue payloads are JSON documents, so every domain
entity has a ``*_to_dict``/``*_from_dict`` pair here. Decimals are stored as
strings and dates as ISO text so that nothing is lost in the round trip.
"""

from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Any, Optional

from crmsync.domain import entities as domain
from crmsync.database.models import SyncQueueEntry as ORMSyncQueueEntry


def _date_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date_from_str(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime_from_str(value: str) -> datetime:
    return _as_utc(datetime.fromisoformat(value))


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on DateTime columns
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def purchase_to_dict(purchase: domain.Purchase) -> dict[str, Any]:
    return {
        "id": purchase.id,
        "order_id": purchase.order_id,
        "date": _date_to_str(purchase.date),
        "value": str(purchase.value),
        "status": purchase.status,
        "seller_code": purchase.seller_code,
        "seller_name": purchase.seller_name,
        "operation": purchase.operation,
        "invoice": purchase.invoice,
        "payment_term": purchase.payment_term,
        "items_count": str(purchase.items_count),
        "discount": str(purchase.discount),
        "ipi": str(purchase.ipi),
        "freight": str(purchase.freight),
        "freight_type": purchase.freight_type,
        "carrier": purchase.carrier,
    }


def purchase_from_dict(data: dict[str, Any]) -> domain.Purchase:
    return domain.Purchase(
        id=data["id"],
        order_id=data.get("order_id") or "",
        date=_date_from_str(data["date"]),
        value=_decimal(data.get("value")),
        status=data.get("status") or "",
        seller_code=data.get("seller_code") or "",
        seller_name=data.get("seller_name") or "",
        operation=data.get("operation") or "",
        invoice=data.get("invoice") or "",
        payment_term=data.get("payment_term") or "",
        items_count=_decimal(data.get("items_count")),
        discount=_decimal(data.get("discount")),
        ipi=_decimal(data.get("ipi")),
        freight=_decimal(data.get("freight")),
        freight_type=data.get("freight_type") or "",
        carrier=data.get("carrier") or "",
    )


def delinquency_to_dict(record: domain.DelinquencyRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "date": _date_to_str(record.date),
        "value": str(record.value),
        "status": record.status,
        "origin": record.origin,
    }


def delinquency_from_dict(data: dict[str, Any]) -> domain.DelinquencyRecord:
    return domain.DelinquencyRecord(
        id=data["id"],
        date=_date_from_str(data["date"]),
        value=_decimal(data.get("value")),
        status=data.get("status") or "pending",
        origin=data.get("origin") or "",
    )


_COMPANY_TEXT_FIELDS = (
    "name",
    "client_code",
    "type_code",
    "tax_id",
    "state_registration",
    "trade_name",
    "address",
    "neighborhood",
    "zip_code",
    "ibge",
    "city_code",
    "city",
    "state",
    "phone",
    "mobile",
    "fax",
    "email",
    "region",
    "representative",
    "lead_status",
    "sdr",
)


def company_to_dict(company: domain.Company) -> dict[str, Any]:
    """Convert a Company entity to a JSON-safe dict."""
    data: dict[str, Any] = {
        "id": company.id,
        "is_active": company.is_active,
        "is_lead": company.is_lead,
    }
    for field_name in _COMPANY_TEXT_FIELDS:
        data[field_name] = getattr(company, field_name)
    data["birth_date"] = _date_to_str(company.birth_date)
    data["last_purchase_date"] = _date_to_str(company.last_purchase_date)
    data["last_purchase_value"] = str(company.last_purchase_value)
    data["tags"] = list(company.tags)
    data["purchases"] = [purchase_to_dict(p) for p in company.purchases]
    data["delinquencies"] = [delinquency_to_dict(d) for d in company.delinquencies]
    return data


def company_from_dict(data: dict[str, Any]) -> domain.Company:
    """Convert a stored dict back to a Company entity."""
    return domain.Company(
        id=data["id"],
        is_active=bool(data.get("is_active", True)),
        is_lead=bool(data.get("is_lead", False)),
        **{name: data.get(name) or "" for name in _COMPANY_TEXT_FIELDS},
        birth_date=_date_from_str(data.get("birth_date")),
        last_purchase_date=_date_from_str(data.get("last_purchase_date")),
        last_purchase_value=_decimal(data.get("last_purchase_value")),
        tags=tuple(data.get("tags") or ()),
        purchases=tuple(purchase_from_dict(p) for p in data.get("purchases") or ()),
        delinquencies=tuple(
            delinquency_from_dict(d) for d in data.get("delinquencies") or ()
        ),
    )


def note_to_dict(note: domain.Note) -> dict[str, Any]:
    return {
        "id": note.id,
        "company_id": note.company_id,
        "content": note.content,
        "type": note.type,
        "created_at": note.created_at.isoformat(),
    }


def note_from_dict(data: dict[str, Any]) -> domain.Note:
    return domain.Note(
        id=data["id"],
        company_id=data["company_id"],
        content=data.get("content") or "",
        type=data.get("type") or "note",
        created_at=_datetime_from_str(data["created_at"]),
    )


def import_batch_to_dict(batch: domain.ImportBatch) -> dict[str, Any]:
    return {
        "id": batch.id,
        "tag_name": batch.tag_name,
        "file_name": batch.file_name,
        "imported_at": batch.imported_at.isoformat(),
        "matched_count": batch.matched_count,
        "total_rows": batch.total_rows,
        "color": batch.color,
        "type": batch.type.value,
    }


def import_batch_from_dict(data: dict[str, Any]) -> domain.ImportBatch:
    return domain.ImportBatch(
        id=data["id"],
        tag_name=data["tag_name"],
        file_name=data.get("file_name") or "",
        imported_at=_datetime_from_str(data["imported_at"]),
        matched_count=int(data.get("matched_count") or 0),
        total_rows=int(data.get("total_rows") or 0),
        color=data.get("color") or "blue",
        type=domain.ImportType(data.get("type") or "general"),
    )


def snapshot_to_dict(snapshot: domain.Snapshot) -> dict[str, Any]:
    """Convert the whole local cache to one JSON document."""
    return {
        "companies": [company_to_dict(c) for c in snapshot.companies],
        "notes": [note_to_dict(n) for n in snapshot.notes],
        "tasks": [dict(t) for t in snapshot.tasks],
        "cadences": [dict(c) for c in snapshot.cadences],
        "import_batches": [import_batch_to_dict(b) for b in snapshot.import_batches],
    }


def snapshot_from_dict(data: dict[str, Any]) -> domain.Snapshot:
    """Convert a stored JSON document back to a Snapshot."""
    return domain.Snapshot(
        companies=[company_from_dict(c) for c in data.get("companies") or ()],
        notes=[note_from_dict(n) for n in data.get("notes") or ()],
        tasks=[dict(t) for t in data.get("tasks") or ()],
        cadences=[dict(c) for c in data.get("cadences") or ()],
        import_batches=[import_batch_from_dict(b) for b in data.get("import_batches") or ()],
    )


def encode_payload(
    entity_type: domain.SyncEntityType, action: domain.SyncAction, payload: Any
) -> Any:
    """Convert a queue payload (domain objects) to its JSON form.

    Payload shapes by action:
    - delete: the entity id (str)
    - bulk_create: a list of entities
    - create/update: one entity (tasks and cadences are plain mappings)
    """
    if action is domain.SyncAction.DELETE:
        return str(payload)
    if action is domain.SyncAction.BULK_CREATE:
        return [encode_payload(entity_type, domain.SyncAction.CREATE, p) for p in payload]

    if entity_type is domain.SyncEntityType.COMPANY:
        return company_to_dict(payload)
    if entity_type is domain.SyncEntityType.NOTE:
        return note_to_dict(payload)
    if entity_type is domain.SyncEntityType.IMPORT_BATCH:
        return import_batch_to_dict(payload)
    return dict(payload)


def decode_payload(
    entity_type: domain.SyncEntityType, action: domain.SyncAction, data: Any
) -> Any:
    """Convert a stored queue payload back to domain objects."""
    if action is domain.SyncAction.DELETE:
        return data
    if action is domain.SyncAction.BULK_CREATE:
        return [decode_payload(entity_type, domain.SyncAction.CREATE, d) for d in data]

    if entity_type is domain.SyncEntityType.COMPANY:
        return company_from_dict(data)
    if entity_type is domain.SyncEntityType.NOTE:
        return note_from_dict(data)
    if entity_type is domain.SyncEntityType.IMPORT_BATCH:
        return import_batch_from_dict(data)
    return dict(data)


def sync_item_to_domain(orm_entry: ORMSyncQueueEntry) -> domain.SyncItem:
    """Convert SQLAlchemy SyncQueueEntry model to domain SyncItem entity."""
    entity_type = domain.SyncEntityType(orm_entry.entity_type)
    action = domain.SyncAction(orm_entry.action)
    return domain.SyncItem(
        seq=orm_entry.seq,
        item_id=orm_entry.item_id,
        entity_type=entity_type,
        action=action,
        payload=decode_payload(entity_type, action, orm_entry.payload),
        enqueued_at=_as_utc(orm_entry.enqueued_at),
        status=domain.SyncStatus(orm_entry.status),
        attempts=orm_entry.attempts,
        last_error=orm_entry.last_error,
    )
