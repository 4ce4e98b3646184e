"""Domain model entities for crmsync.

These are pure data classes representing business concepts, independent of
how the local cache or the remote spreadsheet store lays them out. Updates
never mutate an entity in place: services build a new instance with
``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ImportType(str, Enum):
    """Kind of spreadsheet absorbed by an import batch."""

    GENERAL = "general"
    SALES = "sales"
    DELINQUENCY = "delinquency"


class SyncAction(str, Enum):
    """Mutation kinds carried by the sync queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_CREATE = "bulk_create"


class SyncEntityType(str, Enum):
    """Entity types the sync queue knows how to deliver."""

    COMPANY = "company"
    NOTE = "note"
    TASK = "task"
    CADENCE = "cadence"
    IMPORT_BATCH = "import_batch"


class SyncStatus(str, Enum):
    """Delivery state of a queued mutation."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DELIVERED = "delivered"
    FAILED = "failed"


BATCH_COLORS = ("slate", "blue", "green", "red", "orange", "purple", "pink", "teal")


@dataclass(frozen=True)
class Purchase:
    """One historical sale to a company."""

    id: str
    order_id: str
    date: date
    value: Decimal
    status: str = ""
    seller_code: str = ""
    seller_name: str = ""
    operation: str = ""
    invoice: str = ""
    payment_term: str = ""
    items_count: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    ipi: Decimal = Decimal("0")
    freight: Decimal = Decimal("0")
    freight_type: str = ""
    carrier: str = ""


@dataclass(frozen=True)
class DelinquencyRecord:
    """One outstanding (or settled) debt of a company."""

    id: str
    date: date
    value: Decimal
    status: str = "pending"
    origin: str = ""


@dataclass(frozen=True)
class Company:
    """Business account, the canonical unit of reconciliation."""

    id: str
    name: str = ""
    client_code: str = ""
    is_active: bool = True
    type_code: str = ""
    tax_id: str = ""
    state_registration: str = ""
    trade_name: str = ""
    address: str = ""
    neighborhood: str = ""
    zip_code: str = ""
    ibge: str = ""
    city_code: str = ""
    city: str = ""
    state: str = ""
    phone: str = ""
    mobile: str = ""
    fax: str = ""
    email: str = ""
    birth_date: Optional[date] = None
    last_purchase_date: Optional[date] = None
    last_purchase_value: Decimal = Decimal("0")
    region: str = ""
    representative: str = ""
    tags: tuple[str, ...] = ()
    purchases: tuple[Purchase, ...] = ()
    delinquencies: tuple[DelinquencyRecord, ...] = ()
    is_lead: bool = False
    lead_status: str = ""
    sdr: str = ""


@dataclass(frozen=True)
class Note:
    """Free-text note attached to a company."""

    id: str
    company_id: str
    content: str
    created_at: datetime
    type: str = "note"


@dataclass(frozen=True)
class ImportBatch:
    """Audit record of one import operation."""

    id: str
    tag_name: str
    file_name: str
    imported_at: datetime
    matched_count: int
    total_rows: int
    color: str
    type: ImportType


@dataclass(frozen=True)
class SyncItem:
    """Queued mutation waiting for (or done with) remote delivery."""

    seq: int
    item_id: str
    entity_type: SyncEntityType
    action: SyncAction
    payload: Any
    enqueued_at: datetime
    status: SyncStatus = SyncStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None


@dataclass
class Snapshot:
    """Whole local cache, loaded and saved as one blob.

    Tasks and cadences are kept as plain mappings: crmsync stores and syncs
    them but never interprets their fields.
    """

    companies: list[Company] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    tasks: list[dict[str, Any]] = field(default_factory=list)
    cadences: list[dict[str, Any]] = field(default_factory=list)
    import_batches: list[ImportBatch] = field(default_factory=list)
