"""Rebuild the local cache from the remote store."""

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, UTC
from typing import Any, Optional

from crmsync.database.base import Database
from crmsync.domain.entities import Company, DelinquencyRecord, Purchase, Snapshot
from crmsync.domain.identity import derive_company_id, generate_id, normalize_tax_id
from crmsync.domain.merge import (
    DELINQUENT_TAG,
    delinquency_exists,
    purchase_exists,
    union_tags,
    with_purchase_summary,
)
from crmsync.remote.base import RemoteStore, RemoteStoreError
from crmsync.remote.schema import (
    DELINQUENCY_SHEET,
    LEADS_SHEET,
    SALES_SHEET,
    cell_amount,
    cell_date,
    company_from_sheet_row,
    import_batch_from_sheet_row,
    lead_from_sheet_row,
    lead_sheet_to_objects,
    note_from_sheet_row,
    purchase_from_record,
    sheet_to_objects,
)

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(days=180)

DELINQUENCY_SHEET_ORIGIN = "Delinquency sheet"
NEW_FROM_DELINQUENCY_TAG = "NEW_FROM_DELINQUENCY"

SHEET_RANGES = {
    "companies": "companies!A:ZZ",
    "notes": "notes!A:Z",
    "tasks": "tasks!A:Z",
    "cadences": "cadences!A:Z",
    "databases": "databases!A:Z",
}


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class SalesIndex:
    """Purchases from the sales sheet, keyed by tax id and by client code."""

    def __init__(self, rows: list[dict[str, Any]], today: date):
        self.by_tax_id: dict[str, list[Purchase]] = {}
        self.by_code: dict[str, list[Purchase]] = {}
        for row in rows:
            purchase = purchase_from_record(row, today)
            tax_id = normalize_tax_id(_text(row.get("cnpj") or row.get("cpf_cnpj")))
            code = _text(row.get("codcliente") or row.get("cod"))
            if tax_id:
                self.by_tax_id.setdefault(tax_id, []).append(purchase)
            if code:
                self.by_code.setdefault(code, []).append(purchase)

    def purchases_for(self, company: Company) -> list[Purchase]:
        tax_id = normalize_tax_id(company.tax_id)
        return self.by_tax_id.get(tax_id) or self.by_code.get(company.client_code) or []


def fold_sales(company: Company, sales: list[Purchase]) -> Company:
    """Add sales sheet purchases to a company's history.

    Purchases already recorded are skipped. The summary fields follow the
    newest purchase, and so does the representative when the sale names a
    seller.
    """
    purchases = list(company.purchases)
    for purchase in sales:
        if not purchase_exists(purchases, purchase):
            purchases.append(purchase)
    purchases.sort(key=lambda p: p.date, reverse=True)

    company = with_purchase_summary(replace(company, purchases=tuple(purchases)))
    if purchases and purchases[0].seller_name:
        company = replace(company, representative=purchases[0].seller_name)
    return company


def is_active(company: Company, today: date) -> bool:
    """A company is active if it bought within the last 180 days.

    Without a last purchase the stored flag stands.
    """
    if company.last_purchase_date is None:
        return company.is_active
    return today - company.last_purchase_date <= ACTIVE_WINDOW


def fold_delinquencies(
    companies: list[Company], rows: list[dict[str, Any]], today: date
) -> list[Company]:
    """Fold delinquency sheet rows into companies.

    A row matches a company by normalized tax id, then by client code. The
    matched company gets the delinquent tag and the record, unless a record
    with the same date and value is already there. An unmatched row with a
    name becomes a new inactive company; later rows with its tax id land on
    it.
    """
    companies = list(companies)
    known_ids = {c.id for c in companies}
    by_tax_id = {}
    for i, company in enumerate(companies):
        tax_id = normalize_tax_id(company.tax_id)
        if tax_id:
            by_tax_id[tax_id] = i

    for row in rows:
        raw_tax_id = _text(row.get("cnpj"))
        tax_id = normalize_tax_id(raw_tax_id)
        code = _text(row.get("cod"))
        record = DelinquencyRecord(
            id=generate_id(),
            date=cell_date(row.get("data")) or today,
            value=cell_amount(row.get("valor")),
            origin=DELINQUENCY_SHEET_ORIGIN,
        )

        index = by_tax_id.get(tax_id) if tax_id else None
        if index is None and code:
            index = next((i for i, c in enumerate(companies) if c.client_code == code), None)

        if index is not None:
            company = companies[index]
            delinquencies = company.delinquencies
            if not delinquency_exists(delinquencies, record):
                delinquencies = (record, *delinquencies)
            companies[index] = replace(
                company,
                tags=union_tags(company.tags, DELINQUENT_TAG),
                delinquencies=delinquencies,
            )
            continue

        name = _text(row.get("nome"))
        if not name:
            logger.debug("Skipping delinquency row without match or name: %s", row)
            continue

        company_id = derive_company_id(tax_id, name)
        if company_id in known_ids:
            company_id = generate_id()
        companies.append(
            Company(
                id=company_id,
                name=name,
                client_code=code,
                is_active=False,
                type_code="J",
                tax_id=raw_tax_id,
                trade_name=name,
                city=_text(row.get("cidade")),
                state=_text(row.get("uf")),
                tags=(DELINQUENT_TAG, NEW_FROM_DELINQUENCY_TAG),
                delinquencies=(record,),
            )
        )
        known_ids.add(company_id)
        if tax_id:
            by_tax_id[tax_id] = len(companies) - 1
    return companies


def fold_leads(companies: list[Company], leads: list[Company]) -> list[Company]:
    """Merge leads into companies by id.

    A lead whose id is already present marks that company as a lead and
    updates its lead status and SDR. New leads go first, in sheet order.
    """
    companies = list(companies)
    positions = {c.id: i for i, c in enumerate(companies)}
    added: dict[str, Company] = {}
    for lead in leads:
        if lead.id in positions:
            i = positions[lead.id]
            companies[i] = replace(
                companies[i], is_lead=True, lead_status=lead.lead_status, sdr=lead.sdr
            )
        elif lead.id in added:
            added[lead.id] = replace(added[lead.id], lead_status=lead.lead_status, sdr=lead.sdr)
        else:
            added[lead.id] = lead
    return [*added.values(), *companies]


class RefreshService:
    """Service that replaces the local cache with the remote store's content."""

    def __init__(self, db: Database, remote: RemoteStore):
        self.db = db
        self.remote = remote

    def _read(self, range_name: str) -> list[dict[str, Any]]:
        return sheet_to_objects(self.remote.read_range(range_name))

    def _read_optional(self, range_name: str) -> list[list[Any]]:
        try:
            return self.remote.read_range(range_name)
        except RemoteStoreError as e:
            logger.warning("Sheet %s unavailable, skipping: %s", range_name, e)
            return []

    def fetch_all(self, now: Optional[datetime] = None) -> Snapshot:
        """Fetch every sheet and save the result as the local cache.

        The sales, delinquency and leads sheets are optional. Any of them
        that cannot be read is skipped and companies are built without it.

        Returns:
            The new snapshot, or the current local one if the remote store
            is unreachable and the local cache has companies

        Raises:
            RemoteStoreError: If the remote store fails and the local cache
                is empty
        """
        now = now or datetime.now(UTC)
        today = now.date()

        try:
            sheets = {name: self._read(range_name) for name, range_name in SHEET_RANGES.items()}
        except RemoteStoreError:
            local = self.db.load_snapshot()
            if local.companies:
                logger.warning("Remote fetch failed, using local cache", exc_info=True)
                return local
            raise

        sales_rows = sheet_to_objects(self._read_optional(f"{SALES_SHEET}!A:Z"))
        delinquency_rows = sheet_to_objects(self._read_optional(f"{DELINQUENCY_SHEET}!A:Z"))
        lead_rows = lead_sheet_to_objects(self._read_optional(f"{LEADS_SHEET}!A:Z"))

        sales = SalesIndex(sales_rows, today)
        companies = []
        for row in sheets["companies"]:
            company = company_from_sheet_row(row, today)
            company_sales = sales.purchases_for(company)
            if company_sales:
                company = fold_sales(company, company_sales)
            companies.append(replace(company, is_active=is_active(company, today)))

        companies = fold_delinquencies(companies, delinquency_rows, today)
        companies = fold_leads(companies, [lead_from_sheet_row(r) for r in lead_rows])

        snapshot = Snapshot(
            companies=companies,
            notes=[note_from_sheet_row(r, now) for r in sheets["notes"]],
            tasks=[r for r in sheets["tasks"] if _text(r.get("id"))],
            cadences=[r for r in sheets["cadences"] if _text(r.get("id"))],
            import_batches=[import_batch_from_sheet_row(r, now) for r in sheets["databases"]],
        )
        self.db.save_snapshot(snapshot)
        logger.info(
            "Refreshed local cache: %d companies, %d notes, %d sales rows",
            len(snapshot.companies),
            len(snapshot.notes),
            len(sales_rows),
        )
        return snapshot
