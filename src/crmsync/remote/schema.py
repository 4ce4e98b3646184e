"""Row layout of the remote spreadsheet and entity <-> row translation.

Every sheet keeps the entity id in column A. Header matching is
case-insensitive and ignores underscores, so ``companyId`` and
``company_id`` address the same column. Composite values (tag lists,
purchase history) travel as JSON in a single cell.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from crmsync.database.mappers import (
    delinquency_to_dict,
    import_batch_to_dict,
    note_to_dict,
    purchase_to_dict,
)
from crmsync.domain.entities import (
    Company,
    DelinquencyRecord,
    ImportBatch,
    ImportType,
    Note,
    Purchase,
    SyncEntityType,
)
from crmsync.domain.identity import generate_id, normalize_tax_id, stable_id
from crmsync.utils.amount_parser import parse_amount
from crmsync.utils.date_parser import parse_date

HEADERS: dict[str, list[str]] = {
    "companies": [
        "id",
        "CODIGO",
        "ATIVO",
        "TIPO",
        "CPF_CPNJ",
        "IE",
        "NOME",
        "FANTASIA",
        "ENDERECO",
        "BAIRRO",
        "CEP",
        "IBGE",
        "CODCIDADE",
        "CIDADE",
        "ESTADO",
        "TELEFONE",
        "CELULAR",
        "FAX",
        "EMAIL",
        "NASCIMENTO",
        "ULTIMACOMPRA",
        "VLRULTIMACOMPRA",
        "REGIAO",
        "representative",
        "tags",
        "purchases",
        "delinquencyHistory",
    ],
    "notes": ["id", "companyId", "content", "type", "createdAt"],
    "tasks": ["id", "companyId", "title", "dueDate", "isCompleted"],
    "cadences": ["id", "name", "description", "status", "items", "createdAt"],
    "databases": [
        "id",
        "tagName",
        "fileName",
        "importedAt",
        "matchedCount",
        "totalRows",
        "color",
        "type",
    ],
}

SHEETS: dict[SyncEntityType, str] = {
    SyncEntityType.COMPANY: "companies",
    SyncEntityType.NOTE: "notes",
    SyncEntityType.TASK: "tasks",
    SyncEntityType.CADENCE: "cadences",
    SyncEntityType.IMPORT_BATCH: "databases",
}

SALES_SHEET = "vendas"
DELINQUENCY_SHEET = "inad"
LEADS_SHEET = "leads"

# Column order of a leads sheet saved without its header row
LEAD_COLUMNS = ["id", "name", "cnpj", "phone", "leadStatus", "sdr", "createdAt", "notes"]
INBOUND_TAG = "INBOUND"

TRUTHY_CELLS = {"TRUE", "SIM", "S", "1"}


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("_", "")


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def object_to_row(obj: Mapping[str, Any], headers: Iterable[str]) -> list[Any]:
    """Lay out a mapping as one sheet row following headers.

    Missing fields become empty cells; lists and mappings become JSON text.
    """
    lookup = {_normalize_key(key): value for key, value in obj.items()}
    return [_cell(lookup.get(_normalize_key(header))) for header in headers]


def sheet_to_objects(values: list[list[Any]]) -> list[dict[str, Any]]:
    """Turn raw sheet values (header row first) into dicts keyed by lower-cased header.

    Cells that look like JSON arrays or objects are decoded; cells that fail
    to decode are kept as text.
    """
    if not values or len(values) < 2:
        return []

    headers = [str(h or "").strip().lower() for h in values[0]]
    objects = []
    for row in values[1:]:
        obj: dict[str, Any] = {}
        for i, header in enumerate(headers):
            if not header:
                continue
            value = row[i] if i < len(row) else ""
            if isinstance(value, str) and value.startswith(("[", "{")):
                try:
                    value = json.loads(value)
                except ValueError:
                    pass
            obj[header] = value
        objects.append(obj)
    return objects


def company_to_sheet_row(company: Company) -> dict[str, Any]:
    """Map a Company to the sheet's column names."""
    return {
        "id": company.id,
        "codigo": company.client_code,
        "ativo": company.is_active,
        "tipo": company.type_code,
        "cpf_cpnj": company.tax_id,
        "ie": company.state_registration,
        "nome": company.name,
        "fantasia": company.trade_name,
        "endereco": company.address,
        "bairro": company.neighborhood,
        "cep": company.zip_code,
        "ibge": company.ibge,
        "codcidade": company.city_code,
        "cidade": company.city,
        "estado": company.state,
        "telefone": company.phone,
        "celular": company.mobile,
        "fax": company.fax,
        "email": company.email,
        "nascimento": company.birth_date,
        "ultimacompra": company.last_purchase_date,
        "vlrultimacompra": company.last_purchase_value,
        "regiao": company.region,
        "representative": company.representative,
        "tags": list(company.tags),
        "purchases": [purchase_to_dict(p) for p in company.purchases],
        "delinquencyhistory": [delinquency_to_dict(d) for d in company.delinquencies],
    }


def entity_to_row(entity_type: SyncEntityType, payload: Any) -> list[Any]:
    """Translate one queue payload into a row for its sheet."""
    headers = HEADERS[SHEETS[entity_type]]
    if entity_type is SyncEntityType.COMPANY:
        return object_to_row(company_to_sheet_row(payload), headers)
    if entity_type is SyncEntityType.NOTE:
        return object_to_row(note_to_dict(payload), headers)
    if entity_type is SyncEntityType.IMPORT_BATCH:
        return object_to_row(import_batch_to_dict(payload), headers)
    return object_to_row(payload, headers)


# Reading rows back --------------------------------------------------------


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _pick(obj: Mapping[str, Any], *keys: str) -> Any:
    lookup = {_normalize_key(k): v for k, v in obj.items()}
    for key in keys:
        value = lookup.get(_normalize_key(key))
        if value not in (None, ""):
            return value
    return None


def cell_date(value: Any) -> Optional[date]:
    """Parse a date cell, returning None for blank or unparseable cells."""
    text = _text(value)
    if not text:
        return None
    try:
        return parse_date(text)
    except ValueError:
        return None


def cell_amount(value: Any) -> Decimal:
    """Parse a monetary cell, returning zero for blank or unparseable cells."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decimal(str(value))
    text = _text(value)
    if not text:
        return Decimal("0")
    try:
        return parse_amount(text)
    except ValueError:
        return Decimal("0")


def cell_bool(value: Any) -> bool:
    """Interpret TRUE/SIM/S/1 (any case) as true."""
    if isinstance(value, bool):
        return value
    return _text(value).upper() in TRUTHY_CELLS


def _as_list(value: Any, split_text: bool = False) -> list[Any]:
    if isinstance(value, list):
        return value
    if split_text and isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def purchase_from_record(record: Mapping[str, Any], today: date) -> Purchase:
    """Build a Purchase from a JSON history entry or a sales sheet row."""
    return Purchase(
        id=_text(_pick(record, "id")) or generate_id(),
        order_id=_text(_pick(record, "order_id", "pedido")),
        date=cell_date(_pick(record, "date", "data")) or today,
        value=cell_amount(_pick(record, "value", "valor")),
        status=_text(_pick(record, "status")) or "Completed",
        seller_code=_text(_pick(record, "seller_code", "codvendedor")),
        seller_name=_text(_pick(record, "seller_name", "vendedor")),
        operation=_text(_pick(record, "operation", "operacao")) or "Sale",
        invoice=_text(_pick(record, "invoice", "nf", "nota")),
        payment_term=_text(_pick(record, "payment_term", "condicaopagto")),
        items_count=cell_amount(_pick(record, "items_count", "pecas")),
        discount=cell_amount(_pick(record, "discount", "desconto")),
        ipi=cell_amount(_pick(record, "ipi")),
        freight=cell_amount(_pick(record, "freight", "frete")),
        freight_type=_text(_pick(record, "freight_type", "tipo frete", "tipofrete")),
        carrier=_text(_pick(record, "carrier", "transportadora")),
    )


def delinquency_from_record(record: Mapping[str, Any], today: date) -> DelinquencyRecord:
    return DelinquencyRecord(
        id=_text(_pick(record, "id")) or generate_id(),
        date=cell_date(_pick(record, "date", "data")) or today,
        value=cell_amount(_pick(record, "value", "valor")),
        status=_text(_pick(record, "status")) or "pending",
        origin=_text(_pick(record, "origin")),
    )


def company_from_sheet_row(row: Mapping[str, Any], today: date) -> Company:
    """Build a Company from a decoded ``companies`` sheet row.

    Rows saved without an id get a stable id seeded by tax id, client code
    or name, in that order. The activity flag is taken from the ATIVO cell
    here; callers recompute it from purchase recency.
    """
    tax_id = _text(_pick(row, "cpf_cpnj", "cnpj"))
    client_code = _text(_pick(row, "codigo", "clientcode"))
    name = _text(_pick(row, "nome", "name"))

    company_id = _text(_pick(row, "id"))
    if not company_id:
        seed = normalize_tax_id(tax_id) or client_code or name
        company_id = stable_id(seed) if seed else generate_id()

    return Company(
        id=company_id,
        name=name,
        client_code=client_code,
        is_active=cell_bool(_pick(row, "ativo")),
        type_code=_text(_pick(row, "tipo")),
        tax_id=tax_id,
        state_registration=_text(_pick(row, "ie")),
        trade_name=_text(_pick(row, "fantasia", "fantasyname")),
        address=_text(_pick(row, "endereco", "address")),
        neighborhood=_text(_pick(row, "bairro", "neighborhood")),
        zip_code=_text(_pick(row, "cep", "zip")),
        ibge=_text(_pick(row, "ibge")),
        city_code=_text(_pick(row, "codcidade", "citycode")),
        city=_text(_pick(row, "cidade", "city")),
        state=_text(_pick(row, "estado", "state")),
        phone=_text(_pick(row, "telefone", "phone")),
        mobile=_text(_pick(row, "celular", "mobile")),
        fax=_text(_pick(row, "fax")),
        email=_text(_pick(row, "email")),
        birth_date=cell_date(_pick(row, "nascimento", "birthdate")),
        last_purchase_date=cell_date(_pick(row, "ultimacompra", "lastpurchasedate")),
        last_purchase_value=cell_amount(_pick(row, "vlrultimacompra", "lastpurchasevalue")),
        region=_text(_pick(row, "regiao", "region")),
        representative=_text(_pick(row, "representative", "vendedor")),
        tags=tuple(
            str(t).strip().upper()
            for t in _as_list(_pick(row, "tags"), split_text=True)
            if str(t).strip()
        ),
        purchases=tuple(
            purchase_from_record(p, today)
            for p in _as_list(_pick(row, "purchases"))
            if isinstance(p, Mapping)
        ),
        delinquencies=tuple(
            delinquency_from_record(d, today)
            for d in _as_list(_pick(row, "delinquencyhistory"))
            if isinstance(d, Mapping)
        ),
    )


def note_from_sheet_row(row: Mapping[str, Any], now: datetime) -> Note:
    created = _text(_pick(row, "createdat"))
    try:
        created_at = datetime.fromisoformat(created.replace("Z", "+00:00")) if created else now
    except ValueError:
        created_at = now
    return Note(
        id=_text(_pick(row, "id")) or generate_id(),
        company_id=_text(_pick(row, "companyid")),
        content=_text(_pick(row, "content")),
        type=_text(_pick(row, "type")) or "note",
        created_at=created_at,
    )


def import_batch_from_sheet_row(row: Mapping[str, Any], now: datetime) -> ImportBatch:
    imported = _text(_pick(row, "importedat"))
    try:
        imported_at = datetime.fromisoformat(imported.replace("Z", "+00:00")) if imported else now
    except ValueError:
        imported_at = now
    raw_type = _text(_pick(row, "type")).lower()
    return ImportBatch(
        id=_text(_pick(row, "id")) or generate_id(),
        tag_name=_text(_pick(row, "tagname")),
        file_name=_text(_pick(row, "filename")),
        imported_at=imported_at,
        matched_count=int(cell_amount(_pick(row, "matchedcount"))),
        total_rows=int(cell_amount(_pick(row, "totalrows"))),
        color=_text(_pick(row, "color")) or "blue",
        type=ImportType(raw_type) if raw_type in {t.value for t in ImportType} else ImportType.GENERAL,
    )


def lead_sheet_to_objects(values: list[list[Any]]) -> list[dict[str, Any]]:
    """Decode the leads sheet, which may have been saved without a header row.

    Without an ``id`` header the columns are read in LEAD_COLUMNS order.
    """
    if not values:
        return []
    first = values[0]
    if first and _text(first[0]).lower() == "id":
        return sheet_to_objects(values)
    headers = [h.lower() for h in LEAD_COLUMNS]
    return [
        {header: row[i] if i < len(row) else "" for i, header in enumerate(headers)}
        for row in values
        if row
    ]


def lead_from_sheet_row(row: Mapping[str, Any]) -> Company:
    """Build a lead Company from a decoded ``leads`` sheet row.

    Rows without an id get a stable id seeded by tax id or name.
    """
    tax_id = _text(_pick(row, "cnpj"))
    name = _text(_pick(row, "name"))
    phone = _text(_pick(row, "phone"))

    company_id = _text(_pick(row, "id"))
    if not company_id:
        seed = tax_id or name
        company_id = stable_id(seed) if seed else generate_id()

    return Company(
        id=company_id,
        name=name or "Unnamed lead",
        is_active=True,
        type_code="L",
        tax_id=tax_id,
        trade_name=name,
        phone=phone,
        mobile=phone,
        tags=(INBOUND_TAG,),
        is_lead=True,
        lead_status=_text(_pick(row, "leadstatus")) or "New",
        sdr=_text(_pick(row, "sdr")),
    )
