"""Merge engine: fold imported spreadsheet rows into canonical companies.

The engine is pure. It takes the current companies and notes plus the raw
rows of one batch, and returns the new state together with everything the
caller needs to persist and sync. Rows are processed in source order and a
row matching a company created earlier in the same batch sees that
company's merged state.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from crmsync.domain.classifier import batch_headers, classify_import
from crmsync.domain.entities import (
    Company,
    DelinquencyRecord,
    ImportType,
    Note,
    Purchase,
)
from crmsync.domain.identity import (
    IdentityIndex,
    derive_company_id,
    generate_id,
    resolve_identity,
)
from crmsync.utils.amount_parser import parse_amount
from crmsync.utils.date_parser import parse_date
from crmsync.utils.formatting import format_currency, format_date
from crmsync.utils.row_resolver import resolve_value

logger = logging.getLogger(__name__)

PROSPECTING_TAG = "PROSPECTING"
DELINQUENT_TAG = "DELINQUENT"

TYPE_TAGS = {
    ImportType.GENERAL: PROSPECTING_TAG,
    ImportType.DELINQUENCY: DELINQUENT_TAG,
}

VALUE_TOLERANCE = Decimal("0.01")

TAX_ID_COLUMNS = ("cnpj", "cpf_cpnj", "cpf_cnpj", "tax_id", "cpf", "cpf/cnpj")
NAME_COLUMNS = (
    "cliente",
    "nome",
    "razao_social",
    "razao social",
    "nome da empresa",
    "nome_fantasia",
    "fantasia",
    "name",
)
ORIGIN_TAG_COLUMNS = ("base", "origem", "campanha", "fonte", "lista")
OBSERVATION_COLUMNS = ("observacoes", "observações", "observacao", "obs")


@dataclass(frozen=True)
class ColumnRule:
    """How a company field is looked up in a row."""

    candidates: tuple[str, ...]
    exclude: tuple[str, ...] = ()
    exact_only: bool = False


# Contact fields that a later import may fill when blank
FILLABLE_FIELDS: dict[str, ColumnRule] = {
    "trade_name": ColumnRule(("nome_fantasia", "nome fantasia", "fantasia")),
    "email": ColumnRule(("email", "e-mail")),
    "phone": ColumnRule(("telefone", "fone", "fixo"), exclude=("celular",)),
    "mobile": ColumnRule(("celular", "whatsapp", "mobile")),
    "address": ColumnRule(("endereco", "endereço", "logradouro")),
    "neighborhood": ColumnRule(("bairro", "distrito")),
    "city": ColumnRule(("cidade", "municipio", "município"), exclude=("cod",)),
    "state": ColumnRule(("uf", "estado"), exact_only=True),
    "zip_code": ColumnRule(("cep",)),
    "representative": ColumnRule(
        ("vendedor", "representante", "responsavel", "responsável", "consultor"),
        exclude=("legal", "socio", "sócio", "cod"),
    ),
}

# Fields only set when a company is created from a row
CREATE_ONLY_FIELDS: dict[str, ColumnRule] = {
    "client_code": ColumnRule(("codcliente", "cod_cliente", "codigo", "código"), exact_only=True),
    "type_code": ColumnRule(("tipo",), exact_only=True),
    "state_registration": ColumnRule(
        ("ie", "inscricao estadual", "inscrição estadual"), exact_only=True
    ),
    "ibge": ColumnRule(("ibge",), exact_only=True),
    "city_code": ColumnRule(("codcidade", "cod cidade"), exact_only=True),
    "fax": ColumnRule(("fax",), exact_only=True),
    "region": ColumnRule(("regiao", "região"), exact_only=True),
}

BIRTH_DATE_RULE = ColumnRule(("nascimento", "data nascimento", "data_nascimento"))

SALES_COLUMNS: dict[str, tuple[str, ...]] = {
    "order_id": ("pedido", "order_id", "id_venda"),
    "date": ("data", "emissao", "emissão", "data pedido", "data_pedido"),
    "value": ("valor", "valor total", "valor_total", "total"),
    "status": ("status",),
    "seller_code": ("codvendedor", "id_rep"),
    "seller_name": ("vendedor", "representante"),
    "operation": ("operacao", "operação"),
    "invoice": ("nf", "nota_fiscal", "nota fiscal"),
    "payment_term": ("condicaopagto", "pagamento"),
    "items_count": ("pecas", "peças", "qtd"),
    "discount": ("desconto",),
    "ipi": ("ipi",),
    "freight": ("frete",),
    "freight_type": ("tipo frete", "tipo_frete"),
    "carrier": ("transportadora",),
}

DELINQUENCY_COLUMNS: dict[str, tuple[str, ...]] = {
    "date": ("vencimento", "data vencimento", "data_vencimento", "data"),
    "value": ("valor", "saldo", "valor em aberto"),
}


@dataclass(frozen=True)
class ParsedRow:
    """Typed view of one raw row."""

    tax_id: Optional[str]
    name: Optional[str]
    fields: Mapping[str, str]
    birth_date: Optional[date] = None
    origin_tag: Optional[str] = None
    observation: Optional[str] = None
    purchase: Optional[Purchase] = None
    delinquency: Optional[DelinquencyRecord] = None


@dataclass
class BatchContext:
    """State shared by every row of one reconciliation batch.

    ``merged`` is the running map from company id to its latest merged state,
    so several rows hitting the same company fold together instead of the
    last row winning.
    """

    tag_name: str
    import_type: ImportType
    file_name: str
    now: datetime
    index: IdentityIndex
    existing_notes: Sequence[Note] = ()
    merged: dict[str, Company] = field(default_factory=dict)
    created_ids: list[str] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    @property
    def today(self) -> date:
        return self.now.date()


@dataclass(frozen=True)
class MergeResult:
    """Outcome of reconciling one batch."""

    import_type: ImportType
    companies: list[Company]
    new_companies: list[Company]
    updated_companies: list[Company]
    notes: list[Note]
    matched_count: int
    total_rows: int


def _safe_amount(raw: Optional[str]) -> Decimal:
    if not raw:
        return Decimal("0")
    try:
        return parse_amount(raw)
    except ValueError:
        logger.debug("Unparseable amount %r treated as zero", raw)
        return Decimal("0")


def _safe_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return parse_date(raw)
    except ValueError:
        logger.debug("Unparseable date %r ignored", raw)
        return None


def _lookup(row: Mapping[str, str], rule: ColumnRule) -> Optional[str]:
    return resolve_value(row, rule.candidates, exclude=rule.exclude, exact_only=rule.exact_only)


def _exact(row: Mapping[str, str], candidates: tuple[str, ...]) -> str:
    return resolve_value(row, candidates, exact_only=True) or ""


def _parse_purchase(row: Mapping[str, str], today: date) -> Optional[Purchase]:
    order_id = _exact(row, SALES_COLUMNS["order_id"])
    if not order_id:
        return None
    return Purchase(
        id=generate_id(),
        order_id=order_id,
        date=_safe_date(_exact(row, SALES_COLUMNS["date"])) or today,
        value=_safe_amount(_exact(row, SALES_COLUMNS["value"])),
        status=_exact(row, SALES_COLUMNS["status"]) or "Completed",
        seller_code=_exact(row, SALES_COLUMNS["seller_code"]),
        seller_name=_exact(row, SALES_COLUMNS["seller_name"]),
        operation=_exact(row, SALES_COLUMNS["operation"]) or "Sale",
        invoice=_exact(row, SALES_COLUMNS["invoice"]),
        payment_term=_exact(row, SALES_COLUMNS["payment_term"]),
        items_count=_safe_amount(_exact(row, SALES_COLUMNS["items_count"])),
        discount=_safe_amount(_exact(row, SALES_COLUMNS["discount"])),
        ipi=_safe_amount(_exact(row, SALES_COLUMNS["ipi"])),
        freight=_safe_amount(_exact(row, SALES_COLUMNS["freight"])),
        freight_type=_exact(row, SALES_COLUMNS["freight_type"]),
        carrier=_exact(row, SALES_COLUMNS["carrier"]),
    )


def _parse_delinquency(
    row: Mapping[str, str], file_name: str, today: date
) -> Optional[DelinquencyRecord]:
    value = _safe_amount(_exact(row, DELINQUENCY_COLUMNS["value"]))
    if value <= 0:
        return None
    return DelinquencyRecord(
        id=generate_id(),
        date=_safe_date(_exact(row, DELINQUENCY_COLUMNS["date"])) or today,
        value=value,
        status="pending",
        origin=file_name,
    )


def parse_row(
    row: Mapping[str, str], import_type: ImportType, file_name: str, today: date
) -> ParsedRow:
    """Extract identity, contact fields and history records from a raw row.

    Malformed dates and amounts never abort the row: amounts degrade to zero
    and dates to None (history records fall back to ``today``).
    """
    fields = {}
    for name, rule in {**FILLABLE_FIELDS, **CREATE_ONLY_FIELDS}.items():
        value = _lookup(row, rule)
        if value:
            fields[name] = value

    origin = resolve_value(row, ORIGIN_TAG_COLUMNS)

    return ParsedRow(
        tax_id=resolve_value(row, TAX_ID_COLUMNS),
        name=resolve_value(row, NAME_COLUMNS, exact_only=True),
        fields=fields,
        birth_date=_safe_date(_lookup(row, BIRTH_DATE_RULE)),
        origin_tag=origin.upper() if origin else None,
        observation=resolve_value(row, OBSERVATION_COLUMNS),
        purchase=_parse_purchase(row, today) if import_type is ImportType.SALES else None,
        delinquency=(
            _parse_delinquency(row, file_name, today)
            if import_type is ImportType.DELINQUENCY
            else None
        ),
    )


def union_tags(existing: Iterable[str], *extra: Optional[str]) -> tuple[str, ...]:
    """Union tags, keeping first-seen order and dropping blanks."""
    merged: dict[str, None] = {}
    for tag in (*existing, *extra):
        if tag and tag.strip():
            merged.setdefault(tag.strip().upper(), None)
    return tuple(merged)


def purchase_exists(purchases: Iterable[Purchase], candidate: Purchase) -> bool:
    """Return True if candidate duplicates a recorded purchase.

    Purchases with order ids are compared by order id. When either side lacks
    one, same day and value within 0.01 counts as a duplicate.
    """
    for purchase in purchases:
        if purchase.order_id and candidate.order_id:
            if purchase.order_id == candidate.order_id:
                return True
            continue
        if (
            purchase.date == candidate.date
            and abs(purchase.value - candidate.value) < VALUE_TOLERANCE
        ):
            return True
    return False


def delinquency_exists(
    records: Iterable[DelinquencyRecord], candidate: DelinquencyRecord
) -> bool:
    """Return True if a record with the same date and value (within 0.01) exists."""
    return any(
        record.date == candidate.date and abs(record.value - candidate.value) < VALUE_TOLERANCE
        for record in records
    )


def with_purchase_summary(company: Company) -> Company:
    """Recompute last purchase date/value from the purchase history.

    The summary only moves forward: a recorded last purchase newer than
    anything in the history (e.g. taken from the ULTIMACOMPRA column) is
    kept. Companies without structured history keep whatever summary they
    carry.
    """
    if not company.purchases:
        return company
    newest = max(company.purchases, key=lambda p: p.date)
    if company.last_purchase_date and company.last_purchase_date > newest.date:
        return company
    return replace(
        company, last_purchase_date=newest.date, last_purchase_value=newest.value
    )


def _alert_note(company_id: str, record: DelinquencyRecord, context: BatchContext) -> Note:
    content = (
        "DELINQUENCY RECORD\n"
        f"Value: {format_currency(record.value)}\n"
        f"Due date: {format_date(record.date)}\n"
        f"Source: {record.origin}"
    )
    return Note(
        id=generate_id(), company_id=company_id, content=content, created_at=context.now
    )


def _observation_recorded(company_id: str, text: str, context: BatchContext) -> bool:
    for note in (*context.existing_notes, *context.notes):
        if note.company_id == company_id and text in note.content:
            return True
    return False


def _observation_note(company_id: str, text: str, context: BatchContext) -> Note:
    return Note(
        id=generate_id(),
        company_id=company_id,
        content=f"IMPORTED OBSERVATION\n{text}",
        created_at=context.now,
    )


def _batch_tags(parsed: ParsedRow, context: BatchContext) -> tuple[Optional[str], ...]:
    return (
        context.tag_name.upper() if context.tag_name else None,
        parsed.origin_tag,
        TYPE_TAGS.get(context.import_type),
    )


def _update(existing: Company, parsed: ParsedRow, context: BatchContext) -> Company:
    base = context.merged.get(existing.id, existing)

    purchases = base.purchases
    if parsed.purchase is not None and not purchase_exists(purchases, parsed.purchase):
        purchases = (parsed.purchase, *purchases)

    delinquencies = base.delinquencies
    if parsed.delinquency is not None and not delinquency_exists(
        delinquencies, parsed.delinquency
    ):
        delinquencies = (parsed.delinquency, *delinquencies)
        context.notes.append(_alert_note(base.id, parsed.delinquency, context))

    if parsed.observation and not _observation_recorded(base.id, parsed.observation, context):
        context.notes.append(_observation_note(base.id, parsed.observation, context))

    # Imports never overwrite a populated field
    filled = {}
    if not base.name and parsed.name:
        filled["name"] = parsed.name
    for name in FILLABLE_FIELDS:
        if not getattr(base, name) and parsed.fields.get(name):
            filled[name] = parsed.fields[name]

    merged = replace(
        base,
        **filled,
        tags=union_tags(base.tags, *_batch_tags(parsed, context)),
        purchases=purchases,
        delinquencies=delinquencies,
    )
    return with_purchase_summary(merged)


def _create(parsed: ParsedRow, context: BatchContext) -> Company:
    company_id = derive_company_id(parsed.tax_id, parsed.name)
    purchases = (parsed.purchase,) if parsed.purchase is not None else ()
    delinquencies = (parsed.delinquency,) if parsed.delinquency is not None else ()

    if parsed.delinquency is not None:
        context.notes.append(_alert_note(company_id, parsed.delinquency, context))
    if parsed.observation:
        context.notes.append(_observation_note(company_id, parsed.observation, context))

    fields = parsed.fields
    company = Company(
        id=company_id,
        name=parsed.name or "",
        client_code=fields.get("client_code", ""),
        is_active=True,
        type_code=fields.get("type_code", "J"),
        tax_id=parsed.tax_id or "",
        state_registration=fields.get("state_registration", ""),
        trade_name=fields.get("trade_name") or parsed.name or "",
        address=fields.get("address", ""),
        neighborhood=fields.get("neighborhood", ""),
        zip_code=fields.get("zip_code", ""),
        ibge=fields.get("ibge", ""),
        city_code=fields.get("city_code", ""),
        city=fields.get("city", ""),
        state=fields.get("state", ""),
        phone=fields.get("phone", ""),
        mobile=fields.get("mobile", ""),
        fax=fields.get("fax", ""),
        email=fields.get("email", ""),
        birth_date=parsed.birth_date,
        region=fields.get("region", ""),
        representative=fields.get("representative", ""),
        tags=union_tags((), *_batch_tags(parsed, context), PROSPECTING_TAG),
        purchases=purchases,
        delinquencies=delinquencies,
    )
    return with_purchase_summary(company)


def merge_row(
    existing: Optional[Company], parsed: ParsedRow, context: BatchContext
) -> Optional[Company]:
    """Merge one parsed row into an existing company, or create a new one.

    Update path: tags are unioned, new purchases and delinquencies are
    prepended unless duplicated, and blank contact fields are filled. Create
    path: a company is built from the row (a name is required) and
    registered in the batch index right away.

    Args:
        existing: Matched company, or None when nothing matched
        parsed: Parsed row
        context: Batch context, updated in place

    Returns:
        Merged or created company, or None if the row cannot create one
    """
    if existing is not None:
        company = _update(existing, parsed, context)
    else:
        if not parsed.name:
            return None
        company = _create(parsed, context)
        context.created_ids.append(company.id)

    context.merged[company.id] = company
    context.index.register(company)
    return company


def reconcile_rows(
    companies: Sequence[Company],
    rows: Sequence[Mapping[str, str]],
    tag_name: str,
    file_name: str,
    declared_type: Optional[ImportType | str] = None,
    existing_notes: Sequence[Note] = (),
    now: Optional[datetime] = None,
) -> MergeResult:
    """Reconcile one batch of rows against the current companies.

    Args:
        companies: Current company collection
        rows: Raw rows with lower-cased column names, in source order
        tag_name: Source tag applied to every touched company
        file_name: Originating file name
        declared_type: Import type pinned by the caller, if any
        existing_notes: Notes already recorded, used to skip repeated observations
        now: Batch timestamp (defaults to the current UTC time)

    Returns:
        Merge result with the full updated collection, new companies,
        updated companies, new notes and match counts
    """
    import_type = classify_import(batch_headers(rows), declared_type)
    context = BatchContext(
        tag_name=tag_name,
        import_type=import_type,
        file_name=file_name,
        now=now or datetime.now(UTC),
        index=IdentityIndex(companies),
        existing_notes=existing_notes,
    )

    matched_count = 0
    for row_num, row in enumerate(rows, start=1):
        parsed = parse_row(row, import_type, file_name, context.today)
        resolution = resolve_identity(parsed.tax_id, parsed.name, context.index)
        if resolution is None:
            logger.debug("Row %d skipped: no usable tax id and no name", row_num)
            continue

        if resolution.entity is not None:
            matched_count += 1
            merge_row(resolution.entity, parsed, context)
        elif merge_row(None, parsed, context) is None:
            logger.debug("Row %d skipped: unmatched tax id without a name", row_num)

    created = set(context.created_ids)
    all_companies = [context.merged.get(c.id, c) for c in companies]
    new_companies = [context.merged[company_id] for company_id in context.created_ids]
    updated = [c for company_id, c in context.merged.items() if company_id not in created]

    logger.info(
        "Reconciled %d rows as %s: %d matched, %d new, %d notes",
        len(rows),
        import_type.value,
        matched_count,
        len(new_companies),
        len(context.notes),
    )

    return MergeResult(
        import_type=import_type,
        companies=all_companies + new_companies,
        new_companies=new_companies,
        updated_companies=updated,
        notes=list(context.notes),
        matched_count=matched_count,
        total_rows=len(rows),
    )
