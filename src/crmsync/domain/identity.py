"""Identity resolution for imported rows.

A company is matched by its tax identifier (CNPJ/CPF, digits only). Rows
that cannot be matched get a deterministic id so that importing the same
source twice, even after a restart, lands on the same company.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from crmsync.domain.entities import Company

MIN_TAX_ID_DIGITS = 11
STABLE_ID_PREFIX = "stable_"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_id() -> str:
    """Return a random id for records with no natural key (notes, purchases)."""
    return uuid.uuid4().hex[:12]


def normalize_tax_id(tax_id: Optional[str]) -> str:
    """Strip everything but digits from a tax identifier."""
    if not tax_id:
        return ""
    return re.sub(r"\D", "", tax_id)


def is_usable_tax_id(normalized: str) -> bool:
    """Return True if a normalized tax id is long enough to match on."""
    return len(normalized) >= MIN_TAX_ID_DIGITS


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def stable_hash(text: str) -> int:
    """Return the absolute value of a signed 32-bit polynomial hash of text.

    Computes ``h = h * 31 + u`` over the UTF-16 code units of
    ``text.strip().lower()`` with 32-bit wrap-around, then interprets the
    result as signed. Characters outside the Basic Multilingual Plane count
    as their two surrogate units. The function is pure, so ids derived from
    it are stable across processes and platforms.
    """
    h = 0
    data = text.strip().lower().encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def stable_id(text: str) -> str:
    """Derive a deterministic company id from a tax id or name.

    Raises:
        ValueError: If text is blank
    """
    if not text or not text.strip():
        raise ValueError("Cannot derive a stable id from empty text")
    return f"{STABLE_ID_PREFIX}{_to_base36(stable_hash(text))}"


class IdentityIndex:
    """Lookup of companies by normalized tax id and by id.

    One index is built per reconciliation batch and passed through it, so rows
    later in the batch see companies created by earlier rows.
    """

    def __init__(self, companies: Iterable[Company] = ()):
        self.by_tax_id: dict[str, Company] = {}
        self.by_id: dict[str, Company] = {}
        for company in companies:
            self.register(company)

    def register(self, company: Company) -> None:
        """Add or refresh a company in the index."""
        self.by_id[company.id] = company
        normalized = normalize_tax_id(company.tax_id)
        if is_usable_tax_id(normalized):
            self.by_tax_id[normalized] = company

    def get_by_tax_id(self, normalized: str) -> Optional[Company]:
        return self.by_tax_id.get(normalized)

    def get_by_id(self, company_id: str) -> Optional[Company]:
        return self.by_id.get(company_id)


def derive_company_id(tax_id: Optional[str], name: Optional[str]) -> str:
    """Return the deterministic id for a company not matched by tax id.

    The usable tax id seeds the hash when present, the name otherwise, so
    two companies sharing a name but not a tax id never collide.

    Raises:
        ValueError: If neither a usable tax id nor a name is given
    """
    normalized = normalize_tax_id(tax_id)
    if is_usable_tax_id(normalized):
        return stable_id(normalized)
    return stable_id(name or "")


@dataclass(frozen=True)
class IdentityResolution:
    """Outcome of resolving a row's identity."""

    id: str
    entity: Optional[Company]


def resolve_identity(
    tax_id: Optional[str], name: Optional[str], index: IdentityIndex
) -> Optional[IdentityResolution]:
    """Resolve a row to an existing company or to the id a new one would get.

    Args:
        tax_id: Raw tax identifier from the row, any punctuation
        name: Company name from the row
        index: Batch identity index

    Returns:
        Resolution with the matched entity (or None for a new company), or
        None if the row has neither a usable tax id nor a name
    """
    normalized = normalize_tax_id(tax_id)
    usable = is_usable_tax_id(normalized)
    clean_name = (name or "").strip()

    if not usable and not clean_name:
        return None

    if usable:
        entity = index.get_by_tax_id(normalized)
        if entity is not None:
            return IdentityResolution(id=entity.id, entity=entity)

    company_id = derive_company_id(normalized, clean_name)
    return IdentityResolution(id=company_id, entity=index.get_by_id(company_id))
