"""Company domain service."""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from crmsync.database.base import Database
from crmsync.domain.entities import Company, SyncAction, SyncEntityType
from crmsync.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    company_not_found,
    duplicate_company_id,
)
from crmsync.domain.identity import generate_id
from crmsync.domain.merge import union_tags, with_purchase_summary
from crmsync.domain.sync import SyncQueue

logger = logging.getLogger(__name__)

BULK_CHUNK_SIZE = 500


def enqueue_bulk_create(queue: SyncQueue, companies: list[Company]) -> list[int]:
    """Queue new companies as bulk_create items of at most BULK_CHUNK_SIZE each.

    Returns:
        Sequence numbers of the queued items
    """
    seqs = []
    for start in range(0, len(companies), BULK_CHUNK_SIZE):
        chunk = companies[start:start + BULK_CHUNK_SIZE]
        seqs.append(
            queue.enqueue(
                f"bulk_{generate_id()}", SyncEntityType.COMPANY, SyncAction.BULK_CREATE, chunk
            )
        )
    return seqs


class CompanyService:
    """Service for managing companies in the local cache."""

    def __init__(self, db: Database, queue: SyncQueue):
        """Initialize company service.

        Args:
            db: Database instance
            queue: Queue receiving the company mutations
        """
        self.db = db
        self.queue = queue

    def list_companies(self, tag: Optional[str] = None) -> list[Company]:
        """List companies, optionally only those carrying a tag.

        Args:
            tag: Tag to filter by (case-insensitive)

        Returns:
            List of company entities sorted by name
        """
        companies = self.db.load_snapshot().companies
        if tag:
            wanted = tag.strip().upper()
            companies = [c for c in companies if wanted in c.tags]
        return sorted(companies, key=lambda c: (c.name.lower(), c.id))

    def get_company(self, company_id: str) -> Optional[Company]:
        """Get company by ID, or None if not found."""
        for company in self.db.load_snapshot().companies:
            if company.id == company_id:
                return company
        return None

    def create_company(self, company: Company) -> Company:
        """Add a company created by hand.

        Raises:
            ValidationError: If the company has no name
            ConflictError: If the id is already taken
        """
        if not company.name.strip():
            raise ValidationError("Company name cannot be empty")

        snapshot = self.db.load_snapshot()
        if any(c.id == company.id for c in snapshot.companies):
            raise ConflictError(duplicate_company_id(company.id))

        company = with_purchase_summary(replace(company, tags=union_tags(company.tags)))
        snapshot.companies.append(company)
        self.db.save_snapshot(snapshot)
        self.queue.enqueue(company.id, SyncEntityType.COMPANY, SyncAction.CREATE, company)
        return company

    def update_company(self, company: Company) -> Company:
        """Replace a company's stored state.

        Raises:
            NotFoundError: If the company does not exist
        """
        snapshot = self.db.load_snapshot()
        for i, existing in enumerate(snapshot.companies):
            if existing.id == company.id:
                company = with_purchase_summary(replace(company, tags=union_tags(company.tags)))
                snapshot.companies[i] = company
                self.db.save_snapshot(snapshot)
                self.queue.enqueue(company.id, SyncEntityType.COMPANY, SyncAction.UPDATE, company)
                return company
        raise NotFoundError(company_not_found(company.id))

    def add_tags(self, company_id: str, *tags: str) -> Company:
        """Add tags to a company. Existing tags are kept."""
        company = self.get_company(company_id)
        if company is None:
            raise NotFoundError(company_not_found(company_id))
        return self.update_company(replace(company, tags=union_tags(company.tags, *tags)))

    def delete_companies(self, company_ids: Iterable[str]) -> int:
        """Delete companies by explicit user request.

        Notes attached to the companies are kept.

        Returns:
            Number of companies deleted

        Raises:
            NotFoundError: If any id is unknown (nothing is deleted)
        """
        ids = list(dict.fromkeys(company_ids))
        snapshot = self.db.load_snapshot()
        known = {c.id for c in snapshot.companies}
        for company_id in ids:
            if company_id not in known:
                raise NotFoundError(company_not_found(company_id))

        doomed = set(ids)
        snapshot.companies = [c for c in snapshot.companies if c.id not in doomed]
        self.db.save_snapshot(snapshot)
        for company_id in ids:
            self.queue.enqueue(company_id, SyncEntityType.COMPANY, SyncAction.DELETE, company_id)
        logger.info("Deleted %d companies", len(ids))
        return len(ids)

    def bulk_upsert(self, companies: Iterable[Company]) -> tuple[int, int]:
        """Insert or replace many companies with one cache write.

        New companies are queued as bulk creates, known ones as updates.

        Returns:
            Tuple of (created count, updated count)
        """
        snapshot = self.db.load_snapshot()
        positions = {c.id: i for i, c in enumerate(snapshot.companies)}

        created: list[Company] = []
        updated: list[Company] = []
        for company in companies:
            company = with_purchase_summary(company)
            if company.id in positions:
                snapshot.companies[positions[company.id]] = company
                updated.append(company)
            else:
                positions[company.id] = len(snapshot.companies)
                snapshot.companies.append(company)
                created.append(company)

        self.db.save_snapshot(snapshot)
        enqueue_bulk_create(self.queue, created)
        for company in updated:
            self.queue.enqueue(company.id, SyncEntityType.COMPANY, SyncAction.UPDATE, company)
        return len(created), len(updated)
