"""SQLAlchemy models for the crmsync local cache."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


class SnapshotRecord(Base):
    """Whole local cache stored as one JSON document per key."""

    __tablename__ = "snapshots"

    key = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class SyncQueueEntry(Base):
    """One queued mutation and its delivery state."""

    __tablename__ = "sync_queue"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    action = Column(String, nullable=False)
    payload = Column(JSON, nullable=True)
    enqueued_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    status = Column(String, nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    __table_args__ = (Index("ix_sync_queue_status_seq", "status", "seq"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
