"""Database layer for crmsync: local cache snapshot and durable sync queue."""

from crmsync.database.base import Database
from crmsync.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
