"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from crmsync.database.sqlalchemy_db import SQLAlchemyDatabase

DB_PATH_ENV = "CRMSYNC_DB_PATH"


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks CRMSYNC_DB_PATH
            environment variable, then defaults to ~/.crmsync/crmsync.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get(DB_PATH_ENV)

    if database_path is None:
        db_dir = Path.home() / ".crmsync"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "crmsync.db")

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)
