"""Remote tabular store for crmsync."""

from crmsync.remote.base import RemoteRateLimitError, RemoteStore, RemoteStoreError
from crmsync.remote.factories import create_sheets_client
from crmsync.remote.sheets import SheetsClient

__all__ = [
    "RemoteStore",
    "RemoteStoreError",
    "RemoteRateLimitError",
    "SheetsClient",
    "create_sheets_client",
]
