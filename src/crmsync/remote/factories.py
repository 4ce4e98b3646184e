"""Remote store factory functions."""

import os
from typing import Optional

from crmsync.remote.base import RemoteStoreError
from crmsync.remote.sheets import SheetsClient

SHEETS_ID_ENV = "CRMSYNC_SHEETS_ID"
SHEETS_TOKEN_ENV = "CRMSYNC_SHEETS_TOKEN"


def create_sheets_client(
    spreadsheet_id: Optional[str] = None, access_token: Optional[str] = None
) -> SheetsClient:
    """Create a Sheets client.

    Args:
        spreadsheet_id: Spreadsheet id. If None, read from CRMSYNC_SHEETS_ID
        access_token: OAuth access token. If None, read from CRMSYNC_SHEETS_TOKEN

    Raises:
        RemoteStoreError: If either setting is missing
    """
    spreadsheet_id = spreadsheet_id or os.environ.get(SHEETS_ID_ENV)
    access_token = access_token or os.environ.get(SHEETS_TOKEN_ENV)

    if not spreadsheet_id:
        raise RemoteStoreError(f"No spreadsheet configured (set {SHEETS_ID_ENV})")
    if not access_token:
        raise RemoteStoreError(f"No access token configured (set {SHEETS_TOKEN_ENV})")

    return SheetsClient(spreadsheet_id, access_token)
