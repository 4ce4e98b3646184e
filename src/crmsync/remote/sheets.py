"""Google Sheets v4 REST client.

Only the three value operations the sync layer needs are implemented. The
access token is supplied by the caller; acquiring or refreshing it is out of
scope.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from crmsync.remote.base import RemoteRateLimitError, RemoteStore, RemoteStoreError

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
VALUE_INPUT_OPTION = "USER_ENTERED"


class SheetsClient(RemoteStore):
    """RemoteStore backed by a Google spreadsheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        base_url: str = SHEETS_API_URL,
        logger: Optional[logging.Logger] = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)
        self._auth_headers = {"Authorization": f"Bearer {access_token}"}

    def _values_url(self, range_name: str, suffix: str = "") -> str:
        return f"{self.base_url}/{self.spreadsheet_id}/values/{quote(range_name, safe='!:')}{suffix}"

    def _request(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        try:
            response = self.session.request(
                method, url, headers=self._auth_headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise RemoteStoreError(f"Sheets request failed: {e}") from e

        if response.status_code == 429:
            raise RemoteRateLimitError("Sheets API rate limit exceeded")
        if response.status_code >= 400:
            self.logger.warning(
                "Sheets API error %s for %s %s: %s",
                response.status_code,
                method,
                url,
                response.text[:500],
            )
            raise RemoteStoreError(f"Sheets API returned status {response.status_code}")

        try:
            return response.json()
        except ValueError:
            return {}

    def read_range(self, range_name: str) -> list[list[Any]]:
        """Return the cell values of a range, one list per row."""
        data = self._request("GET", self._values_url(range_name))
        return data.get("values") or []

    def append_rows(self, sheet_name: str, rows: list[list[Any]]) -> None:
        """Append rows after the last populated row of a sheet."""
        if not rows:
            return
        self._request(
            "POST",
            self._values_url(sheet_name, ":append"),
            params={"valueInputOption": VALUE_INPUT_OPTION},
            json={"values": rows},
        )
        self.logger.debug("Appended %d rows to %s", len(rows), sheet_name)

    def update_row(self, range_name: str, row: list[Any]) -> None:
        """Overwrite one row starting at the given cell."""
        self._request(
            "PUT",
            self._values_url(range_name),
            params={"valueInputOption": VALUE_INPUT_OPTION},
            json={"values": [row]},
        )
        self.logger.debug("Updated %s", range_name)
