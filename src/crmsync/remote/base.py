"""Abstract remote tabular store interface."""

from abc import ABC, abstractmethod
from typing import Any


class RemoteStoreError(RuntimeError):
    """Base error for remote store failures."""


class RemoteRateLimitError(RemoteStoreError):
    """Raised when the remote store rejects a call for exceeding its quota."""


class RemoteStore(ABC):
    """Spreadsheet-like system of record.

    Ranges use A1 notation, e.g. ``companies!A:A`` or ``notes!A7``.
    """

    @abstractmethod
    def read_range(self, range_name: str) -> list[list[Any]]:
        """Return the cell values of a range, one list per row."""
        pass

    @abstractmethod
    def append_rows(self, sheet_name: str, rows: list[list[Any]]) -> None:
        """Append rows after the last populated row of a sheet."""
        pass

    @abstractmethod
    def update_row(self, range_name: str, row: list[Any]) -> None:
        """Overwrite one row starting at the given cell."""
        pass
