"""Shared pytest fixtures for crmsync tests."""

import tempfile
import logging
import os
from datetime import datetime, UTC
from pathlib import Path
import pytest
import requests

import crmsync.logging_config as logging_config
from crmsync.database.factories import create_sqlite_database
from crmsync.domain.company import CompanyService
from crmsync.domain.import_batch import ImportBatchService
from crmsync.domain.notes import NoteService
from crmsync.domain.reconciliation import ReconciliationService
from crmsync.domain.sync import SyncProcessor, SyncQueue
from crmsync.remote.base import RemoteStore, RemoteStoreError
from crmsync.remote.schema import HEADERS

FIXED_NOW = datetime(2024, 4, 1, 12, 0, tzinfo=UTC)


class FakeRemoteStore(RemoteStore):
    """In-memory spreadsheet. Every sheet starts with its header row."""

    def __init__(self, sheets=None):
        self.sheets = {name: [list(headers)] for name, headers in HEADERS.items()}
        if sheets:
            self.sheets.update(sheets)
        self.calls = []
        self.fail_reads = set()
        self.fail_appends = set()

    def _sheet(self, range_name):
        return range_name.split("!")[0]

    def read_range(self, range_name):
        self.calls.append(("read", range_name))
        sheet = self._sheet(range_name)
        if sheet in self.fail_reads or "*" in self.fail_reads:
            raise RemoteStoreError(f"cannot read {sheet}")
        if sheet not in self.sheets:
            raise RemoteStoreError(f"Unable to parse range: {range_name}")
        rows = self.sheets[sheet]
        if range_name.endswith("!A:A"):
            return [[row[0]] if row else [] for row in rows]
        return [list(row) for row in rows]

    def append_rows(self, sheet_name, rows):
        self.calls.append(("append", sheet_name, len(rows)))
        if sheet_name in self.fail_appends:
            raise RemoteStoreError(f"cannot append to {sheet_name}")
        self.sheets.setdefault(sheet_name, []).extend(list(r) for r in rows)

    def update_row(self, range_name, row):
        self.calls.append(("update", range_name))
        sheet, cell = range_name.split("!")
        row_number = int(cell.lstrip("A"))
        self.sheets[sheet][row_number - 1] = list(row)

    def data_rows(self, sheet_name):
        return self.sheets[sheet_name][1:]


class FakeResponse:
    def __init__(self, *, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data


class FakeSession:
    """Stand-in for requests.Session recording every request."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        self.calls.append(
            {"method": method, "url": url, "headers": headers, "params": params, "json": json}
        )
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse(json_data={})


async def no_sleep(seconds):
    return None


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by the CLI so captured streams are not reused."""
    yield
    logger = logging.getLogger("crmsync")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logging_config._LOGGING_CONFIGURED = False


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def queue(temp_db):
    """Create a SyncQueue without automatic draining."""
    return SyncQueue(temp_db)


@pytest.fixture
def remote():
    """Create an empty in-memory remote store."""
    return FakeRemoteStore()


@pytest.fixture
def processor(temp_db, remote):
    """Create a SyncProcessor that does not actually wait between calls."""
    return SyncProcessor(temp_db, remote, delay=0.3, sleep=no_sleep)


@pytest.fixture
def reconciliation_service(temp_db, queue):
    return ReconciliationService(temp_db, queue)


@pytest.fixture
def company_service(temp_db, queue):
    return CompanyService(temp_db, queue)


@pytest.fixture
def note_service(temp_db, queue):
    return NoteService(temp_db, queue)


@pytest.fixture
def batch_service(temp_db, queue):
    return ImportBatchService(temp_db, queue)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def http_error():
    return requests.ConnectionError("connection refused")


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a temporary file and return its path."""

    def _write(content, name="import.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write
