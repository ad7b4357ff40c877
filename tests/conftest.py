"""
Common test fixtures and configuration.

Fixtures here keep tests independent of the real datastore:
- staging files go to a per-test temporary directory
- the process-wide registries and default retry handler are reset
- RecordingConnection stands in for a provisioned connection
"""
import csv
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

# Add src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ckload.connections import Connection, DriverKind  # noqa: E402
from ckload.connections.registry import reset_registries  # noqa: E402
from ckload.connections.retry_handler import set_retry_handler  # noqa: E402


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
    yield


@pytest.fixture(autouse=True)
def clean_registries():
    """Every test starts with empty registries and the default retry handler."""
    reset_registries()
    set_retry_handler(None)
    yield
    reset_registries()
    set_retry_handler(None)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


class RecordingConnection(Connection):
    """Connection that remembers bulk-load calls and what was staged."""

    driver_kind = DriverKind.STATELESS

    def __init__(self, name: str = "recording", dsn: str = "http://localhost:8123",
                 error: Optional[Exception] = None):
        super().__init__(name, dsn)
        self.calls = []
        self.staged_rows: List[List[str]] = []
        self.error = error
        self.closed = False

    async def insert_file(self, table: str, columns: Sequence[str], staging_path: str):
        self.calls.append((table, list(columns), staging_path))
        if self.error is not None:
            raise self.error
        with open(staging_path, newline="", encoding="utf-8") as f:
            self.staged_rows = list(csv.reader(f))
        return "Ok."

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_connection():
    """A connection that records insert_file calls."""
    return RecordingConnection()


def read_staged(path: Path) -> List[List[str]]:
    """Parse a staging file back into rows."""
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))
