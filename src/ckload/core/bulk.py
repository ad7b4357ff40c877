"""
Buffered bulk loading through a staging file.

A BulkLoadBuffer collects rows for one table in a CSV staging file on
fast ephemeral storage (``/dev/shm`` by default), then commits them with a
single bulk-load command on a provisioned connection.

Staged rows are not durable: if the process dies before execute(), the
rows are gone and the batch must be re-run from its source.

Example:
    ```python
    conn = get_connection("events", "clickhouse")
    with BulkLoadBuffer("hits", "hits-2024-06-01.json", conn) as buffer:
        buffer.add_columns(["ts", "url", "status"])
        for record in records:
            buffer.add_row([record.ts, record.url, record.status])
        rows = await buffer.execute()
    ```
"""
import asyncio
import csv
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Sequence, Union

import polars as pl

from ckload.utility.exceptions import (
    BufferClosedError,
    StagingOpenError,
    StagingWriteError,
)
from ckload.utility.logger import get_logger
from ckload.utility.settings import settings

if TYPE_CHECKING:
    from ckload.connections.base import Connection


class BufferState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class BulkLoadBuffer:
    """
    Stages rows for one table and commits them as one bulk load.

    Each instance owns exactly one staging file named
    ``<staging_dir>/<stem of file_name>.csv``. The file is created on
    construction and removed by close(), clear_data() or garbage
    collection. Two live buffers never share a staging file: a second
    buffer whose name hint has the same stem raises StagingOpenError.
    A buffer is not safe for concurrent writers.
    """

    def __init__(
        self,
        table: str,
        file_name: str,
        connection: "Connection",
        staging_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Args:
            table: Target table
            file_name: Name hint for the staging file; its directory and
                extension are dropped
            connection: Provisioned connection exposing insert_file()
            staging_dir: Directory for the staging file
                (default: settings.staging.directory)

        Raises:
            StagingOpenError: If the staging file cannot be created or is
                already in use
        """
        self.table = table
        self.connection = connection
        self.columns: List[str] = []

        self._handle = None
        self._writer = None
        self._row_count = 0
        self._state = BufferState.CLOSED

        stem = Path(file_name).stem
        if not stem:
            raise StagingOpenError(
                f"Cannot derive a staging file name from {file_name!r}"
            )
        directory = Path(staging_dir or settings.staging.directory)
        self.staging_path = directory / f"{stem}.{settings.staging.extension}"

        self.logger = get_logger(f"ckload.bulk.{table}")
        self._open()

    @property
    def row_count(self) -> int:
        """Rows appended since the staging file was (re)created."""
        return self._row_count

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is BufferState.CLOSED

    def add_columns(self, columns: Sequence[str]) -> bool:
        """
        Set the column order used by execute().

        Returns:
            False (and nothing changes) if ``columns`` is empty
        """
        if not columns:
            return False
        self.columns = list(columns)
        return True

    def add_row(self, row: Union[Sequence[Any], Mapping[str, Any]]) -> bool:
        """
        Append one record to the staging file.

        Fields holding the delimiter, quotes or line breaks are quoted and
        inner quotes doubled. ``None`` is written as an empty field and
        booleans as 1/0. For a mapping, its values are written in order.

        Returns:
            False (and nothing changes) if ``row`` is empty

        Raises:
            BufferClosedError: If the buffer is closed
            StagingWriteError: If the record cannot be written or encoded;
                the row count is left unchanged
        """
        if not row:
            return False
        self._ensure_open()

        values = row.values() if isinstance(row, Mapping) else row
        try:
            self._writer.writerow([_to_field(value) for value in values])
        except (OSError, UnicodeEncodeError, csv.Error) as e:
            raise StagingWriteError(
                f"Failed to stage row {self._row_count + 1} for {self.table}: {str(e)}",
                path=str(self.staging_path),
                row_count=self._row_count,
            ) from e

        self._row_count += 1
        return True

    def add_frame(self, df: pl.DataFrame) -> int:
        """
        Append every row of a Polars DataFrame.

        If no columns were set yet, the frame's column names become the
        column order.

        Returns:
            Number of rows appended
        """
        if not self.columns and df.width:
            self.add_columns(df.columns)

        appended = 0
        for row in df.iter_rows():
            if self.add_row(row):
                appended += 1
        self.logger.debug(f"Staged {appended:,} rows from DataFrame for {self.table}")
        return appended

    def clear_data(self) -> None:
        """Drop every staged row: remove the staging file and start a new one."""
        self.close()
        self._open()

    async def execute(self) -> int:
        """
        Send the staged rows with one bulk-load command.

        The buffer stays open afterwards; reuse, clear or close it as you
        like.

        Returns:
            Number of rows staged locally. This is not a count confirmed
            by the datastore.

        Raises:
            BufferClosedError: If the buffer is closed
            StagingWriteError: If staged rows cannot be flushed to disk
            RemoteWriteError: If the bulk load fails; it is not retried
        """
        self._ensure_open()
        try:
            self._handle.flush()
        except OSError as e:
            raise StagingWriteError(
                f"Failed to flush staging file {self.staging_path}: {str(e)}",
                path=str(self.staging_path),
            ) from e

        if not self.columns:
            self.logger.debug(
                f"No columns set for {self.table}; records map onto table columns "
                "in order"
            )

        loop = asyncio.get_running_loop()
        start = loop.time()
        self.logger.start(
            f"Bulk loading {self._row_count:,} rows into {self.table} "
            f"from {self.logger.path(str(self.staging_path))}"
        )
        try:
            await self.connection.insert_file(
                self.table, list(self.columns), str(self.staging_path)
            )
        except Exception as e:
            self.logger.error(f"Bulk load into {self.table} failed: {str(e)}")
            raise

        duration = max(loop.time() - start, 1e-9)
        self.logger.success(
            self.logger.LOAD_TEMPLATE.format(
                self._row_count, self.table, duration, self._row_count / duration
            )
        )
        return self._row_count

    def close(self) -> None:
        """Close and remove the staging file. Safe to call repeatedly."""
        handle = getattr(self, "_handle", None)
        if handle is None:
            return

        self._handle = None
        self._writer = None
        self._state = BufferState.CLOSED
        try:
            handle.close()
        except OSError as e:
            self.logger.warning(f"Error closing staging file {self.staging_path}: {e}")
        try:
            self.staging_path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Error removing staging file {self.staging_path}: {e}")

    def _open(self) -> None:
        # Exclusive create: a staging file belongs to exactly one buffer.
        # Line buffering makes a failed write surface on the row that caused it.
        try:
            self._handle = open(
                self.staging_path, "x", buffering=1, newline="", encoding="utf-8"
            )
        except FileExistsError as e:
            raise StagingOpenError(
                f"Staging file {self.staging_path} is already in use",
                path=str(self.staging_path),
            ) from e
        except OSError as e:
            raise StagingOpenError(
                f"Unable to open staging file {self.staging_path}: {str(e)}",
                path=str(self.staging_path),
            ) from e
        self._writer = csv.writer(self._handle)
        self._row_count = 0
        self._state = BufferState.OPEN

    def _ensure_open(self) -> None:
        if self._state is BufferState.CLOSED:
            raise BufferClosedError(
                f"Bulk-load buffer for {self.table} is closed",
                path=str(self.staging_path),
            )

    def __enter__(self) -> "BulkLoadBuffer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        self.close()

    def __repr__(self) -> str:
        return (
            f"BulkLoadBuffer(table={self.table!r}, rows={self._row_count}, "
            f"state={self._state.value})"
        )


def _to_field(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return int(value)
    return value
