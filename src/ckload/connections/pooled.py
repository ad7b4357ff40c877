"""
Pooled connection over persistent links.

A PooledConnection owns a ConnectionPool built from the ``min``, ``max``,
``wait`` and ``retry`` parameters of its ``click://`` connection string.
The pool is warmed lazily on first use. Link acquisition goes through
a RetryHandler; the bulk-load command itself is sent exactly once.
"""
import asyncio
import csv
from itertools import islice
from typing import Any, Optional, Sequence, TextIO

import pymysql

from ckload.utility.exceptions import RemoteWriteError, StagingError
from ckload.utility.logger import get_logger
from ckload.utility.settings import settings

from .base import Connection
from .constants import DriverKind
from .pool import ConnectionPool
from .retry_handler import RetryHandler, get_retry_handler
from .statements import insert_statement


class PooledConnection(Connection):
    """
    A connection that bulk-loads over a pooled link.

    The staged CSV is replayed as chunked ``INSERT ... VALUES`` batches
    on a single checked-out link.

    Example:
        ```python
        pool = ConnectionPool("events", MysqlLinkFactory.from_dsn(dsn), config)
        conn = PooledConnection("events", raw_dsn, pool)
        rows = await conn.insert_file("hits", ["ts", "url"], "/dev/shm/hits.csv")
        await conn.close()
        ```
    """

    driver_kind = DriverKind.POOLED

    def __init__(
        self,
        name: str,
        dsn: str,
        pool: ConnectionPool,
        retry_handler: Optional[RetryHandler] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Args:
            name: Registered connection name
            dsn: Raw ``click://`` connection string
            pool: Pool this connection owns
            retry_handler: Reconnection policy (default: process default)
            chunk_size: Rows per executemany call
                (default: settings.native.insert_chunk_size)
        """
        super().__init__(name, dsn)
        self.pool = pool
        self.retry_handler = retry_handler or get_retry_handler()
        self.chunk_size = chunk_size or settings.native.insert_chunk_size
        self._init_lock = asyncio.Lock()

        self.logger = get_logger(f"ckload.connections.pooled.{name}")

    @property
    def pool_config(self):
        return self.pool.pool_config

    async def insert_file(
        self, table: str, columns: Sequence[str], staging_path: str
    ) -> int:
        """
        Replay the staging file into ``table`` on one pooled link.

        Returns:
            Number of records sent

        Raises:
            StagingError: If the staging file cannot be read
            PoolExhaustedError: If no link frees up within max_wait
            LinkConnectionError: If no link could be opened after retries
            RemoteWriteError: If the datastore rejects the insert
        """
        statement = insert_statement(table, columns)

        try:
            handle = open(staging_path, "r", newline="", encoding="utf-8")
        except OSError as e:
            raise StagingError(
                f"Cannot read staging file {staging_path}: {str(e)}", path=staging_path
            ) from e

        try:
            conn = await self._acquire()
            try:
                sent = await asyncio.to_thread(
                    self._replay, conn, statement, len(columns), handle
                )
            except pymysql.MySQLError as e:
                raise RemoteWriteError(
                    f"Bulk load into {table} failed: {str(e)}", table=table
                ) from e
            finally:
                await self.pool.release(conn)
        finally:
            handle.close()

        self.logger.debug(f"Sent {sent:,} rows to {table}")
        return sent

    async def close(self) -> None:
        await self.pool.close()

    async def _acquire(self) -> Any:
        max_retry = self.pool_config.max_retry
        async with self._init_lock:
            if not self.pool.initialized:
                await self.retry_handler.call(self.pool.initialize, max_retry=max_retry)
        return await self.retry_handler.call(self.pool.acquire, max_retry=max_retry)

    def _replay(self, conn: Any, statement: str, width: int, handle: TextIO) -> int:
        """
        Send the staged records in chunks. Runs in a worker thread.

        Empty fields are sent as NULL, matching how the CSV format loads
        them over HTTP. ``%`` in the statement is doubled because PyMySQL
        interpolates it with ``%`` formatting.
        """
        prefix = statement.replace("%", "%%")
        reader = csv.reader(handle)
        sent = 0
        with conn.cursor() as cursor:
            while True:
                chunk = [
                    [field if field != "" else None for field in record]
                    for record in islice(reader, self.chunk_size)
                ]
                if not chunk:
                    break
                placeholders = ", ".join(["%s"] * (width or len(chunk[0])))
                cursor.executemany(f"{prefix} VALUES ({placeholders})", chunk)
                sent += len(chunk)
        return sent
