"""
Link factory for the datastore's MySQL-compatible interface.

Pooled (``click://``) connections keep persistent links over the MySQL
wire protocol, which ClickHouse serves on port 9004 by default. PyMySQL
does the protocol work; every blocking call runs in asyncio.to_thread().
"""
import asyncio
from typing import Any, Dict, Optional

import pymysql

from ckload.utility.exceptions import LinkConnectionError
from ckload.utility.logger import get_logger
from ckload.utility.settings import settings

from .base import BaseConnection
from .dsn import Dsn


class MysqlLinkFactory(BaseConnection):
    """
    Opens PyMySQL links for a pooled connection.

    Options:
        - port: Override the port (default: DSN port or 9004)
        - user / password: Override DSN credentials
        - connect_timeout: Seconds to wait for a link (default: settings)
        - charset: Link charset (default: "utf8mb4")
    """

    def __init__(
        self, host: str, database: Optional[str], options: Optional[Dict[str, Any]] = None
    ):
        super().__init__(host, database, options)

        self.port = int(self.options.get("port") or settings.native.default_port)
        self.user = self.options.get("user") or "default"
        self.password = self.options.get("password") or ""
        self.connect_timeout = self.options.get(
            "connect_timeout", settings.native.connect_timeout
        )
        self.charset = self.options.get("charset", "utf8mb4")

        self.logger = get_logger("ckload.connections.mysql")

    @classmethod
    def from_dsn(
        cls, dsn: Dsn, options: Optional[Dict[str, Any]] = None
    ) -> "MysqlLinkFactory":
        """Build a factory from a parsed ``click://`` connection string."""
        merged = {
            "port": dsn.port,
            "user": dsn.username,
            "password": dsn.secret,
        }
        merged.update(options or {})
        return cls(dsn.host, dsn.database, merged)

    async def get_connection(self) -> pymysql.connections.Connection:
        """
        Open a new link.

        Raises:
            LinkConnectionError: If the link cannot be opened
        """
        self.logger.debug(f"Connecting to {self.host}:{self.port}/{self.database or ''}")
        try:
            return await asyncio.to_thread(
                pymysql.connect,
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.database,
                connect_timeout=self.connect_timeout,
                charset=self.charset,
                autocommit=True,
            )
        except (pymysql.MySQLError, OSError) as e:
            raise LinkConnectionError(
                f"Failed to connect to {self.host}:{self.port}: {str(e)}"
            ) from e

    async def close_connection(self, conn: pymysql.connections.Connection) -> None:
        if conn and conn.open:
            await asyncio.to_thread(conn.close)
            self.logger.debug("Connection closed")

    async def is_connection_alive(self, conn: pymysql.connections.Connection) -> bool:
        try:
            await asyncio.to_thread(conn.ping, reconnect=False)
            return True
        except (pymysql.MySQLError, OSError):
            return False
