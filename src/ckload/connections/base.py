"""
Base interfaces for connections.

Two contracts live here:

- Connection: what gets registered under a name and what a bulk-load
  buffer talks to. It exposes the bulk-load command ``insert_file``.
- BaseConnection: a link factory. Pooled connections hand one to their
  ConnectionPool so the pool can open, check and close raw links.
"""
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional, Sequence

from .constants import DriverKind


class Connection(ABC):
    """
    Abstract base class for registered datastore connections.

    Example:
        ```python
        class MyConnection(Connection):
            driver_kind = DriverKind.STATELESS

            async def insert_file(self, table, columns, staging_path):
                ...
        ```
    """

    driver_kind: ClassVar[DriverKind]

    def __init__(self, name: str, dsn: str):
        self.name = name
        self.dsn = dsn

    @abstractmethod
    async def insert_file(
        self, table: str, columns: Sequence[str], staging_path: str
    ) -> Any:
        """
        Load every record of a staged CSV file into ``table`` in one request.

        Args:
            table: Target table
            columns: Positional field order of the staged records; empty
                means every column of the table, in table order
            staging_path: Path of the staged CSV file

        Returns:
            Transport-specific acknowledgment

        Raises:
            RemoteWriteError: If the datastore rejects the load or the
                transport fails
        """
        pass

    async def close(self) -> None:
        """Release any resources held by this connection."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class BaseConnection(ABC):
    """
    Abstract base class for link factories.

    A link factory knows how to open, health-check and close one raw
    link to the datastore. ConnectionPool does the bookkeeping.

    Implementations wrap blocking driver calls in asyncio.to_thread().
    """

    def __init__(
        self, host: str, database: Optional[str], options: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            host: Datastore host
            database: Database name, if any
            options: Additional driver-specific options
        """
        self.host = host
        self.database = database
        self.options = options or {}

    @abstractmethod
    async def get_connection(self) -> Any:
        """
        Open and return a new link.

        Raises:
            LinkConnectionError: If the link cannot be opened
        """
        pass

    @abstractmethod
    async def close_connection(self, conn: Any) -> None:
        """Close a link."""
        pass

    async def is_connection_alive(self, conn: Any) -> bool:
        """
        Check if a link is still usable.

        Default implementation returns True. Override in subclasses
        to provide driver-specific health checks.
        """
        return True
