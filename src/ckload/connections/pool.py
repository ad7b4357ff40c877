"""
Connection pool implementation using asyncio.Queue.

Keeps up to ``max_active`` links to the datastore, bounds how many may be
checked out at once, and applies the ``max_wait`` checkout timeout from
the pool's PoolConfig.
"""
import asyncio
from typing import Any, Optional

from ckload.utility.exceptions import PoolError, PoolExhaustedError
from ckload.utility.logger import get_logger

from .base import BaseConnection
from .constants import PoolConfig


class ConnectionPool:
    """
    Async connection pool using asyncio.Queue for idle links and an
    asyncio.Semaphore for the checkout bound.

    ``min_active`` links are created by initialize(); more are opened on
    demand until ``max_active`` are checked out. A checkout beyond that
    waits up to ``max_wait`` seconds and then raises PoolExhaustedError.
    With ``max_wait == 0`` it raises straight away.

    Example:
        ```python
        pool = ConnectionPool(
            name="events",
            connection_factory=MysqlLinkFactory.from_dsn(dsn),
            pool_config=PoolConfig(min_active=2, max_active=8, max_wait=5),
        )
        await pool.initialize()

        conn = await pool.acquire()
        try:
            ...
        finally:
            await pool.release(conn)

        await pool.close()
        ```
    """

    def __init__(
        self,
        name: str,
        connection_factory: BaseConnection,
        pool_config: Optional[PoolConfig] = None,
    ):
        """
        Initialize connection pool.

        Args:
            name: Name of this pool (for logging)
            connection_factory: Factory to create links
            pool_config: Pool bounds and timeouts (defaults when omitted)
        """
        self.name = name
        self.connection_factory = connection_factory
        self.pool_config = pool_config or PoolConfig()

        # Populated during initialize()
        self._idle: Optional[asyncio.Queue] = None
        self._slots: Optional[asyncio.Semaphore] = None
        self._in_use = 0

        self._initialized = False
        self._closed = False

        self.logger = get_logger(f"ckload.connections.pool.{name}")

    async def initialize(self) -> None:
        """
        Initialize the pool by pre-creating ``min_active`` links.

        min_active above max_active is clamped to max_active.
        """
        if self._initialized:
            self.logger.warning(f"Pool {self.name} already initialized")
            return

        config = self.pool_config
        warm = min(config.min_active, config.max_active)
        self.logger.info(
            f"Initializing connection pool '{self.name}' "
            f"({warm} warm, max {config.max_active}, wait {config.max_wait}s)"
        )

        self._idle = asyncio.Queue(maxsize=config.max_active)
        self._slots = asyncio.Semaphore(config.max_active)

        for i in range(warm):
            try:
                conn = await self.connection_factory.get_connection()
                self._idle.put_nowait(conn)
                self.logger.debug(f"Created connection {i+1}/{warm}")
            except Exception as e:
                self.logger.error(f"Failed to create connection {i+1}: {str(e)}")
                await self._cleanup_partial_initialization()
                raise

        self._initialized = True
        self.logger.success(f"Pool '{self.name}' initialized with {warm} connections")

    async def acquire(self) -> Any:
        """
        Acquire a link from the pool.

        Returns:
            Link object from the connection factory

        Raises:
            PoolError: If pool is not initialized or is closed
            PoolExhaustedError: If no link frees up within max_wait
            LinkConnectionError: If a new link cannot be opened
        """
        if not self._initialized:
            raise PoolError(
                f"Pool {self.name} not initialized. Call initialize() first."
            )

        if self._closed:
            raise PoolError(f"Pool {self.name} is closed")

        await self._take_slot()
        try:
            conn = await self._checkout()
        except BaseException:
            self._slots.release()
            raise

        self._in_use += 1
        self.logger.debug(
            f"Acquired connection from pool '{self.name}' "
            f"(in use: {self._in_use}, idle: {self._idle.qsize()})"
        )
        return conn

    async def release(self, conn: Any) -> None:
        """
        Return a link to the pool.

        Raises:
            PoolError: If pool is not initialized
        """
        if not self._initialized:
            raise PoolError(f"Pool {self.name} not initialized")

        self._in_use -= 1
        try:
            if self._closed:
                await self._close_link(conn)
                return
            self._idle.put_nowait(conn)
        finally:
            self._slots.release()

        self.logger.debug(
            f"Released connection to pool '{self.name}' "
            f"(in use: {self._in_use}, idle: {self._idle.qsize()})"
        )

    async def close(self) -> None:
        """Close every idle link and refuse further checkouts."""
        if self._closed:
            return

        self.logger.info(f"Closing connection pool '{self.name}'")
        self._closed = True

        if not self._initialized or self._idle is None:
            return

        closed_count = 0
        while not self._idle.empty():
            try:
                conn = self._idle.get_nowait()
            except asyncio.QueueEmpty:
                break
            await self._close_link(conn)
            closed_count += 1

        self.logger.success(f"Pool '{self.name}' closed ({closed_count} connections)")

    async def _take_slot(self) -> None:
        wait = self.pool_config.max_wait
        if wait == 0:
            if self._slots.locked():
                raise PoolExhaustedError(
                    f"Pool {self.name} exhausted: all {self.pool_config.max_active} "
                    f"connections are in use"
                )
            await self._slots.acquire()
            return

        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            raise PoolExhaustedError(
                f"Pool {self.name} exhausted: no connection became free "
                f"within {wait}s"
            ) from None

    async def _checkout(self) -> Any:
        """Take an idle link, replacing it if dead, or open a new one."""
        try:
            conn = self._idle.get_nowait()
        except asyncio.QueueEmpty:
            return await self.connection_factory.get_connection()

        try:
            is_alive = await self.connection_factory.is_connection_alive(conn)
        except Exception as e:
            self.logger.warning(f"Health check failed: {str(e)}")
            is_alive = False

        if not is_alive:
            self.logger.warning("Connection from pool was dead, creating new one")
            await self._close_link(conn)
            conn = await self.connection_factory.get_connection()
        return conn

    async def _close_link(self, conn: Any) -> None:
        try:
            await self.connection_factory.close_connection(conn)
        except Exception as e:
            self.logger.warning(f"Error closing connection: {str(e)}")

    async def _cleanup_partial_initialization(self) -> None:
        """Close links created before initialization failed."""
        if self._idle is None:
            return

        while not self._idle.empty():
            await self._close_link(self._idle.get_nowait())

    @property
    def size(self) -> int:
        """Maximum number of links checked out at once."""
        return self.pool_config.max_active

    @property
    def available(self) -> int:
        """Number of idle links ready for checkout."""
        if self._idle is None:
            return 0
        return self._idle.qsize()

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def initialized(self) -> bool:
        return self._initialized
