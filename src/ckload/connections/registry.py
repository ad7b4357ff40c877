"""
Process-wide connection registry.

Connections are registered per driver namespace (the connection-string
scheme), so ``clickhouse://`` and ``click://`` connections may share a
name. Within a namespace a name is registered at most once: the first
registration wins and later ones are no-ops.
"""
import asyncio
import threading
from typing import Callable, Dict, List, Tuple

from ckload.utility.exceptions import ConnectionNotFoundError
from ckload.utility.logger import get_logger

from .base import Connection


class ConnectionRegistry:
    """
    Name -> connection table for one driver namespace.

    Every mutation runs under a lock. ``add_if_absent`` is the atomic
    check-then-insert used by provisioning, so two threads provisioning the
    same name never both build a connection.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.RLock()
        self.logger = get_logger(f"ckload.connections.registry.{namespace}")

    def has_connection(self, name: str) -> bool:
        with self._lock:
            return name in self._connections

    def add_connection(self, name: str, connection: Connection) -> None:
        """Register ``connection`` under ``name`` unless the name is taken."""
        with self._lock:
            if name in self._connections:
                self.logger.debug(
                    f"Connection '{name}' already registered in {self.namespace}, "
                    "keeping the first one"
                )
                return
            self._connections[name] = connection
        self.logger.debug(f"Registered connection '{name}' in {self.namespace}")

    def add_if_absent(
        self, name: str, build: Callable[[], Connection]
    ) -> Tuple[Connection, bool]:
        """
        Register the result of ``build()`` unless ``name`` is already taken.

        ``build`` runs inside the lock and only when the name is absent.

        Returns:
            (registered connection, True if it was built by this call)
        """
        with self._lock:
            existing = self._connections.get(name)
            if existing is not None:
                return existing, False
            connection = build()
            self._connections[name] = connection
        self.logger.debug(f"Registered connection '{name}' in {self.namespace}")
        return connection, True

    def get_connection(self, name: str) -> Connection:
        with self._lock:
            try:
                return self._connections[name]
            except KeyError:
                raise ConnectionNotFoundError(
                    f"No connection named '{name}' in {self.namespace}"
                ) from None

    def remove(self, name: str) -> Connection:
        with self._lock:
            try:
                return self._connections.pop(name)
            except KeyError:
                raise ConnectionNotFoundError(
                    f"No connection named '{name}' in {self.namespace}"
                ) from None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    async def close(self) -> None:
        """Close and forget every registered connection."""
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            await connection.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


_registries: Dict[str, ConnectionRegistry] = {}
_registries_lock = threading.Lock()


def get_registry(namespace: str) -> ConnectionRegistry:
    """Return the registry for a driver namespace, creating it on first use."""
    with _registries_lock:
        registry = _registries.get(namespace)
        if registry is None:
            registry = ConnectionRegistry(namespace)
            _registries[namespace] = registry
        return registry


async def close_all_registries() -> None:
    """Close every registered connection in every namespace (shutdown)."""
    with _registries_lock:
        registries = list(_registries.values())
    await asyncio.gather(*(registry.close() for registry in registries))


def reset_registries() -> None:
    """Forget every registry without closing anything (tests)."""
    with _registries_lock:
        _registries.clear()
