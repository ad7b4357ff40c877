"""
Connection management for ckload.

Provisions named connections from connection strings and keeps them in a
process-wide registry, namespaced by scheme.

Key components:
- Connection: Interface of registered connections (bulk-load command)
- BaseConnection: Interface of link factories used by pools
- HttpConnection: Stateless connection over the HTTP interface
- PooledConnection: Connection backed by a ConnectionPool of PyMySQL links
- ConnectionRegistry: Per-namespace name -> connection table
- add_connection: Idempotent provisioning from a connection string
"""
from .base import BaseConnection, Connection
from .constants import DriverKind, PoolConfig, parse_pool_config
from .dsn import Dsn
from .http import HttpConnection
from .mysql import MysqlLinkFactory
from .pool import ConnectionPool
from .pooled import PooledConnection
from .registry import (
    ConnectionRegistry,
    close_all_registries,
    get_registry,
    reset_registries,
)
from .retry_handler import RetryHandler, get_retry_handler, set_retry_handler
from .provisioner import add_connection, get_connection, provision_from_config

__all__ = [
    "BaseConnection",
    "Connection",
    "ConnectionPool",
    "ConnectionRegistry",
    "DriverKind",
    "Dsn",
    "HttpConnection",
    "MysqlLinkFactory",
    "PoolConfig",
    "PooledConnection",
    "RetryHandler",
    "add_connection",
    "close_all_registries",
    "get_connection",
    "get_registry",
    "get_retry_handler",
    "parse_pool_config",
    "provision_from_config",
    "reset_registries",
    "set_retry_handler",
]
