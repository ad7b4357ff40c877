"""
Connection provisioning and buffered bulk loading for ClickHouse-style
columnar datastores.
"""
from .connections import (
    ConnectionPool,
    HttpConnection,
    PoolConfig,
    PooledConnection,
    RetryHandler,
    add_connection,
    close_all_registries,
    get_connection,
    provision_from_config,
)
from .core import BulkLoadBuffer, ConnectionsConfig, load_connections_config

__all__ = [
    "BulkLoadBuffer",
    "ConnectionPool",
    "ConnectionsConfig",
    "HttpConnection",
    "PoolConfig",
    "PooledConnection",
    "RetryHandler",
    "add_connection",
    "close_all_registries",
    "get_connection",
    "load_connections_config",
    "provision_from_config",
]
