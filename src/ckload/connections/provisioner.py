"""
Connection provisioning.

Turns a connection string into a registered, reusable connection:

- ``clickhouse://`` / ``clickhouses://`` become stateless HttpConnections
  whose base URL uses ``http://`` / ``https://``.
- ``click://`` becomes a PooledConnection with its own ConnectionPool,
  tuned by the ``min``, ``max``, ``wait`` and ``retry`` query parameters.

Provisioning is idempotent per driver namespace: the first registration of
a name wins and later calls return without building anything.

Example:
    ```python
    add_connection(None, "events", "clickhouse://default@localhost:8123/?database=web")
    add_connection(None, "bulk", "click://default@localhost:9004/web?max=8&wait=5")

    conn = get_connection("bulk", "click")
    ```
"""
from typing import Any, Dict, Mapping, Optional, Type

from ckload.core.config import ConnectionsConfig
from ckload.utility.exceptions import ConfigError
from ckload.utility.logger import get_logger

from .base import Connection
from .constants import STATELESS_SCHEMES, DriverKind, driver_kind_for, parse_pool_config
from .dsn import Dsn
from .http import HttpConnection
from .mysql import MysqlLinkFactory
from .pool import ConnectionPool
from .pooled import PooledConnection
from .registry import get_registry
from .retry_handler import RetryHandler, get_retry_handler

logger = get_logger("ckload.connections.provisioner")

_DEFAULT_CLASSES: Dict[DriverKind, Type[Connection]] = {
    DriverKind.STATELESS: HttpConnection,
    DriverKind.POOLED: PooledConnection,
}


def add_connection(
    connection_class: Optional[Type[Connection]],
    name: str,
    dsn: str,
    config: Optional[Mapping[str, Any]] = None,
    retry_handler: Optional[RetryHandler] = None,
) -> str:
    """
    Provision and register a named connection.

    Args:
        connection_class: Connection class to build; None picks the default
            for the scheme (HttpConnection or PooledConnection). Must be a
            subclass of that default.
        name: Connection name, unique within the scheme's namespace
        dsn: Connection string
        config: Extra constructor options. ``name``, ``dsn``, ``pool`` and
            ``retry_handler`` are always set by the provisioner. For pooled
            connections a ``link_options`` mapping is handed to the link
            factory (e.g. ``{"connect_timeout": 5}``).
        retry_handler: Reconnection policy for pooled connections
            (default: the process-default handler)

    Returns:
        The connection-string scheme, also when the name was already
        registered

    Raises:
        ConfigError: If the scheme is unsupported, the connection string is
            malformed, or the options don't fit the connection class
    """
    parsed = Dsn.parse(dsn)
    scheme = parsed.scheme
    kind = driver_kind_for(scheme)
    if kind is None:
        raise ConfigError(f"Not supported driver {scheme}")

    registry = get_registry(scheme)
    if registry.has_connection(name):
        logger.debug(f"Connection '{name}' already provisioned for {scheme}")
        return scheme

    cls = _resolve_class(connection_class, kind)

    def build() -> Connection:
        descriptor = dict(config or {})
        descriptor["name"] = name

        if kind is DriverKind.STATELESS:
            descriptor["dsn"] = parsed.with_scheme(STATELESS_SCHEMES[scheme]).unparse()
            return _construct(cls, descriptor)

        pool_config = parse_pool_config(parsed.query_params())
        link_options = descriptor.pop("link_options", None) or {}
        factory = MysqlLinkFactory.from_dsn(parsed, link_options)
        descriptor["dsn"] = dsn
        descriptor["pool"] = ConnectionPool(name, factory, pool_config)
        descriptor["retry_handler"] = retry_handler or get_retry_handler()
        return _construct(cls, descriptor)

    _, created = registry.add_if_absent(name, build)
    if created:
        logger.info(f"Provisioned {kind.value} connection '{name}' ({scheme})")
    return scheme


def get_connection(name: str, scheme: str) -> Connection:
    """
    Look up a provisioned connection.

    Raises:
        ConnectionNotFoundError: If nothing is registered under ``name``
    """
    return get_registry(scheme).get_connection(name)


def provision_from_config(config: ConnectionsConfig) -> Dict[str, str]:
    """
    Provision every connection listed in a ConnectionsConfig.

    Returns:
        Mapping of connection name to scheme
    """
    provisioned = {}
    for name, entry in config.connections.items():
        provisioned[name] = add_connection(None, name, entry.dsn, entry.options)
    return provisioned


def _resolve_class(
    connection_class: Optional[Type[Connection]], kind: DriverKind
) -> Type[Connection]:
    default = _DEFAULT_CLASSES[kind]
    if connection_class is None:
        return default
    if not (isinstance(connection_class, type) and issubclass(connection_class, default)):
        raise ConfigError(
            f"{getattr(connection_class, '__name__', connection_class)} cannot serve "
            f"{kind.value} connections; expected a subclass of {default.__name__}"
        )
    return connection_class


def _construct(cls: Type[Connection], descriptor: Dict[str, Any]) -> Connection:
    try:
        return cls(**descriptor)
    except TypeError as e:
        raise ConfigError(f"Invalid options for {cls.__name__}: {str(e)}") from e
