"""
Pool tuning parameters and driver scheme constants.

PoolConfig values come from the query string of a pooled connection
string (``click://host/db?min=2&max=8&wait=3&retry=5``). Any parameter that
is missing or not a non-negative integer falls back to its default.
"""
from enum import Enum
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class DriverKind(str, Enum):
    """How a connection talks to the datastore."""

    STATELESS = "stateless"
    POOLED = "pooled"


# Stateless schemes map onto the HTTP transport scheme they ride on
STATELESS_SCHEMES: Dict[str, str] = {
    "clickhouse": "http",
    "clickhouses": "https",
}
POOLED_SCHEMES = frozenset({"click"})


def driver_kind_for(scheme: str) -> Optional[DriverKind]:
    """Resolve the driver kind for a scheme, or None if unsupported."""
    if scheme in STATELESS_SCHEMES:
        return DriverKind.STATELESS
    if scheme in POOLED_SCHEMES:
        return DriverKind.POOLED
    return None


class PoolConfig(BaseModel):
    """Tuning parameters for a pooled connection."""

    model_config = ConfigDict(frozen=True)

    min_active: int = Field(default=5, ge=0, description="Links created up front")
    max_active: int = Field(
        default=5, ge=1, description="Links that may be checked out at once"
    )
    max_wait: float = Field(
        default=0,
        ge=0,
        description="Seconds to wait for a free link; 0 fails immediately",
    )
    max_retry: int = Field(
        default=3, ge=0, description="Reconnection attempts on transient failure"
    )

    @property
    def max_reconnect(self) -> int:
        return self.max_retry


POOL_CONFIG_DEFAULTS = PoolConfig()

# query parameter -> PoolConfig field
POOL_QUERY_PARAMS = {
    "min": "min_active",
    "max": "max_active",
    "wait": "max_wait",
    "retry": "max_retry",
}


def parse_pool_config(params: Mapping[str, str]) -> PoolConfig:
    """
    Build a PoolConfig from connection-string query parameters.

    Args:
        params: Decoded query parameters

    Returns:
        PoolConfig with defaults for anything missing or malformed
    """
    values = {}
    for param, field in POOL_QUERY_PARAMS.items():
        raw = params.get(param)
        if raw is None:
            continue
        try:
            value = int(str(raw).strip())
        except ValueError:
            continue
        # max_active must stay positive, the rest may be zero
        if value < 0 or (field == "max_active" and value == 0):
            continue
        values[field] = value
    return POOL_CONFIG_DEFAULTS.model_copy(update=values)
