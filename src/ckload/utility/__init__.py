"""
Utility functions and classes for ckload.
"""
from .exceptions import (
    BufferClosedError,
    CkloadError,
    ConfigError,
    ConnectionNotFoundError,
    LinkConnectionError,
    PoolError,
    PoolExhaustedError,
    RemoteWriteError,
    StagingError,
    StagingOpenError,
    StagingWriteError,
)

__all__ = [
    "CkloadError",
    "ConfigError",
    "ConnectionNotFoundError",
    "PoolError",
    "PoolExhaustedError",
    "LinkConnectionError",
    "StagingError",
    "StagingOpenError",
    "StagingWriteError",
    "BufferClosedError",
    "RemoteWriteError",
]
