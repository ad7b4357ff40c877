"""
Custom exceptions for ckload - clear, actionable error handling.

ckload uses a hierarchical exception system so callers can tell
configuration mistakes, pool pressure, local staging trouble and remote
failures apart without string matching.

Exception Hierarchy:
    CkloadError (base)
    ├── ConfigError - Unsupported scheme, malformed DSN or bad configuration
    ├── ConnectionNotFoundError - Name not provisioned in a driver namespace
    ├── PoolError
    │   ├── PoolExhaustedError - No pooled link became free within max_wait
    │   └── LinkConnectionError - Opening a pooled link failed (transient)
    ├── StagingError
    │   ├── StagingOpenError - Staging file cannot be created
    │   ├── StagingWriteError - Appending a record to the staging file failed
    │   └── BufferClosedError - Operation on a closed bulk-load buffer
    └── RemoteWriteError - The bulk-load command itself failed

Usage Guidelines:
    - Always use exception chaining (`raise SpecificError(...) from e`) when
      wrapping exceptions to preserve the original traceback.
    - LinkConnectionError is the only transient error; the retry handler
      retries it on link acquisition. Nothing else is retried by ckload.
    - RemoteWriteError is never retried automatically. Re-run the batch
      from its original source if you need to.
"""


class CkloadError(Exception):
    """Base exception for all ckload errors."""

    pass


class ConfigError(CkloadError):
    """Raised when there's an error in configuration."""

    pass


class ConnectionNotFoundError(CkloadError):
    """No connection with the requested name in the driver namespace."""

    pass


class PoolError(CkloadError):
    """Base exception for connection pool errors."""

    pass


class PoolExhaustedError(PoolError):
    """No pooled link became available within the configured wait."""

    pass


class LinkConnectionError(PoolError):
    """Transient error opening a pooled link."""

    pass


class StagingError(CkloadError):
    """Base exception for staging file errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.context = kwargs


class StagingOpenError(StagingError):
    """Staging file could not be created."""

    pass


class StagingWriteError(StagingError):
    """Error appending a record to the staging file."""

    pass


class BufferClosedError(StagingError):
    """The bulk-load buffer was already closed."""

    pass


class RemoteWriteError(CkloadError):
    """The bulk-load command failed on the datastore or in transport."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.context = kwargs
