"""
Reconnection policy for pooled connections.

A RetryHandler wraps link acquisition: when opening a link fails with a
transient LinkConnectionError it tries again, up to ``max_retry`` more
times with exponential backoff. The bulk-load command is never retried.
"""
import threading
from typing import Awaitable, Callable, Optional, TypeVar

from ckload.utility.exceptions import LinkConnectionError
from ckload.utility.retry import with_retry

T = TypeVar("T")


class RetryHandler:
    """
    Retries transient link failures.

    Example:
        ```python
        handler = RetryHandler(max_retry=3, delay=0.5)
        conn = await handler.call(pool.acquire)
        ```
    """

    def __init__(self, max_retry: int = 3, delay: float = 1, timeout: Optional[float] = None):
        """
        Args:
            max_retry: Reconnection attempts after the first failure
            delay: Initial backoff in seconds
            timeout: Optional limit per attempt in seconds
        """
        self.max_retry = max_retry
        self.delay = delay
        self.timeout = timeout

    async def call(
        self, operation: Callable[[], Awaitable[T]], max_retry: Optional[int] = None
    ) -> T:
        """
        Run ``operation``, retrying LinkConnectionError.

        Args:
            operation: Zero-argument coroutine function
            max_retry: Overrides the handler's reconnection budget, e.g. with
                the ``retry`` value of a pool's PoolConfig

        Raises:
            LinkConnectionError: The last failure once attempts run out
        """
        budget = self.max_retry if max_retry is None else max_retry
        retrying = with_retry(
            timeout=self.timeout,
            retries=budget + 1,
            delay=self.delay,
            exceptions=(LinkConnectionError,),
            logger_name="ckload.connections.retry",
            reraise=True,
        )(operation)
        return await retrying()

    def __repr__(self) -> str:
        return f"RetryHandler(max_retry={self.max_retry}, delay={self.delay})"


_default_handler: Optional[RetryHandler] = None
_default_lock = threading.Lock()


def get_retry_handler() -> RetryHandler:
    """Return the process-default RetryHandler (created on first use)."""
    global _default_handler
    if _default_handler is None:
        with _default_lock:
            if _default_handler is None:
                _default_handler = RetryHandler()
    return _default_handler


def set_retry_handler(handler: Optional[RetryHandler]) -> None:
    """Replace the process-default RetryHandler; None restores the default."""
    global _default_handler
    with _default_lock:
        _default_handler = handler
