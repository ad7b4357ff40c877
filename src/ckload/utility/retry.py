"""
Retry decorator with exponential backoff and timeout for async functions.
"""
import asyncio
import logging
from functools import wraps
from typing import Callable, Optional, Tuple, Type, Union

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import LinkConnectionError
from .logger import get_logger


def with_retry(
    timeout: Optional[float] = 300,
    retries: int = 3,
    delay: float = 1,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = (
        LinkConnectionError,
    ),
    logger_name: str = "ckload.retry",
    retry_if_func: Optional[Callable] = None,
    reraise: bool = False,
):
    """
    Retry decorator with exponential backoff and timeout for async functions.

    Args:
        timeout: Maximum time in seconds for each attempt, None for no limit
        retries: Maximum number of attempts, including the first one
        delay: Initial delay between retries in seconds
        exceptions: Exception types to retry on (default: LinkConnectionError)
        logger_name: Name for logging retry attempts
        retry_if_func: Optional predicate taking the exception and returning
            whether to retry. Overrides exceptions when given.
        reraise: Re-raise the last exception instead of tenacity's RetryError
            once attempts are exhausted

    Example:
        @with_retry(retries=4, delay=0.5)
        async def open_link(self):
            ...

    Raises:
        TimeoutError: If an attempt exceeds the timeout period
        tenacity.RetryError: If all attempts fail and reraise is False
    """
    logger = get_logger(logger_name)
    # tenacity's before_sleep_log wants the standard logger underneath
    standard_logger = logger.logger if hasattr(logger, "logger") else logger

    def decorator(func):
        if retry_if_func:
            retry_condition = retry_if_exception(retry_if_func)
        else:
            retry_condition = retry_if_exception_type(exceptions)

        @retry(
            stop=stop_after_attempt(retries),
            wait=wait_exponential(multiplier=delay, min=delay, max=delay * 8),
            retry=retry_condition,
            before_sleep=before_sleep_log(standard_logger, logging.WARNING),
            reraise=reraise,
        )
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if timeout is None:
                return await func(*args, **kwargs)
            try:
                async with asyncio.timeout(timeout):
                    return await func(*args, **kwargs)
            except asyncio.TimeoutError:
                raise TimeoutError(
                    f"Operation {func.__name__} timed out after {timeout} seconds"
                )

        return wrapper

    return decorator
