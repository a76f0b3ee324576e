"""
Resilience utilities for upstream registry reads.

Transient transport errors are retried with exponential backoff. Anything
else propagates unchanged: an export either has every payload or fails.
"""

import asyncio
import functools
import time
from typing import Any, Callable, Optional, Tuple, Type

import httpx

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ErrorClass
from civreg_reports.core.logging import setup_logger

logger = setup_logger(settings.LOG_LEVEL)

# Errors worth another attempt; HTTP status errors are not among them
RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.RemoteProtocolError,
    httpx.ReadError,
)


def classify_error(error: BaseException) -> str:
    """Map a transport exception onto an ErrorClass value."""
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT_EXCEEDED
    if isinstance(error, httpx.TransportError):
        return ErrorClass.NETWORK_ERROR
    return ErrorClass.FETCH_FAILURE


def retry_with_backoff(
    max_retries: int = 2,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    retry_on: Optional[Tuple[Type[BaseException], ...]] = None
):
    """
    Decorator for async retry logic with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries (seconds)
        backoff_factor: Multiplier for delay on each retry
        retry_on: Exception types to retry (defaults to RETRYABLE_ERRORS)

    Returns:
        Decorated coroutine function; the last error is re-raised once
        retries are exhausted
    """
    retryable = retry_on or RETRYABLE_ERRORS

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start_time = time.time()
            for attempt in range(max_retries + 1):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(
                            f"retry_success=true function={func.__name__} "
                            f"attempt={attempt + 1}"
                        )
                    return result
                except retryable as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"retry_exhausted=true function={func.__name__} "
                            f"attempts={max_retries + 1} error_class={classify_error(e)} "
                            f"elapsed={time.time() - start_time:.2f}s"
                        )
                        raise
                    delay = initial_delay * (backoff_factor ** attempt)
                    logger.warning(
                        f"retry_attempt={attempt + 1} function={func.__name__} "
                        f"error={type(e).__name__} delay={delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
