"""Retry utilities with exponential backoff for recoverable store failures."""

import time
from functools import wraps
from typing import Any, Callable, Tuple, Type

import structlog

from mtp_catalog.errors import StoreTransactionFailed
from mtp_catalog.models.config import SyncConfig

log = structlog.stdlib.get_logger()


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    return min(base_delay * (2**attempt), max_delay)


def exponential_backoff_retry(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = (StoreTransactionFailed,),
) -> Callable:
    """
    Decorator that retries a function with exponential backoff.

    Only store failures are retried by default: batches and closes are
    transactional, so a failed attempt left nothing behind.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        log.error(
                            "max_retries_reached",
                            function=func.__name__,
                            max_retries=max_retries,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay)

                    log.warning(
                        "retrying_after_error",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay_seconds=delay,
                        error=str(e),
                    )

                    time.sleep(delay)

        return wrapper

    return decorator


def retry_with_policy(policy: SyncConfig, func: Callable[..., Any], *args, **kwargs) -> Any:
    """Call ``func`` retrying store failures according to ``policy``."""
    retrying = exponential_backoff_retry(
        max_retries=policy.max_retries,
        base_delay=policy.base_delay,
        max_delay=policy.max_delay,
    )(func)
    return retrying(*args, **kwargs)
