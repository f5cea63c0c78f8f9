"""
Utility functions for the bundle services.
Includes retry logic for read operations and string helpers.
"""
import asyncio
import functools
import logging
import random
from typing import Callable, Type, Tuple, Optional

import httpx

from services.errors import BundleError, ErrorCode

logger = logging.getLogger(__name__)

# Transport errors that should be retried
TRANSIENT_HTTP_ERRORS: Tuple[Type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def is_transient_error(exc: Exception) -> bool:
    """Check if an exception is a transient error that should be retried."""
    if isinstance(exc, BundleError):
        # CART_ERROR is recoverable for the user but the mutation is not idempotent
        return exc.code in (ErrorCode.NETWORK_ERROR, ErrorCode.RATE_LIMITED)

    if isinstance(exc, TRANSIENT_HTTP_ERRORS):
        return True

    error_msg = str(exc).lower()
    transient_patterns = [
        "connection refused",
        "connection reset",
        "connection timed out",
        "timeout",
        "temporarily unavailable",
    ]
    return any(pattern in error_msg for pattern in transient_patterns)


def retry_async(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_backoff: bool = True,
    jitter: bool = True,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
):
    """
    Decorator for async functions that retries on transient failures.

    Only apply to pure reads (resolution, inventory, pricing). Rate-limited
    responses back off with twice the computed delay.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_backoff: Whether to use exponential backoff
        jitter: Whether to add random jitter to delays
        retry_on: Tuple of exception types to retry on (defaults to transient errors)
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_exception = e

                    if retry_on:
                        should_retry = isinstance(e, retry_on)
                    else:
                        should_retry = is_transient_error(e)

                    if not should_retry or attempt >= max_retries:
                        raise

                    if exponential_backoff:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                    else:
                        delay = base_delay

                    if isinstance(e, BundleError) and e.code == ErrorCode.RATE_LIMITED:
                        delay = min(delay * 2, max_delay)

                    if jitter:
                        delay = delay * (0.5 + random.random())  # 50-150% of delay

                    logger.warning(
                        f"Retry {attempt + 1}/{max_retries} for {func.__name__} "
                        f"after {delay:.2f}s due to: {type(e).__name__}: {str(e)[:100]}"
                    )
                    await asyncio.sleep(delay)

            if last_exception:
                raise last_exception

        return wrapper
    return decorator


def sanitize_string(value: Optional[str], max_length: int = 1000, default: str = "") -> str:
    """Sanitize a string value (null bytes removed, stripped, truncated)."""
    if value is None or not isinstance(value, str):
        return default
    cleaned = value.replace("\x00", "").strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    return cleaned
