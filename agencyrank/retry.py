"""
Retry logic with linear backoff for rate-limited upstream calls.

Only rate limiting (HTTP 429) is retried. Timeouts, server errors and
malformed payloads propagate on first occurrence so the caller can degrade
the metric immediately.
"""

import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from .errors import RateLimitedError

T = TypeVar("T")


def retry(
    op: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    retry_on: Tuple[Type[Exception], ...] = (RateLimitedError,),
    on_retry: Optional[Callable] = None,
) -> T:
    """
    Call op, retrying on rate limiting with linear backoff.

    Args:
        op: Zero-argument callable performing one upstream call
        max_attempts: Total attempts including the first (>= 1)
        base_delay: Seconds to wait before retry n is base_delay * n
        sleep: Delay function; tests pass a no-op
        retry_on: Exception types that trigger a retry
        on_retry: Optional callback(attempt, exception, delay)

    Returns:
        Whatever op returns on the first successful attempt

    Raises:
        The last retry_on exception once attempts are exhausted, or any
        other exception from op immediately.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return op()
        except retry_on as e:
            # Don't sleep after the last attempt
            if attempt >= max_attempts:
                raise
            delay = base_delay * attempt
            if on_retry:
                on_retry(attempt, e, delay)
            sleep(delay)

    # range() above always runs at least once and either returns or raises
    raise AssertionError("unreachable")


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Only 429 Too Many Requests qualifies; every other error status is
    treated as transient and degraded without a retry.
    """
    return status_code == 429
