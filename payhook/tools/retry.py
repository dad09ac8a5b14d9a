"""Exponential backoff with jitter for provider API calls.

Retries on transient HTTP statuses (429, 500, 502, 503, 504) and on httpx
transport errors. Honors Retry-After. Everything else propagates at once.
"""

from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _retry_reason(exc: Exception) -> tuple[bool, httpx.Response | None, str]:
    """Classify an exception as (retryable, response, short reason)."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES, exc.response, f"HTTP {status}"
    if isinstance(exc, httpx.TransportError):
        return True, None, type(exc).__name__
    return False, None, type(exc).__name__


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.3,
) -> Callable:
    """Decorator: retry a function with exponential backoff + jitter.

    Args:
        max_retries: Retry attempts after the first call.
        base_delay: Initial delay in seconds.
        max_delay: Cap for any single delay, Retry-After included.
        jitter: Fraction of the delay randomized either way.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return fn(*args, **kwargs)
                except (httpx.HTTPStatusError, httpx.TransportError) as e:
                    retryable, response, reason = _retry_reason(e)
                    if not retryable or attempt >= max_retries:
                        raise
                    delay = compute_delay(attempt, base_delay, max_delay, jitter, response)
                    attempt += 1
                    logger.warning(
                        "Retry %d/%d for %s (%s), waiting %.1fs",
                        attempt,
                        max_retries,
                        fn.__name__,
                        reason,
                        delay,
                    )
                    time.sleep(delay)

        return wrapper

    return decorator


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float,
    response: httpx.Response | None = None,
) -> float:
    """Delay before the next attempt; a numeric Retry-After wins."""
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), max_delay)
            except ValueError:
                pass

    delay = min(base_delay * (2**attempt), max_delay)
    spread = delay * jitter
    return max(0.05, delay + random.uniform(-spread, spread))
