"""
Leaderboard Retry Logic

Resilient upstream HTTP handling with exponential backoff for transient failures:
- Retries on 429 (rate limited), 502, 503 and 504
- Retries on httpx network errors (connect failures, timeouts)
- Jitter to prevent thundering herd

Works for both plain and async callables; tenacity detects coroutines.
Set LEADERBOARD_NO_RETRY=1 to disable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .config import is_retry_disabled
from .logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES = {
    429,  # Too Many Requests (rate limited)
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def is_retry_enabled() -> bool:
    """Retry is on unless LEADERBOARD_NO_RETRY is set."""
    return not is_retry_disabled()


def should_retry_exception(exc: BaseException) -> bool:
    """
    Determine if an exception should trigger a retry.

    Args:
        exc: The exception to check

    Returns:
        True if the request should be retried
    """
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    if isinstance(exc, httpx.TransportError):
        return True  # Network errors and timeouts are retryable
    return False


def http_retry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    min_wait: float = DEFAULT_MIN_WAIT,
    max_wait: float = DEFAULT_MAX_WAIT,
) -> Callable[[F], F]:
    """
    Decorator for upstream requests with retry logic.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Initial wait between attempts in seconds (default: 1)
        max_wait: Maximum wait between attempts in seconds (default: 10)

    Usage:
        @http_retry()
        async def fetch(client):
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
    """

    def decorator(func: F) -> F:
        if not is_retry_enabled():
            return func

        return retry(  # type: ignore[return-value]
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential_jitter(
                initial=min_wait,
                max=max_wait,
                jitter=max_wait * 0.1,
            ),
            retry=retry_if_exception(should_retry_exception),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(func)

    return decorator
