"""
API utilities for the stream copy tool
"""

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from stream_copier.constants import (
    DEFAULT_FETCH_RETRIES,
    DEFAULT_RETRY_DELAY,
    MAX_RETRY_DELAY,
    RETRY_BACKOFF_FACTOR,
)
from stream_copier.exceptions import APIError
from stream_copier.utils.logging import log_with_context

T = TypeVar("T")


def backoff_delay(attempt: int, initial_delay: float) -> float:
    """Return the sleep time before retry number ``attempt`` (0-based)."""
    return min(initial_delay * (RETRY_BACKOFF_FACTOR**attempt), MAX_RETRY_DELAY)


def call_with_retries(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = DEFAULT_FETCH_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    operation: str = "request",
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Call ``func`` and retry transient API failures with exponential backoff.

    Only :class:`APIError` instances flagged ``retryable`` (connection errors,
    timeouts, HTTP 429 and 5xx) are retried. Anything else propagates on the
    first attempt. Use this for idempotent reads only.

    Args:
        func: The callable to invoke.
        max_retries: Retries after the first attempt.
        retry_delay: Initial delay in seconds, doubled on every retry.
        operation: Name used in log lines.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Whatever ``func`` returns.
    """
    last_exception: Optional[APIError] = None

    for attempt in range(max_retries + 1):
        try:
            return func(*args, **kwargs)
        except APIError as e:
            last_exception = e
            if not e.retryable:
                log_with_context(
                    logging.DEBUG,
                    f"{operation} failed with non-retryable error: {e}",
                    component="http",
                )
                raise

            log_with_context(
                logging.WARNING,
                f"{operation} failed (attempt {attempt + 1}/{max_retries + 1}): {e}",
                component="http",
                status_code=e.status_code,
            )

            if attempt < max_retries:
                sleep_time = backoff_delay(attempt, retry_delay)
                log_with_context(
                    logging.INFO,
                    f"Retrying in {sleep_time:.1f} seconds...",
                    component="http",
                )
                sleep(sleep_time)
            else:
                log_with_context(
                    logging.ERROR,
                    f"Max retries reached. Last error: {e}",
                    component="http",
                )
                raise

    if last_exception:
        raise last_exception
    raise RuntimeError("Exited retry loop unexpectedly.")

