# ABOUTME: Bounded retry with a fixed wait, built on tenacity.
# ABOUTME: Only exceptions matching the retry_on types are retried; the last attempt's error is re-raised unchanged.

import logging

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)


def bounded_retry(
    attempts: int,
    backoff_seconds: float,
    retry_on: type[BaseException] | tuple[type[BaseException], ...],
) -> Retrying:
    """Return a Retrying controller: at most `attempts` tries, `backoff_seconds` between them, no jitter."""
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(backoff_seconds),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
