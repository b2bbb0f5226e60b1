"""
Retrying read-compute-write units that lose an optimistic concurrency race.
"""
import logging
import time

from .errors import ConcurrencyConflictError, StaleWriteError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_MS = 100


def execute_with_retry(operation, max_attempts=DEFAULT_MAX_ATTEMPTS, backoff_ms=DEFAULT_BACKOFF_MS,
                       sleep=time.sleep):
    """
    Call operation() until it stops raising StaleWriteError.

    The whole unit is re-run from its read on every attempt. Attempt n waits
    backoff_ms * n milliseconds before the next one. Any other exception
    propagates immediately.

    Raises:
        ConcurrencyConflictError: after max_attempts stale writes
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except StaleWriteError as e:
            if attempt == max_attempts:
                logger.warning(f"Giving up after {attempt} concurrent modification(s): {e}")
                raise ConcurrencyConflictError() from e
            delay_ms = backoff_ms * attempt
            logger.info(f"Concurrent modification on attempt {attempt}, retrying in {delay_ms}ms")
            sleep(delay_ms / 1000.0)
