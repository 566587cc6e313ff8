"""Exponential backoff shared by provider clients."""

import logging
import random
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryableError(Exception):
    """Transient provider failure worth retrying."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


def backoff_delay(attempt: int, base_delay: float = 1.5, max_delay: float = 60.0,
                  jitter: float = 0.3) -> float:
    """Delay before retry number attempt (1-based)."""
    return min(max_delay, base_delay * 2 ** (attempt - 1)) + random.uniform(0, jitter)


def with_backoff(operation: Callable[[], T], name: str, max_attempts: int = 5,
                 base_delay: float = 1.5, max_delay: float = 60.0,
                 sleep: Callable[[float], None] = time.sleep) -> T:
    """Run operation, retrying transient errors; the last error is re-raised."""
    attempt = 0
    while True:
        try:
            return operation()
        except (RetryableError, ConnectionError, TimeoutError) as e:
            attempt += 1
            if attempt >= max_attempts:
                logger.error(f"{name} failed after {attempt} attempts: {e}")
                raise
            retry_after = getattr(e, "retry_after", None)
            wait = retry_after if retry_after is not None else backoff_delay(attempt, base_delay, max_delay)
            logger.warning(f"Transient error on {name}, retrying in {wait:.1f}s: {e}")
            sleep(wait)
