"""Bounded retry with exponential backoff for transient store failures."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy.exc import DisconnectionError, OperationalError

from .errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (OperationalError, DisconnectionError)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff window for store calls.

    delay = min(base_delay * 2 ** attempt, max_delay), scaled by a 0.5-1.5 jitter.
    """

    attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, s) -> "RetryPolicy":
        return cls(
            attempts=max(1, s.STORE_RETRY_ATTEMPTS),
            base_delay=max(0.0, s.STORE_RETRY_BASE_DELAY),
            max_delay=max(s.STORE_RETRY_BASE_DELAY, s.STORE_RETRY_MAX_DELAY),
        )

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


def call_with_retry(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    operation: str,
    on_failure: Callable[[], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn`` until it succeeds or ``policy.attempts`` is spent.

    ``on_failure`` runs after every retryable failure (typically a session
    rollback). Exhaustion raises StoreUnavailable chained to the last error.
    """
    total = max(1, policy.attempts)
    for attempt in range(total):
        try:
            result = fn()
            if attempt > 0:
                logger.info("%s succeeded on attempt %d/%d", operation, attempt + 1, total)
            return result
        except RETRYABLE_EXCEPTIONS as e:
            if on_failure is not None:
                on_failure()
            if attempt + 1 >= total:
                logger.error("All %d attempts failed for %s: %s", total, operation, e)
                raise StoreUnavailable(
                    "Lock store unavailable",
                    operation=operation,
                    attempts=total,
                    original_error=e,
                ) from e
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                operation,
                attempt + 1,
                total,
                delay,
                e,
            )
            sleep(delay)
    raise AssertionError("unreachable")
