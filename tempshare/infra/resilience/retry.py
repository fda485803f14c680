"""Backoff for storage calls that may fail transiently.

The sweep wraps each bucket deletion in retry_with_backoff. A bucket that
is already gone is not retried; an S3 throttle or a dropped connection is.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tempshare.shared.errors import ObjectNotFoundError, StorageError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """Every attempt failed; ``last_error`` is the final failure."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait in between.

    Delays grow geometrically from ``base_delay`` and are capped at
    ``max_delay``. With ``jitter`` each delay is scaled by a random factor
    in [1 - jitter, 1].
    """

    max_retries: int = 3
    base_delay: float = 0.25
    multiplier: float = 2.0
    max_delay: float = 5.0
    jitter: float = 0.0

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (0-indexed), before jitter."""
        return min(self.base_delay * self.multiplier**attempt, self.max_delay)

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_retries):
            delay = self.delay_for_attempt(attempt)
            if self.jitter:
                delay *= 1 - random.uniform(0, self.jitter)  # noqa: S311
            yield delay


NO_RETRY = RetryPolicy(max_retries=0)


def is_transient(exc: BaseException) -> bool:
    """Backend faults worth another attempt."""
    if isinstance(exc, ObjectNotFoundError):
        return False
    # ConnectionError and TimeoutError are OSErrors
    return isinstance(exc, StorageError | OSError)


async def retry_with_backoff(  # noqa: UP047
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] = is_transient,
    operation: str = "",
) -> T:
    """Await ``fn()`` until it succeeds or the policy runs out.

    Raises:
        RetryExhaustedError: the first attempt and every retry failed.
        Exception: anything ``should_retry`` rejects, unchanged.
    """
    p = policy or RetryPolicy()
    delays = p.delays()
    attempts = 0
    while True:
        attempts += 1
        try:
            return await fn()
        except Exception as exc:
            if not should_retry(exc):
                raise
            delay = next(delays, None)
            if delay is None:
                raise RetryExhaustedError(attempts=attempts, last_error=exc) from exc
            logger.debug("%s failed (%s), attempt %d, retrying in %.2fs", operation or "call", exc, attempts, delay)
            await asyncio.sleep(delay)
