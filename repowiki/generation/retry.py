"""Retry policy shared by every stage that calls the completion service.

Each stage picks its own attempt count and backoff curve; the loop,
logging and error wrapping live here once. The policy never holds a
resource across a sleep: callers that need a concurrency slot acquire it
inside the attempt function, so the slot is released before the backoff.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger("repowiki.generation.retry")

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{label} failed after {attempts} attempts. Last error: {last_error}"
        )


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """Delay of ``step_seconds * attempt`` after the given (1-based) attempt."""
    return lambda attempt: step_seconds * attempt


def _always_retry(error: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, how long to wait, and what is worth retrying.

    Attributes:
        max_attempts: Total attempts including the first one.
        backoff: Maps the 1-based attempt that just failed to a delay in seconds.
        is_retryable: Errors for which it returns False are re-raised at once.
        sleep: Awaitable sleep, swappable in tests.
    """

    max_attempts: int
    backoff: Callable[[int], float]
    is_retryable: Callable[[BaseException], bool] = _always_retry
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "operation") -> T:
        """Await ``fn()`` until it succeeds or attempts run out.

        Cancellation is never retried: ``asyncio.CancelledError`` is not an
        ``Exception`` subclass and passes straight through.

        Raises:
            RetryExhaustedError: after ``max_attempts`` failures.
            Exception: the original error when ``is_retryable`` rejects it.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                last_error = e
                if attempt >= self.max_attempts:
                    break
                delay = self.backoff(attempt)
                logger.warning(
                    "%s: attempt %d/%d failed (%s), retrying in %.0fs",
                    label, attempt, self.max_attempts, e, delay,
                )
                await self.sleep(delay)

        logger.error("%s: giving up after %d attempts: %s", label, self.max_attempts, last_error)
        raise RetryExhaustedError(label, self.max_attempts, last_error) from last_error


# Planner: all-or-nothing, 5 attempts, 5s x attempt between them.
PLANNER_RETRY = RetryPolicy(max_attempts=5, backoff=linear_backoff(5.0))

# Topic bodies: 5 attempts, 10s x attempt; exhaustion drops the topic only.
TOPIC_RETRY = RetryPolicy(max_attempts=5, backoff=linear_backoff(10.0))
