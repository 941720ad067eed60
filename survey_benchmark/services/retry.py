"""
Bounded retry with jittered exponential backoff.

Wraps tenacity's AsyncRetrying so persistence calls share one retry policy:
a fixed number of attempts, full-jitter exponential waits capped at a
maximum delay, and a warning log before every retry. When attempts run out
RetryExhaustedError carries the attempt count and the last exception so
callers can record the failure instead of propagating it.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    stop_after_attempt,
    wait_random_exponential,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException]) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")


def _log_retry(description: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{description} attempt {retry_state.attempt_number} failed ({error}); "
            f"retrying in {wait:.2f}s"
        )
    return before_sleep


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    description: str = "operation",
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
) -> T:
    """
    Run an async operation with bounded, jittered retries.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        description: Label used in logs and errors
        max_attempts: Total attempts including the first
        base_delay: Exponential backoff multiplier in seconds
        max_delay: Upper bound for a single wait in seconds

    Returns:
        The operation's result from the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt raised
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_random_exponential(multiplier=base_delay, max=max_delay),
        before_sleep=_log_retry(description),
    )
    try:
        return await retrying(operation)
    except RetryError as e:
        last_attempt = e.last_attempt
        raise RetryExhaustedError(
            description,
            last_attempt.attempt_number,
            last_attempt.exception(),
        ) from last_attempt.exception()


__all__ = ['RetryExhaustedError', 'retry_async']
