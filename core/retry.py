#!/usr/bin/env python3
"""
Retry logic for calls to external services.
Retries transient failures with exponential backoff and a bounded attempt count.
"""

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Delay before the next attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed.
        base_delay: Delay after the first failure, in seconds.
        max_delay: Upper bound for any single delay.

    Returns:
        base_delay * 2**attempt, capped at max_delay.
    """
    return min(base_delay * (2 ** attempt), max_delay)


def retry_with_backoff(
    operation: Callable[[], T],
    is_retryable: Callable[[BaseException], bool],
    max_attempts: int = 4,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """
    Run an operation, retrying transient failures.

    Args:
        operation: Zero-argument callable to run.
        is_retryable: Predicate deciding whether an exception is transient.
        max_attempts: Total number of attempts, including the first.
        base_delay: Initial backoff delay in seconds.
        max_delay: Cap for a single backoff delay.
        sleep: Sleep function (injectable for tests).
        description: Label used in log messages.

    Returns:
        The operation's result.

    Raises:
        The last exception raised by the operation, once attempts are exhausted
        or as soon as a non-retryable exception occurs.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                logger.error(f"{description} failed with non-retryable error: {e}")
                raise
            if attempt == max_attempts - 1:
                logger.error(f"{description} failed after {max_attempts} attempt(s): {e}")
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s"
            )
            sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"{description}: retry loop exited unexpectedly")
