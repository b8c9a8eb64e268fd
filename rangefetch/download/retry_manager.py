"""Retry management with exponential backoff."""

import asyncio
import random
from typing import Any, Callable, Optional

from rangefetch.logs.logger import get_logger
from rangefetch.storage.exceptions import TransientError
from rangefetch.utils.constants import (
    BACKOFF_JITTER_RATIO, BACKOFF_MULTIPLIER, DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_INITIAL_BACKOFF, DEFAULT_MAX_BACKOFF
)

logger = get_logger(__name__)


def compute_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float = DEFAULT_MAX_BACKOFF,
    multiplier: float = BACKOFF_MULTIPLIER
) -> float:
    """Delay before retry number ``attempt + 1``.

    Pure function of its inputs: ``base_delay * multiplier ** attempt``,
    capped at ``max_delay``.

    Args:
        attempt: Zero-based index of the attempt that just failed
        base_delay: Delay after the first failure, in seconds
        max_delay: Upper bound on any delay
        multiplier: Growth factor between consecutive delays

    Returns:
        Delay in seconds
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    return min(base_delay * (multiplier ** attempt), max_delay)


class RetriesExhaustedError(Exception):
    """Raised by the retry loop when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"All {attempts} attempts failed: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryManager:
    """Manages retry logic with exponential backoff and jitter."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        jitter_ratio: float = BACKOFF_JITTER_RATIO
    ):
        """Initialize retry manager.

        Args:
            max_attempts: Total attempts, including the first
            initial_backoff: Delay after the first failure in seconds
            max_backoff: Upper bound on any delay in seconds
            jitter_ratio: Fraction of the delay randomised in both directions
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.jitter_ratio = jitter_ratio
        self._sleep = asyncio.sleep

    def calculate_backoff(self, attempt: int, exception: Optional[Exception] = None) -> float:
        """Calculate backoff time for retry attempt.

        Args:
            attempt: Current attempt number (0-based)
            exception: Exception that triggered retry

        Returns:
            Backoff time in seconds
        """
        # Honour server-provided throttling hints
        if isinstance(exception, TransientError) and exception.retry_after:
            return min(exception.retry_after, self.max_backoff)

        base_backoff = compute_backoff(attempt, self.initial_backoff, self.max_backoff)

        # Add jitter (±25% of base backoff by default)
        jitter = base_backoff * self.jitter_ratio * (2 * random.random() - 1)
        return max(base_backoff + jitter, 0.0)

    async def retry_with_backoff(
        self,
        func: Callable,
        *args,
        retryable_exceptions: tuple = (TransientError,),
        max_attempts: Optional[int] = None,
        on_retry: Optional[Callable[[int, int, float, Exception], None]] = None,
        **kwargs
    ) -> Any:
        """Execute coroutine function with retry and exponential backoff.

        Args:
            func: Coroutine function to execute
            *args: Function arguments
            retryable_exceptions: Exceptions that should trigger retry
            max_attempts: Override default attempt count
            on_retry: Called with (attempt, max_attempts, delay, error) before sleeping
            **kwargs: Function keyword arguments

        Returns:
            Function result

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable error
            Exception: Any non-retryable exception, unchanged
        """
        attempts_allowed = max_attempts or self.max_attempts
        last_exception: Optional[Exception] = None

        for attempt in range(attempts_allowed):
            try:
                return await func(*args, **kwargs)

            except retryable_exceptions as e:
                last_exception = e

                if attempt == attempts_allowed - 1:
                    logger.debug(f"All retry attempts exhausted for {func.__name__}: {e}")
                    break

                backoff_time = self.calculate_backoff(attempt, e)

                error_details = {
                    'function': func.__name__,
                    'attempt': f"{attempt + 1}/{attempts_allowed}",
                    'error_type': type(e).__name__,
                    'error_message': str(e),
                    'backoff_time': f"{backoff_time:.2f}s"
                }
                if getattr(e, 'status_code', None) is not None:
                    error_details['status_code'] = e.status_code
                logger.debug(f"RETRYABLE ERROR: {error_details}")

                if on_retry:
                    on_retry(attempt + 1, attempts_allowed, backoff_time, e)

                await self._sleep(backoff_time)

            except Exception as e:
                error_msg = str(e) if str(e) else f"{type(e).__name__}: {repr(e)}"
                logger.debug(f"Non-retryable error in {func.__name__}: {error_msg}")
                raise

        raise RetriesExhaustedError(attempts_allowed, last_exception)
