"""
Retry with exponential backoff for portal navigation.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
import logging

from portal_approver.exceptions import PageUnreachableError, RunCancelledError
from portal_approver.utils.waiting import CancelToken, settle

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts
        initial_delay_ms: Delay before the first retry
        max_delay_ms: Upper bound for the delay between retries
        backoff_multiplier: Growth factor of the delay
        retry_on: Exception types that are retried
        give_up_on: Exception types never retried, even if listed in retry_on
        on_retry: Called with (attempt, error) before each retry
    """
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    give_up_on: Tuple[Type[BaseException], ...] = (RunCancelledError, PageUnreachableError)
    on_retry: Optional[Callable[[int, BaseException], None]] = None

    def delay_before(self, attempt: int) -> int:
        """Delay in ms before retry number ``attempt`` (1-based)."""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return int(min(delay, self.max_delay_ms))


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    label: str = "operation",
    cancel: Optional[CancelToken] = None,
) -> T:
    """
    Await ``func()`` until it succeeds or the attempts run out.

    Args:
        func: Zero-argument coroutine function
        config: Retry configuration
        label: What is being attempted, for the log (e.g. the URL)
        cancel: Run cancel token; cancels the backoff pause

    Returns:
        The result of the first successful attempt

    Raises:
        The last error once every attempt failed, any error not in
        ``retry_on`` immediately, and RunCancelledError on cancellation
    """
    attempts = max(1, config.max_attempts)
    attempt = 0

    while True:
        attempt += 1
        if cancel:
            cancel.raise_if_cancelled()
        try:
            return await func()
        except config.give_up_on:
            raise
        except config.retry_on as e:
            if attempt == attempts:
                logger.warning(f"{label}: giving up after {attempts} attempt(s): {e}")
                raise

            delay_ms = config.delay_before(attempt)
            logger.warning(f"{label}: attempt {attempt}/{attempts} failed: {e}. Retrying in {delay_ms}ms")
            if config.on_retry:
                config.on_retry(attempt, e)
            await settle(delay_ms, cancel)
