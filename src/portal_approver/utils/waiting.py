"""
Bounded waits and cooperative cancellation.

Every wait in the approver goes through these helpers, so every suspension
point has an upper bound and observes the run's cancel token.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from portal_approver.exceptions import RunCancelledError

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Cooperative cancellation flag checked at each suspension point.

    Example:
        >>> token = CancelToken()
        >>> token.cancel("operator pressed Ctrl+C")
        >>> token.raise_if_cancelled()  # raises RunCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self, timeout_s: float) -> bool:
        """Wait up to timeout_s for cancellation; True if cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return False
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError(f"Run cancelled: {self.reason}", {"reason": self.reason})


async def settle(delay_ms: int, cancel: Optional[CancelToken] = None) -> None:
    """
    Fixed pause for UI settling when no completion signal is observable.

    Returns early (and raises) if the run is cancelled during the pause.
    """
    if cancel:
        cancel.raise_if_cancelled()
    if delay_ms <= 0:
        return
    if cancel is None:
        await asyncio.sleep(delay_ms / 1000)
        return
    if await cancel.wait(delay_ms / 1000):
        cancel.raise_if_cancelled()


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    timeout_ms: int,
    interval_ms: int,
    cancel: Optional[CancelToken] = None,
) -> bool:
    """
    Poll an async predicate until it holds or the bound elapses.

    The predicate is always evaluated at least once, even with a zero
    timeout.

    Args:
        predicate: Async callable returning truthy when the condition holds
        timeout_ms: Upper bound for the whole wait
        interval_ms: Pause between evaluations
        cancel: Optional cancel token

    Returns:
        True if the condition held before the bound, False otherwise
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000

    while True:
        if cancel:
            cancel.raise_if_cancelled()
        if await predicate():
            return True
        remaining_ms = (deadline - loop.time()) * 1000
        if remaining_ms <= 0:
            return False
        await settle(int(min(interval_ms, remaining_ms)) or 1, cancel)
