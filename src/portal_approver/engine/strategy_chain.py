"""
Strategy Chain Executor - Try interaction strategies until one verifies.

A strategy is a self-contained way to perform one semantic action
(locate, interact, settle). The executor tries strategies strictly in
order and re-checks a verification predicate after each attempt. The
first strategy whose post-condition holds wins; nothing after it runs.

Exhaustion leaves the UI in an uncertain state (a menu may be open, a
dialog half-filled). Callers re-verify or re-navigate before going on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional
import logging
import time

from portal_approver.exceptions import RunCancelledError, StructuralError
from portal_approver.utils.waiting import CancelToken, settle, wait_until

logger = logging.getLogger(__name__)

# An action returns False when the strategy does not apply (its control
# is absent); anything else means "attempted, now verify".
StrategyAction = Callable[[], Awaitable[Optional[bool]]]
VerifyPredicate = Callable[[], Awaitable[bool]]


class ChainStatus(Enum):
    """Final status of a chain attempt."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class Strategy:
    """
    One concrete way to perform a semantic UI action.

    Attributes:
        name: Identifier used in logs and results
        action: Coroutine factory performing the interaction
        settle_ms: Pause after the action before verification starts
    """
    name: str
    action: StrategyAction
    settle_ms: int = 0


@dataclass
class ChainBudget:
    """
    Verification budget per strategy.

    Attributes:
        tries: Verification polls after each strategy's action
        interval_ms: Pause between polls
    """
    tries: int = 3
    interval_ms: int = 250

    @property
    def window_ms(self) -> int:
        return max(0, (self.tries - 1) * self.interval_ms)


@dataclass
class StrategyAttempt:
    """Record of a single strategy attempt."""
    name: str
    applied: bool
    verified: bool
    duration_ms: float = 0
    error: Optional[str] = None


@dataclass
class ChainResult:
    """
    Result of running a strategy chain.

    Attributes:
        status: SUCCESS or EXHAUSTED
        strategy: Winning strategy name, "already_satisfied" when the
            post-condition held before any action, None when exhausted
        attempts: Every strategy attempted, in order
    """
    status: ChainStatus
    strategy: Optional[str] = None
    attempts: List[StrategyAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == ChainStatus.SUCCESS

    @property
    def performed_actions(self) -> int:
        return sum(1 for a in self.attempts if a.applied)

    def describe(self) -> str:
        if self.succeeded:
            return f"succeeded via {self.strategy}"
        tried = ", ".join(
            f"{a.name}({'error: ' + a.error if a.error else 'applied' if a.applied else 'n/a'})"
            for a in self.attempts
        )
        return f"exhausted after [{tried}]"


ALREADY_SATISFIED = "already_satisfied"


class StrategyChainExecutor:
    """
    Execute ordered strategies with post-condition verification.

    Example:
        >>> executor = StrategyChainExecutor()
        >>> result = await executor.attempt(
        ...     [Strategy("native", pick_native), Strategy("widget", pick_widget)],
        ...     verify=label_is_selected,
        ...     budget=ChainBudget(tries=3, interval_ms=250),
        ... )
        >>> result.succeeded
        True
    """

    def __init__(self, cancel: Optional[CancelToken] = None):
        self._cancel = cancel

    async def attempt(
        self,
        strategies: List[Strategy],
        verify: VerifyPredicate,
        budget: Optional[ChainBudget] = None,
        precheck: bool = True,
        label: str = "action",
    ) -> ChainResult:
        """
        Try strategies in order until one satisfies ``verify``.

        Args:
            strategies: Ordered strategies, cheapest/most reliable first
            verify: Post-condition predicate
            budget: Verification polls per strategy
            precheck: Check ``verify`` before any action; an already
                satisfied post-condition returns success with no action
            label: Name of the semantic action for logs

        Returns:
            ChainResult; EXHAUSTED is not retried here

        Raises:
            StructuralError: Propagated from strategies or verification
            RunCancelledError: If the run is cancelled mid-chain
        """
        budget = budget or ChainBudget()
        attempts: List[StrategyAttempt] = []

        if precheck and await self._verify(verify):
            logger.debug(f"{label}: post-condition already holds, no action taken")
            return ChainResult(status=ChainStatus.SUCCESS, strategy=ALREADY_SATISFIED)

        for strategy in strategies:
            if self._cancel:
                self._cancel.raise_if_cancelled()

            start = time.time()
            applied = False
            error: Optional[str] = None

            try:
                outcome = await strategy.action()
                applied = outcome is not False
            except (StructuralError, RunCancelledError):
                raise
            except Exception as e:
                error = str(e).splitlines()[0] if str(e) else type(e).__name__
                applied = True
                logger.debug(f"{label}: strategy '{strategy.name}' raised: {e}")

            verified = False
            if applied:
                if strategy.settle_ms:
                    await settle(strategy.settle_ms, self._cancel)
                verified = await wait_until(
                    lambda: self._verify(verify),
                    timeout_ms=budget.window_ms,
                    interval_ms=max(1, budget.interval_ms),
                    cancel=self._cancel,
                )

            duration = (time.time() - start) * 1000
            attempts.append(StrategyAttempt(
                name=strategy.name,
                applied=applied,
                verified=verified,
                duration_ms=duration,
                error=error,
            ))

            if verified:
                logger.info(f"{label}: ✓ {strategy.name} ({duration:.0f}ms)")
                return ChainResult(status=ChainStatus.SUCCESS, strategy=strategy.name, attempts=attempts)

            if applied:
                logger.debug(f"{label}: strategy '{strategy.name}' did not verify")

        result = ChainResult(status=ChainStatus.EXHAUSTED, attempts=attempts)
        logger.warning(f"{label}: {result.describe()}")
        return result

    async def _verify(self, verify: VerifyPredicate) -> bool:
        try:
            return bool(await verify())
        except (StructuralError, RunCancelledError):
            raise
        except Exception as e:
            logger.debug(f"Verification raised, treating as unmet: {e}")
            return False
