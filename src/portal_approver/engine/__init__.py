"""
Engine module - Resilient interaction engine and batch reconciliation.

Leaf-first: locator resolution, strategy chains, identity switching,
per-request resolution and the batch loop that ties them together.
"""

from portal_approver.engine.models import (
    ActorIdentity,
    InteractionMode,
    Outcome,
    PassResult,
    ResolveResult,
    VisitOrder,
)
from portal_approver.engine.locator_resolver import (
    Candidate,
    LocatorResolver,
    SemanticTarget,
)
from portal_approver.engine.strategy_chain import (
    ALREADY_SATISFIED,
    ChainBudget,
    ChainResult,
    ChainStatus,
    Strategy,
    StrategyAttempt,
    StrategyChainExecutor,
)
from portal_approver.engine.actor_switch import ActorSwitchController
from portal_approver.engine.request_resolver import RequestResolver
from portal_approver.engine.batch_engine import BatchReconciliationEngine

__all__ = [
    # Models
    "ActorIdentity",
    "InteractionMode",
    "Outcome",
    "PassResult",
    "ResolveResult",
    "VisitOrder",
    # Locators
    "Candidate",
    "LocatorResolver",
    "SemanticTarget",
    # Strategy chains
    "ALREADY_SATISFIED",
    "ChainBudget",
    "ChainResult",
    "ChainStatus",
    "Strategy",
    "StrategyAttempt",
    "StrategyChainExecutor",
    # Components
    "ActorSwitchController",
    "RequestResolver",
    "BatchReconciliationEngine",
]
