"""
Core data model shared by the approval engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import re


class Outcome(Enum):
    """Definitive result recorded for a request identifier."""
    APPROVED = "approved"
    APPROVED_TWO_PHASE = "approved_two_phase"  # secondary, then finalized in primary
    NOT_FOUND = "not_found"
    FOUND_BUT_ACTION_FAILED = "found_but_action_failed"

    @property
    def is_approval(self) -> bool:
        return self in (Outcome.APPROVED, Outcome.APPROVED_TWO_PHASE)


class InteractionMode(Enum):
    """How a found row gets approved."""
    BULK = "bulk"        # select rows, then one approve + confirm per sub-batch
    PER_ROW = "per_row"  # each row's inline approve control


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)", text) is not None


@dataclass(frozen=True)
class ActorIdentity:
    """
    A named "acting as" view of the portal.

    The label is used both for matching UI text and for log output.
    Matching is case-preserving and word-bounded: either the full label or
    its first comma-delimited token ("Doe" for "Doe, Jane"). "Doe, Janet"
    does not name "Doe, Jane".
    """
    label: str

    @property
    def first_token(self) -> str:
        return self.label.split(",")[0].strip()

    def matches(self, text: Optional[str], first_token: bool = True) -> bool:
        """
        Check whether displayed text names this identity.

        Args:
            text: Indicator or option text
            first_token: Also accept the first token alone
        """
        if not text or not text.strip():
            return False
        if _contains_phrase(text, self.label):
            return True
        return first_token and bool(self.first_token) and _contains_phrase(text, self.first_token)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class VisitOrder:
    """
    Fixed sequence of identities tried for unresolved identifiers.

    Attributes:
        identities: Primary first, then each secondary in turn
        return_to_primary: Re-surface secondary approvals in the primary
            identity to finalize a dependent approval step
    """
    identities: Tuple[ActorIdentity, ...]
    return_to_primary: bool = False

    def __post_init__(self) -> None:
        if not self.identities:
            raise ValueError("VisitOrder needs at least one identity")
        labels = [identity.label for identity in self.identities]
        if len(set(labels)) != len(labels):
            raise ValueError(f"Duplicate identity in visit order: {labels}")

    @property
    def primary(self) -> ActorIdentity:
        return self.identities[0]

    @property
    def secondaries(self) -> Tuple[ActorIdentity, ...]:
        return self.identities[1:]

    @property
    def has_return_pass(self) -> bool:
        return self.return_to_primary and len(self.identities) > 1

    def is_primary(self, identity: ActorIdentity) -> bool:
        return identity == self.primary


@dataclass
class ResolveResult:
    """
    Outcome of resolving one identifier under the active identity.

    Attributes:
        request_id: The identifier searched for
        found: A matching row appeared within the search bound
        actioned: The row was selected (bulk) or approved (per-row)
        approved: Approval completed on the spot (per-row mode only)
        strategy: Name of the interaction strategy that succeeded
        note: Free-form detail for the run log
    """
    request_id: str
    found: bool = False
    actioned: bool = False
    approved: bool = False
    strategy: Optional[str] = None
    note: str = ""

    @property
    def action_failed(self) -> bool:
        return self.found and not self.actioned


@dataclass
class PassResult:
    """Identifiers settled during one identity pass."""
    identity: ActorIdentity
    approved: list = field(default_factory=list)
    action_failed: dict = field(default_factory=dict)  # request_id -> note
    remaining: list = field(default_factory=list)
    sub_batches: int = 0
