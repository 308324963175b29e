"""
Batch Reconciliation Engine - Drive identifiers through the VisitOrder.

For each identity in order the engine switches (a no-op if it is already
active), then works the remaining identifiers in sub-batches:

- every identifier still remaining is searched; a found one leaves the
  working set, a missing one stays for the next sub-batch
- a sub-batch ends once ``batch_size`` identifiers have been actioned
- in bulk mode one approve + confirm is issued per sub-batch
- a sub-batch that finds nothing ends the identity's pass

Outcomes are written to the RunLog as each sub-batch settles. Identifiers
approved only in a secondary identity are re-surfaced in the primary when
the VisitOrder asks for a return pass, and are logged once that pass has
run. Every identifier gets exactly one RunLog record.
"""

from typing import Dict, List, Optional, Tuple, TYPE_CHECKING
import logging

from portal_approver.engine.models import (
    ActorIdentity,
    InteractionMode,
    Outcome,
    PassResult,
    ResolveResult,
    VisitOrder,
)
from portal_approver.utils.waiting import CancelToken

if TYPE_CHECKING:
    from portal_approver.engine.actor_switch import ActorSwitchController
    from portal_approver.engine.request_resolver import RequestResolver
    from portal_approver.reporting.run_log import RunLog

logger = logging.getLogger(__name__)


class BatchReconciliationEngine:
    """
    Reconcile a list of request identifiers across acting identities.

    Example:
        >>> engine = BatchReconciliationEngine(switcher, requests, RunLog(), batch_size=2)
        >>> log = await engine.run(["1001", "1002", "1003"], settings.visit_order())
        >>> log.summary()["approved"]
        3
    """

    def __init__(
        self,
        switcher: "ActorSwitchController",
        requests: "RequestResolver",
        run_log: "RunLog",
        mode: InteractionMode = InteractionMode.BULK,
        batch_size: int = 25,
        retry_on_action_failure: bool = False,
        cancel: Optional[CancelToken] = None,
    ):
        """
        Initialize the engine.

        Args:
            switcher: Actor switch controller
            requests: Request resolver for the same page
            run_log: Log receiving one record per identifier
            mode: Bulk-then-confirm or per-row approval
            batch_size: Actioned identifiers per sub-batch
            retry_on_action_failure: Carry found-but-not-actioned
                identifiers to the next identity instead of settling them
            cancel: Run cancel token
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        self.switcher = switcher
        self.requests = requests
        self.run_log = run_log
        self.mode = mode
        self.batch_size = batch_size
        self.retry_on_action_failure = retry_on_action_failure
        self._cancel = cancel

        # What is in progress, for fatal diagnostics
        self.current_identity: Optional[ActorIdentity] = None
        self.current_id: Optional[str] = None

        self._visit_order: Optional[VisitOrder] = None
        # Approved in a secondary identity, waiting for the return pass
        self._awaiting: Dict[str, Tuple[ActorIdentity, str]] = {}
        # Found but not actioned, kept when retry_on_action_failure is set
        self._failed: Dict[str, Tuple[ActorIdentity, str]] = {}

    async def run(self, ids: List[str], visit_order: VisitOrder) -> "RunLog":
        """
        Resolve every identifier through the VisitOrder.

        Returns:
            The run log, holding one record per identifier

        Raises:
            StructuralError: On an unverifiable switch or an unreachable page;
                the log keeps every record written so far
            RunCancelledError: If the cancel token fires
        """
        remaining = self._unique(ids)
        self._visit_order = visit_order
        self._awaiting = {}
        self._failed = {}

        logger.info(
            f"Reconciling {len(remaining)} request(s) across "
            f"{', '.join(str(i) for i in visit_order.identities)} "
            f"({self.mode.value}, batch size {self.batch_size})"
        )

        try:
            for identity in visit_order.identities:
                if not remaining:
                    break

                result = await self.run_pass(identity, remaining)

                carried = set(result.remaining)
                if self.retry_on_action_failure:
                    carried.update(result.action_failed)
                remaining = [r for r in remaining if r in carried]

                logger.info(
                    f"Pass as {identity}: {len(result.approved)} approved, "
                    f"{len(result.action_failed)} action failed, {len(remaining)} carried over"
                )

            tried = ", ".join(str(i) for i in visit_order.identities)
            for request_id in remaining:
                failure = self._failed.pop(request_id, None)
                if failure is not None:
                    identity, note = failure
                    self.run_log.append(
                        request_id,
                        Outcome.FOUND_BUT_ACTION_FAILED,
                        identity=identity.label,
                        note=note,
                    )
                else:
                    self.run_log.append(request_id, Outcome.NOT_FOUND, note=f"not found as {tried}")

            if self._awaiting:
                await self._return_pass(visit_order.primary)
        finally:
            # A pass that never completed still leaves its approvals on record
            for request_id, (identity, note) in self._awaiting.items():
                self.run_log.append(
                    request_id,
                    Outcome.APPROVED,
                    identity=identity.label,
                    note=f"{note}; return pass to {visit_order.primary} not completed",
                )
            self._awaiting = {}
            self.current_id = None

        return self.run_log

    async def run_pass(
        self,
        identity: ActorIdentity,
        ids: List[str],
        record: bool = True,
    ) -> PassResult:
        """
        Work ``ids`` in sub-batches under one identity.

        Args:
            identity: Identity to act as
            ids: Identifiers still unresolved
            record: Settle outcomes in the RunLog after each sub-batch

        Returns:
            PassResult listing approved, action-failed and remaining IDs
        """
        self._check_cancel()
        self.current_identity = identity
        self.current_id = None
        await self.switcher.switch_to(identity)

        result = PassResult(identity=identity)
        remaining = list(ids)

        while remaining:
            self._check_cancel()
            result.sub_batches += 1
            actioned: List[ResolveResult] = []
            found_any = False

            for request_id in list(remaining):
                if len(actioned) >= self.batch_size:
                    break
                self._check_cancel()
                self.current_id = request_id

                resolved = await self.requests.resolve(request_id)
                if not resolved.found:
                    continue

                found_any = True
                remaining.remove(request_id)
                if resolved.actioned:
                    actioned.append(resolved)
                else:
                    result.action_failed[request_id] = resolved.note
                    if record:
                        self._settle_failed(identity, request_id, resolved.note)

            self.current_id = None
            approved, unconfirmed = await self._finish_sub_batch(actioned)
            result.approved.extend(approved)
            result.action_failed.update(unconfirmed)
            if record:
                self._settle_approved(identity, approved)
                for request_id, note in unconfirmed.items():
                    self._settle_failed(identity, request_id, note)

            if not found_any:
                logger.info(f"No progress as {identity}; {len(remaining)} request(s) roll over")
                break

        result.remaining = remaining
        return result

    async def _finish_sub_batch(
        self,
        actioned: List[ResolveResult],
    ) -> Tuple[List[str], Dict[str, str]]:
        ids = [r.request_id for r in actioned]
        if self.mode == InteractionMode.PER_ROW:
            return ids, {}

        approved: List[str] = []
        unconfirmed: Dict[str, str] = {}
        if ids:
            logger.info(f"Bulk approving {len(ids)} request(s): {', '.join(ids)}")
            if await self.requests.submit_bulk(ids):
                approved = ids
            else:
                unconfirmed = {r: "selected but bulk approve was not confirmed" for r in ids}
        await self.requests.clear_search()
        return approved, unconfirmed

    def _settle_approved(self, identity: ActorIdentity, ids: List[str]) -> None:
        order = self._visit_order
        hold = order is not None and order.has_return_pass and not order.is_primary(identity)
        for request_id in ids:
            self._failed.pop(request_id, None)
            if hold:
                self._awaiting[request_id] = (identity, f"approved as {identity}")
            else:
                self.run_log.append(request_id, Outcome.APPROVED, identity=identity.label)

    def _settle_failed(self, identity: ActorIdentity, request_id: str, note: str) -> None:
        if self.retry_on_action_failure:
            self._failed[request_id] = (identity, note)
        else:
            self.run_log.append(
                request_id,
                Outcome.FOUND_BUT_ACTION_FAILED,
                identity=identity.label,
                note=note,
            )

    async def _return_pass(self, primary: ActorIdentity) -> None:
        logger.info(f"Return pass as {primary} for {len(self._awaiting)} request(s)")
        result = await self.run_pass(primary, list(self._awaiting), record=False)

        for request_id in list(self._awaiting):
            identity, note = self._awaiting.pop(request_id)
            if request_id in result.approved:
                self.run_log.append(
                    request_id,
                    Outcome.APPROVED_TWO_PHASE,
                    identity=identity.label,
                    note=f"{note}, finalized as {primary}",
                )
            elif request_id in result.action_failed:
                self.run_log.append(
                    request_id,
                    Outcome.APPROVED,
                    identity=identity.label,
                    note=f"{note}; finalizing as {primary} failed: {result.action_failed[request_id]}",
                )
            else:
                self.run_log.append(
                    request_id,
                    Outcome.APPROVED,
                    identity=identity.label,
                    note=f"{note}; not pending as {primary}",
                )

    def _check_cancel(self) -> None:
        if self._cancel:
            self._cancel.raise_if_cancelled()

    @staticmethod
    def _unique(ids: List[str]) -> List[str]:
        seen = set()
        unique = []
        for request_id in ids:
            if request_id not in seen:
                seen.add(request_id)
                unique.append(request_id)
        return unique
