"""
Request Resolver - Search one identifier and action its row.

For a single request ID: clear the search field, enter the ID, submit,
poll (bounded) for a matching row, then run the interaction chain for the
active mode:

- bulk: mark the row selected; approval happens later in one bulk
  approve + confirm per sub-batch (see submit_bulk)
- per_row: click the row's own approve control, wait the settle delay

"Not found" is an ordinary outcome. "Found but no strategy verified" is a
distinct outcome and captures diagnostics.
"""

from typing import List, Optional, TYPE_CHECKING
import logging

from portal_approver.engine.locator_resolver import (
    Candidate,
    LocatorResolver,
    SemanticTarget,
    raise_if_page_closed,
)
from portal_approver.engine.models import InteractionMode, ResolveResult
from portal_approver.engine.strategy_chain import (
    ChainBudget,
    Strategy,
    StrategyChainExecutor,
)
from portal_approver.exceptions import PortalLayoutError, RunCancelledError, StructuralError
from portal_approver.utils.waiting import CancelToken, settle, wait_until

if TYPE_CHECKING:
    from playwright.async_api import Page
    from portal_approver.reporting.diagnostics import DiagnosticsCollector

logger = logging.getLogger(__name__)


class RequestResolver:
    """
    Resolve request identifiers under the currently active identity.

    Example:
        >>> resolver = RequestResolver(page, locators, executor, InteractionMode.BULK)
        >>> result = await resolver.resolve("1001")
        >>> result.found, result.actioned
        (True, True)
    """

    def __init__(
        self,
        page: "Page",
        resolver: LocatorResolver,
        executor: StrategyChainExecutor,
        mode: InteractionMode = InteractionMode.BULK,
        diagnostics: Optional["DiagnosticsCollector"] = None,
        budget: Optional[ChainBudget] = None,
        search_wait_ms: int = 40000,
        poll_interval_ms: int = 700,
        settle_delay_ms: int = 1000,
        input_wait_ms: int = 8000,
        confirm_wait_ms: int = 3000,
        click_search_button: bool = True,
        cancel: Optional[CancelToken] = None,
    ):
        """
        Initialize the resolver.

        Args:
            page: Playwright page
            resolver: Locator resolver
            executor: Strategy chain executor
            mode: Bulk-then-confirm or per-row immediate approval
            diagnostics: Collector for action-exhausted rows
            budget: Verification budget per interaction strategy
            search_wait_ms: Upper bound for a result row to appear
            poll_interval_ms: Interval between result polls
            settle_delay_ms: Pause after approve clicks
            input_wait_ms: Upper bound for the search field to appear
            confirm_wait_ms: Upper bound for the bulk confirm control
            click_search_button: Also click the search trigger after Enter
            cancel: Run cancel token
        """
        self._page = page
        self._resolver = resolver
        self._executor = executor
        self.mode = mode
        self._diagnostics = diagnostics
        self._budget = budget or ChainBudget()
        self._search_wait_ms = search_wait_ms
        self._poll_interval_ms = poll_interval_ms
        self._settle_delay_ms = settle_delay_ms
        self._input_wait_ms = input_wait_ms
        self._confirm_wait_ms = confirm_wait_ms
        self._click_search_button = click_search_button
        self._cancel = cancel

    async def resolve(self, request_id: str) -> ResolveResult:
        """
        Search for one identifier and try to action its row.

        A search that fails while typing or submitting is reported as not
        found so the run moves on to the next identifier.

        Returns:
            ResolveResult with found / actioned / approved flags

        Raises:
            PortalLayoutError: If the search field never appears
            PageUnreachableError: If the page is gone
        """
        try:
            await self.search(request_id)
        except (StructuralError, RunCancelledError):
            raise
        except Exception as e:
            raise_if_page_closed(e)
            logger.warning(f"  {request_id}: search failed: {e}")
            return ResolveResult(
                request_id=request_id,
                found=False,
                note=f"search failed: {e}",
            )

        row = await self.wait_for_row(request_id)
        if row is None:
            logger.info(f"  {request_id}: not found within {self._search_wait_ms}ms")
            return ResolveResult(
                request_id=request_id,
                found=False,
                note=f"no result within {self._search_wait_ms}ms",
            )

        if self.mode == InteractionMode.PER_ROW:
            return await self._approve_row(request_id, row)
        return await self._select_row(request_id, row)

    async def search(self, request_id: str) -> None:
        """Clear the search field, type the identifier and submit."""
        field = await self.find_search_input()
        locator = field.locator

        try:
            await locator.scroll_into_view_if_needed()
            await locator.click(click_count=3, force=True)
        except Exception as e:
            logger.debug(f"Search field focus failed: {e}")

        await locator.fill("")
        await locator.fill(request_id)
        await locator.press("Enter")

        if self._click_search_button:
            button = await self._resolver.first(SemanticTarget.SEARCH_BUTTON)
            if button is not None:
                try:
                    await button.locator.click()
                except Exception as e:
                    logger.debug(f"Search trigger click failed: {e}")

    async def find_search_input(self, wait_ms: Optional[int] = None) -> Candidate:
        """
        Locate the visible search field.

        Raises:
            PortalLayoutError: If it does not appear within the bound
        """
        found: List[Candidate] = []

        async def present() -> bool:
            candidate = await self._resolver.first(SemanticTarget.SEARCH_INPUT)
            if candidate is not None:
                found.append(candidate)
                return True
            return False

        wait_ms = self._input_wait_ms if wait_ms is None else wait_ms
        if not await wait_until(present, wait_ms, self._poll_interval_ms, self._cancel):
            raise PortalLayoutError(
                f"Search field not found within {wait_ms}ms",
                target=SemanticTarget.SEARCH_INPUT.value,
            )
        return found[-1]

    async def wait_for_row(self, request_id: str) -> Optional[Candidate]:
        """Poll for the result row of ``request_id`` within the search bound."""
        found: List[Candidate] = []

        async def present() -> bool:
            candidate = await self._resolver.first(SemanticTarget.RESULT_ROW, id=request_id)
            if candidate is not None:
                found.append(candidate)
                return True
            return False

        if await wait_until(present, self._search_wait_ms, self._poll_interval_ms, self._cancel):
            return found[-1]
        return None

    async def clear_search(self) -> None:
        """Empty the search field if it is present."""
        try:
            field = await self.find_search_input(wait_ms=min(self._input_wait_ms, 4000))
        except PortalLayoutError:
            logger.debug("No search field to clear")
            return
        try:
            await field.locator.fill("")
        except Exception as e:
            logger.debug(f"Clearing search failed: {e}")

    async def submit_bulk(self, request_ids: List[str]) -> bool:
        """
        Issue the bulk approve + confirm for the current selection.

        Returns:
            True if the approval verified, False if every strategy failed
            (diagnostics are captured in that case)
        """
        indicator_before = await self._resolver.exists(SemanticTarget.SUCCESS_INDICATOR)

        async def click_bulk(force: bool) -> bool:
            button = await self._resolver.first(SemanticTarget.BULK_APPROVE)
            if button is None:
                return False
            try:
                await button.locator.scroll_into_view_if_needed()
            except Exception as e:
                logger.debug(f"Scroll to bulk approve failed: {e}")
            await button.locator.click(force=force)
            await self._confirm_bulk()
            return True

        async def verify() -> bool:
            if not indicator_before and await self._resolver.exists(SemanticTarget.SUCCESS_INDICATOR):
                return True
            if await self._resolver.exists(SemanticTarget.APPROVE_CONFIRM):
                return False
            return not await self._any_checked()

        result = await self._executor.attempt(
            [
                Strategy("bulk-button", lambda: click_bulk(False)),
                Strategy("bulk-button-force", lambda: click_bulk(True)),
            ],
            verify=verify,
            budget=self._budget,
            precheck=False,
            label=f"bulk approve ({len(request_ids)})",
        )

        if not result.succeeded and self._diagnostics:
            await self._diagnostics.capture(
                self._page,
                tag="bulk-approve-failed",
                note=(
                    f"Bulk approve could not be verified for: {', '.join(request_ids)}\n"
                    f"Strategies: {result.describe()}"
                ),
            )
        return result.succeeded

    async def _confirm_bulk(self) -> None:
        confirms: List[Candidate] = []

        async def confirm_present() -> bool:
            candidate = await self._resolver.first(SemanticTarget.APPROVE_CONFIRM)
            if candidate is not None:
                confirms.append(candidate)
                return True
            return False

        if await wait_until(confirm_present, self._confirm_wait_ms, self._poll_interval_ms, self._cancel):
            await confirms[-1].locator.click(force=True)
        await settle(self._settle_delay_ms, self._cancel)

    async def _select_row(self, request_id: str, row: Candidate) -> ResolveResult:
        async def check_box() -> bool:
            box = await self._resolver.first(SemanticTarget.ROW_CHECKBOX, scope=row, visible_only=False)
            if box is None:
                return False
            await box.locator.check(force=True, timeout=2000)
            return True

        async def click_label() -> bool:
            label = await self._resolver.first(SemanticTarget.ROW_CHECKBOX_LABEL, scope=row)
            if label is None:
                return False
            await label.locator.scroll_into_view_if_needed()
            await label.locator.click(force=True)
            return True

        async def script_click() -> bool:
            box = await self._resolver.first(SemanticTarget.ROW_CHECKBOX, scope=row, visible_only=False)
            if box is None:
                return False
            await box.locator.evaluate("el => el.click()")
            return True

        async def edge_click() -> bool:
            box = await row.locator.bounding_box()
            if not box:
                return False
            await self._page.mouse.click(box["x"] + 12, box["y"] + box["height"] / 2)
            return True

        result = await self._executor.attempt(
            [
                Strategy("checkbox-check", check_box),
                Strategy("label-click", click_label),
                Strategy("script-click", script_click),
                Strategy("row-edge-click", edge_click),
            ],
            verify=lambda: self._row_selected(row),
            budget=self._budget,
            precheck=True,
            label=f"select {request_id}",
        )

        if result.succeeded:
            return ResolveResult(
                request_id=request_id,
                found=True,
                actioned=True,
                strategy=result.strategy,
                note=f"selected via {result.strategy}",
            )
        return await self._action_failed(request_id, "select", result.describe())

    async def _approve_row(self, request_id: str, row: Candidate) -> ResolveResult:
        indicator_before = await self._resolver.exists(SemanticTarget.SUCCESS_INDICATOR)

        async def click_approve(how: str) -> bool:
            button = await self._resolver.first(SemanticTarget.ROW_APPROVE, scope=row)
            if button is None:
                return False
            if how == "script":
                await button.locator.evaluate("el => el.click()")
            else:
                await button.locator.click(force=(how == "force"))
            return True

        async def verify() -> bool:
            if not await self._resolver.exists(SemanticTarget.RESULT_ROW, id=request_id):
                return True
            return not indicator_before and await self._resolver.exists(SemanticTarget.SUCCESS_INDICATOR)

        settle_ms = self._settle_delay_ms
        result = await self._executor.attempt(
            [
                Strategy("approve-button", lambda: click_approve("normal"), settle_ms=settle_ms),
                Strategy("approve-button-force", lambda: click_approve("force"), settle_ms=settle_ms),
                Strategy("approve-button-script", lambda: click_approve("script"), settle_ms=settle_ms),
            ],
            verify=verify,
            budget=self._budget,
            precheck=False,
            label=f"approve {request_id}",
        )

        if result.succeeded:
            return ResolveResult(
                request_id=request_id,
                found=True,
                actioned=True,
                approved=True,
                strategy=result.strategy,
                note=f"approved via {result.strategy}",
            )
        return await self._action_failed(request_id, "approve", result.describe())

    async def _action_failed(self, request_id: str, action: str, detail: str) -> ResolveResult:
        note = f"row found but {action} failed: {detail}"
        logger.warning(f"  {request_id}: {note}")
        if self._diagnostics:
            await self._diagnostics.capture(
                self._page,
                tag=f"{action}-failed-{request_id}",
                note=note,
                request_id=request_id,
            )
        return ResolveResult(request_id=request_id, found=True, actioned=False, note=note)

    async def _row_selected(self, row: Candidate) -> bool:
        boxes = await self._resolver.resolve(SemanticTarget.ROW_CHECKBOX, scope=row, visible_only=False)
        for box in boxes:
            if await box.locator.is_checked():
                return True
        return False

    async def _any_checked(self) -> bool:
        boxes = await self._resolver.resolve(SemanticTarget.ROW_CHECKBOX, visible_only=False)
        for box in boxes:
            try:
                if await box.locator.is_checked():
                    return True
            except Exception as e:
                logger.debug(f"Checkbox state unavailable: {e}")
        return False
