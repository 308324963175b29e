"""
Locator Resolver - Ordered, data-driven discovery of portal controls.

Each semantic target ("the user-switch control", "the row for ID X",
"the approve button in a row") maps to an ordered list of selector
strategies. Resolution tries them in priority order and returns every
match as a candidate, most specific strategy first.

Resolution never performs an action. An empty list means "not currently
present"; callers poll for transient absence. A raised PageUnreachableError
means the page itself is gone.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING
import logging

from portal_approver.exceptions import PageUnreachableError

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page
    from portal_approver.config.settings import SelectorSettings

logger = logging.getLogger(__name__)


class SemanticTarget(Enum):
    """UI targets the approver needs to find. Values match SelectorSettings fields."""
    SWITCH_ENTRY = "switch_entry"
    SWITCH_DIALOG = "switch_dialog"
    IDENTITY_SELECT = "identity_select"
    IDENTITY_MENU_OPENER = "identity_menu_opener"
    IDENTITY_OPTION = "identity_option"
    SWITCH_CONFIRM = "switch_confirm"
    ACTIVE_IDENTITY = "active_identity"
    SEARCH_INPUT = "search_input"
    SEARCH_BUTTON = "search_button"
    RESULT_ROW = "result_row"
    ROW_CHECKBOX_LABEL = "row_checkbox_label"
    ROW_CHECKBOX = "row_checkbox"
    ROW_APPROVE = "row_approve"
    BULK_APPROVE = "bulk_approve"
    APPROVE_CONFIRM = "approve_confirm"
    SUCCESS_INDICATOR = "success_indicator"


# Substrings Playwright uses when the page, context or browser is gone
_CLOSED_MARKERS = (
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
    "page has been closed",
)


@dataclass
class Candidate:
    """
    One control found for a semantic target.

    Attributes:
        target: What was asked for
        selector: Concrete selector that matched
        locator: Playwright locator pinned to this match
        priority: Position of the selector in the strategy list
        index: Position of this match among the selector's matches
    """
    target: SemanticTarget
    selector: str
    locator: "Locator"
    priority: int = 0
    index: int = 0


def raise_if_page_closed(error: BaseException) -> None:
    """Turn a Playwright "closed" error into PageUnreachableError."""
    message = str(error).lower()
    if any(marker in message for marker in _CLOSED_MARKERS):
        raise PageUnreachableError(f"Portal page unreachable: {error}")

def escape_selector_value(value: str) -> str:
    """Escape a value for use inside a quoted selector string."""
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


def fill_template(template: str, **params: str) -> str:
    """
    Substitute ``{name}`` placeholders in a selector template.

    Only the given names are replaced, so other braces in a selector are
    left alone.

    Raises:
        ValueError: If a known placeholder is left without a value
    """
    selector = template
    for name, value in params.items():
        selector = selector.replace("{" + name + "}", escape_selector_value(value))
    for name in ("id", "label", "first"):
        if "{" + name + "}" in selector:
            raise ValueError(f"Selector template needs '{name}': {template}")
    return selector


class LocatorResolver:
    """
    Resolve semantic targets to candidate locators.

    Example:
        >>> resolver = LocatorResolver.from_settings(page, settings.selectors)
        >>> rows = await resolver.resolve(SemanticTarget.RESULT_ROW, id="1001")
        >>> if rows:
        ...     boxes = await resolver.resolve(SemanticTarget.ROW_CHECKBOX, scope=rows[0])
    """

    def __init__(
        self,
        page: "Page",
        strategies: Optional[Dict[SemanticTarget, List[str]]] = None,
        max_matches: int = 5,
    ):
        """
        Initialize the resolver.

        Args:
            page: Playwright page that owns the portal
            strategies: Ordered selectors per semantic target
            max_matches: Matches considered per selector
        """
        self._page = page
        self._strategies: Dict[SemanticTarget, List[str]] = {}
        self._max_matches = max_matches
        for target, selectors in (strategies or {}).items():
            self.register(target, selectors)

    @classmethod
    def from_settings(
        cls,
        page: "Page",
        selectors: "SelectorSettings",
        max_matches: int = 5,
    ) -> "LocatorResolver":
        """Build a resolver from the configured selector lists."""
        strategies = {
            target: list(getattr(selectors, target.value))
            for target in SemanticTarget
        }
        return cls(page, strategies, max_matches=max_matches)

    @property
    def page(self) -> "Page":
        return self._page

    def register(
        self,
        target: SemanticTarget,
        selectors: List[str],
        prepend: bool = False,
    ) -> None:
        """
        Register selector strategies for a target.

        New portal variants are handled by adding entries here rather than
        by changing the flows that use the target.
        """
        cleaned = [s for s in selectors if s and s.strip()]
        existing = self._strategies.get(target, [])
        if prepend:
            merged = cleaned + [s for s in existing if s not in cleaned]
        else:
            merged = existing + [s for s in cleaned if s not in existing]
        self._strategies[target] = merged

    def selectors_for(self, target: SemanticTarget, **params: str) -> List[str]:
        """Concrete selectors for a target, in priority order."""
        templates = self._strategies.get(target)
        if not templates:
            raise ValueError(f"No selector strategies registered for {target.value}")
        return [fill_template(t, **params) for t in templates]

    async def resolve(
        self,
        target: SemanticTarget,
        scope: Optional[Union[Candidate, "Locator"]] = None,
        visible_only: bool = True,
        **params: str,
    ) -> List[Candidate]:
        """
        Find candidates for a target without interacting with them.

        Args:
            target: Semantic target to look for
            scope: Restrict the search to descendants of this handle
            visible_only: Skip matches that are attached but hidden
            **params: Template values (id, label, first)

        Returns:
            Candidates ordered by strategy priority, then document order.
            Empty when nothing is currently present.

        Raises:
            PageUnreachableError: If the page has been closed
        """
        self._ensure_page()

        root: Any = self._page
        if isinstance(scope, Candidate):
            root = scope.locator
        elif scope is not None:
            root = scope

        candidates: List[Candidate] = []
        for priority, selector in enumerate(self.selectors_for(target, **params)):
            try:
                base = root.locator(selector)
                count = await base.count()
            except Exception as e:
                self._raise_if_closed(e)
                logger.debug(f"{target.value}: selector '{selector}' failed: {e}")
                continue

            for index in range(min(count, self._max_matches)):
                locator = base.nth(index)
                if visible_only and not await self._is_visible(locator):
                    continue
                candidates.append(Candidate(
                    target=target,
                    selector=selector,
                    locator=locator,
                    priority=priority,
                    index=index,
                ))

        if candidates:
            logger.debug(f"{target.value}: {len(candidates)} candidate(s), best '{candidates[0].selector}'")
        return candidates

    async def first(
        self,
        target: SemanticTarget,
        scope: Optional[Union[Candidate, "Locator"]] = None,
        visible_only: bool = True,
        **params: str,
    ) -> Optional[Candidate]:
        """Highest-priority candidate, or None."""
        candidates = await self.resolve(target, scope=scope, visible_only=visible_only, **params)
        return candidates[0] if candidates else None

    async def exists(
        self,
        target: SemanticTarget,
        scope: Optional[Union[Candidate, "Locator"]] = None,
        **params: str,
    ) -> bool:
        return await self.first(target, scope=scope, **params) is not None

    def _ensure_page(self) -> None:
        try:
            closed = self._page.is_closed()
        except Exception as e:
            raise PageUnreachableError(f"Page state unavailable: {e}")
        if closed:
            raise PageUnreachableError("Portal page has been closed")

    def _raise_if_closed(self, error: Exception) -> None:
        raise_if_page_closed(error)

    async def _is_visible(self, locator: "Locator") -> bool:
        try:
            return await locator.is_visible()
        except Exception as e:
            self._raise_if_closed(e)
            return False
