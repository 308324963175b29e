"""
Actor Switch Controller - Change and verify the portal's acting identity.

Switching runs through the strategy chain: native <select> by label,
native select driven by script, custom-widget option click, and finally a
coordinate click on the widget area. Each strategy opens the switch
surface if needed, picks the identity, confirms and waits for the page to
settle. The chain's post-condition is the page-level identity indicator.

A switch that cannot be verified is fatal: approving under the wrong
identity is worse than stopping.
"""

from typing import Iterable, List, Optional, TYPE_CHECKING
import logging

from portal_approver.engine.locator_resolver import LocatorResolver, SemanticTarget
from portal_approver.engine.models import ActorIdentity
from portal_approver.engine.strategy_chain import (
    ChainBudget,
    Strategy,
    StrategyChainExecutor,
)
from portal_approver.exceptions import IdentitySwitchError
from portal_approver.utils.waiting import CancelToken, settle, wait_until

if TYPE_CHECKING:
    from playwright.async_api import Page
    from portal_approver.reporting.diagnostics import DiagnosticsCollector

logger = logging.getLogger(__name__)


SELECTED_OPTION_JS = """
el => {
    const opt = el.options ? el.options[el.selectedIndex] : null;
    return opt ? (opt.textContent || '').trim() : '';
}
"""

# Sets the option by exact label, else by exact first token, and fires change.
# An empty wanted.first disables the first-token pass.
SCRIPT_SELECT_JS = """
(el, wanted) => {
    if (!el || !el.options) return false;
    const texts = Array.from(el.options, o => (o.text || '').trim());
    let index = texts.indexOf(wanted.label);
    if (index < 0 && wanted.first) {
        index = texts.findIndex(t => t === wanted.first || t.split(',')[0].trim() === wanted.first);
    }
    if (index < 0) return false;
    el.selectedIndex = index;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""


class ActorSwitchController:
    """
    Two-state controller over the portal's acting identity.

    Example:
        >>> switcher = ActorSwitchController(page, resolver, executor, diagnostics)
        >>> await switcher.switch_to(ActorIdentity("Doe, Jane"))
    """

    def __init__(
        self,
        page: "Page",
        resolver: LocatorResolver,
        executor: StrategyChainExecutor,
        diagnostics: Optional["DiagnosticsCollector"] = None,
        identities: Iterable[ActorIdentity] = (),
        budget: Optional[ChainBudget] = None,
        settle_ms: int = 600,
        surface_wait_ms: int = 6000,
        poll_interval_ms: int = 200,
        idle_timeout_ms: int = 10000,
        cancel: Optional[CancelToken] = None,
    ):
        """
        Initialize the controller.

        Args:
            page: Playwright page
            resolver: Locator resolver for the switch controls
            executor: Strategy chain executor
            diagnostics: Collector used when a switch cannot be verified
            identities: Every identity of the run; a first-token match is
                only trusted when no other identity shares the token
            budget: Verification budget per switch strategy
            settle_ms: Pause after confirming a switch
            surface_wait_ms: Bound for the switch dialog to appear
            poll_interval_ms: Poll interval while waiting for the dialog
            idle_timeout_ms: Bound for the page to reach network idle
            cancel: Run cancel token
        """
        self._page = page
        self._resolver = resolver
        self._executor = executor
        self._diagnostics = diagnostics
        self._identities: List[ActorIdentity] = list(identities)
        self._budget = budget or ChainBudget(tries=6, interval_ms=500)
        self._settle_ms = settle_ms
        self._surface_wait_ms = surface_wait_ms
        self._poll_interval_ms = poll_interval_ms
        self._idle_timeout_ms = idle_timeout_ms
        self._cancel = cancel
        self.active: Optional[ActorIdentity] = None

    async def read_indicator(self) -> str:
        """Text of the page-level "acting as" indicator, empty if absent."""
        candidates = await self._resolver.resolve(SemanticTarget.ACTIVE_IDENTITY)
        texts = []
        for candidate in candidates:
            try:
                text = await candidate.locator.inner_text()
            except Exception as e:
                logger.debug(f"Indicator text unavailable: {e}")
                continue
            if text and text.strip():
                texts.append(text.strip())
        return " | ".join(texts)

    async def is_active(self, identity: ActorIdentity) -> bool:
        """Check the indicator against the identity label."""
        return self.names(identity, await self.read_indicator())

    def names(self, identity: ActorIdentity, text: Optional[str]) -> bool:
        """
        Whether ``text`` names ``identity`` and no other known identity.

        The full label always counts. The first token alone counts only
        when it is unique among the known identities and the text does not
        carry another identity's full label.
        """
        if identity.matches(text, first_token=False):
            return True
        others = [i for i in self._identities if i.label != identity.label]
        if any(other.first_token == identity.first_token for other in others):
            return False
        if any(other.matches(text, first_token=False) for other in others):
            return False
        return identity.matches(text)

    def _first_token_for(self, identity: ActorIdentity) -> str:
        """First token usable for option matching, empty when ambiguous."""
        for other in self._identities:
            if other.label != identity.label and other.first_token == identity.first_token:
                return ""
        return identity.first_token

    async def detect(self, identities: Iterable[ActorIdentity]) -> Optional[ActorIdentity]:
        """Which of the given identities the page currently shows, if any."""
        identities = list(identities)
        for identity in identities:
            if identity not in self._identities:
                self._identities.append(identity)
        text = await self.read_indicator()
        for identity in identities:
            if self.names(identity, text):
                self.active = identity
                return identity
        return None

    async def switch_to(self, identity: ActorIdentity) -> bool:
        """
        Make ``identity`` the acting identity.

        Returns:
            True if a switch was performed, False if it was already active

        Raises:
            IdentitySwitchError: If the new identity could not be verified
        """
        if await self.is_active(identity):
            logger.info(f"Already acting as {identity}")
            self.active = identity
            return False

        logger.info(f"→ Switching identity to {identity}")
        strategies = [
            Strategy("native-select", lambda: self._pick(identity, self._choose_native)),
            Strategy("native-select-script", lambda: self._pick(identity, self._choose_native_script)),
            Strategy("custom-widget", lambda: self._pick(identity, self._choose_custom_widget)),
            Strategy("coordinate-click", lambda: self._pick(identity, self._choose_by_coordinates)),
        ]
        result = await self._executor.attempt(
            strategies,
            verify=lambda: self.is_active(identity),
            budget=self._budget,
            precheck=False,
            label=f"switch to {identity}",
        )

        if not result.succeeded:
            indicator = await self._safe_indicator()
            note = (
                f"Could not switch to \"{identity}\".\n"
                f"Last indicator text: {indicator or '<none>'}\n"
                f"Page URL: {self._page_url()}\n"
                f"Strategies: {result.describe()}"
            )
            screenshot = None
            if self._diagnostics:
                capture = await self._diagnostics.capture(
                    self._page, tag="switch-failed", note=note, identity=identity.label,
                )
                screenshot = str(capture.screenshot_path) if capture.screenshot_path else None
            raise IdentitySwitchError(
                f"Unable to verify switch to \"{identity}\"",
                identity=identity.label,
                screenshot=screenshot,
                note=note,
            )

        self.active = identity
        logger.info(f"✓ Acting as {identity} ({result.strategy})")
        return True

    async def _pick(self, identity: ActorIdentity, chooser) -> bool:
        """Open the surface, choose with ``chooser``, confirm and settle."""
        if not await self._open_surface():
            return False
        if not await chooser(identity):
            return False
        await self._confirm_and_settle()
        return True

    async def _open_surface(self) -> bool:
        if await self._resolver.exists(SemanticTarget.SWITCH_DIALOG):
            return True

        entry = await self._resolver.first(SemanticTarget.SWITCH_ENTRY)
        if entry is None:
            logger.debug("Switch entry point not found")
            return False

        await entry.locator.click(force=True)
        opened = await wait_until(
            lambda: self._resolver.exists(SemanticTarget.SWITCH_DIALOG),
            timeout_ms=self._surface_wait_ms,
            interval_ms=self._poll_interval_ms,
            cancel=self._cancel,
        )
        if not opened:
            # Some layouts switch inline without a dialog
            logger.debug("Switch dialog did not appear; continuing without it")
        return True

    async def _choose_native(self, identity: ActorIdentity) -> bool:
        select = await self._resolver.first(SemanticTarget.IDENTITY_SELECT)
        if select is None:
            return False
        await select.locator.select_option(label=identity.label, timeout=2000)
        selected = await select.locator.evaluate(SELECTED_OPTION_JS)
        logger.debug(f"Native select now shows '{selected}'")
        return self.names(identity, selected)

    async def _choose_native_script(self, identity: ActorIdentity) -> bool:
        select = await self._resolver.first(SemanticTarget.IDENTITY_SELECT)
        if select is None:
            return False
        return bool(await select.locator.evaluate(
            SCRIPT_SELECT_JS, {"label": identity.label, "first": self._first_token_for(identity)},
        ))

    async def _choose_custom_widget(self, identity: ActorIdentity) -> bool:
        opener = await self._resolver.first(SemanticTarget.IDENTITY_MENU_OPENER)
        if opener is not None:
            await opener.locator.click(force=True)
            await settle(220, self._cancel)
        return await self._click_option(identity)

    async def _choose_by_coordinates(self, identity: ActorIdentity) -> bool:
        dialog = await self._resolver.first(SemanticTarget.SWITCH_DIALOG)
        if dialog is None:
            return False
        box = await dialog.locator.bounding_box()
        if not box:
            return False
        # Dropdown openers sit at the top right of the switch dialog
        await self._page.mouse.click(box["x"] + box["width"] - 60, box["y"] + 60)
        await settle(250, self._cancel)
        return await self._click_option(identity)

    async def _click_option(self, identity: ActorIdentity) -> bool:
        option = await self._resolver.first(
            SemanticTarget.IDENTITY_OPTION,
            label=identity.label,
            first=self._first_token_for(identity) or identity.label,
        )
        if option is None:
            return False
        await option.locator.click(force=True)
        await settle(150, self._cancel)
        return True

    async def _confirm_and_settle(self) -> None:
        confirm = await self._resolver.first(SemanticTarget.SWITCH_CONFIRM)
        if confirm is not None:
            await confirm.locator.click(force=True)
        try:
            await self._page.wait_for_load_state("networkidle", timeout=self._idle_timeout_ms)
        except Exception as e:
            logger.debug(f"Network idle wait ended: {e}")
        await settle(self._settle_ms, self._cancel)

    async def _safe_indicator(self) -> str:
        try:
            return await self.read_indicator()
        except Exception as e:
            return f"<unavailable: {e}>"

    def _page_url(self) -> str:
        try:
            return self._page.url
        except Exception:
            return "<unknown>"
