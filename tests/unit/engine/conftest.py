"""
In-memory portal used by the engine tests.

The fake mimics just enough of Playwright's Page/Locator surface for the
locator resolver: ``locator``, ``count``, ``nth``, visibility and the
handful of interactions the approver performs. Selectors are plain names
("search", "row:{id}", "checkbox"), resolved by the FakePortal.
"""

import pytest
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from portal_approver.engine import (
    ActorIdentity,
    ChainBudget,
    LocatorResolver,
    SemanticTarget,
    StrategyChainExecutor,
)


# =============================================================================
# MOCK CLASSES
# =============================================================================

class FakeTimeout(Exception):
    """Stand-in for a Playwright timeout on a detached element."""


class MockElement:
    """A DOM element with interaction handlers."""

    def __init__(
        self,
        name: str,
        text: str = "",
        visible: bool = True,
        checked: bool = False,
        box: Optional[dict] = None,
        handlers: Optional[Dict[str, Callable]] = None,
        children: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.text = text
        self.visible = visible
        self.checked = checked
        self.box = box if box is not None else {"x": 10, "y": 20, "width": 300, "height": 40}
        self.handlers = handlers or {}
        self.children = children or {}
        self.actions: List[tuple] = []
        self.value = ""

    def find(self, selector: str) -> List["MockElement"]:
        found = self.children.get(selector, [])
        return list(found() if callable(found) else found)

    def handle(self, action: str, *args: Any) -> Any:
        self.actions.append((action,) + args)
        handler = self.handlers.get(action)
        if handler is not None:
            return handler(self, *args)
        return None

    def count(self, action: str) -> int:
        return sum(1 for a in self.actions if a[0] == action)


class MockLocator:
    """Lazy locator over a resolve function, like Playwright's."""

    def __init__(self, resolve: Callable[[], List[MockElement]]):
        self._resolve = resolve

    def locator(self, selector: str) -> "MockLocator":
        return MockLocator(lambda: [c for e in self._resolve() for c in e.find(selector)])

    def nth(self, index: int) -> "MockLocator":
        return MockLocator(lambda: self._resolve()[index:index + 1])

    async def count(self) -> int:
        return len(self._resolve())

    def _element(self) -> MockElement:
        elements = self._resolve()
        if not elements:
            raise FakeTimeout("Timeout: element is not attached to the DOM")
        return elements[0]

    async def is_visible(self) -> bool:
        elements = self._resolve()
        return bool(elements) and elements[0].visible

    async def is_checked(self) -> bool:
        return self._element().checked

    async def inner_text(self) -> str:
        return self._element().text

    async def bounding_box(self) -> Optional[dict]:
        return self._element().box

    async def scroll_into_view_if_needed(self) -> None:
        self._element().handle("scroll")

    async def click(self, **options: Any) -> None:
        self._element().handle("click", options)

    async def check(self, **options: Any) -> None:
        self._element().handle("check", options)

    async def fill(self, value: str) -> None:
        element = self._element()
        element.value = value
        element.handle("fill", value)

    async def press(self, key: str) -> None:
        self._element().handle("press", key)

    async def select_option(self, **options: Any) -> List[str]:
        return self._element().handle("select_option", options) or []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return self._element().handle("evaluate", script, arg)


class MockMouse:
    """Records coordinate clicks and forwards them to the portal."""

    def __init__(self, on_click: Optional[Callable[[float, float], None]] = None):
        self.clicks: List[tuple] = []
        self.on_click = on_click

    async def click(self, x: float, y: float) -> None:
        self.clicks.append((x, y))
        if self.on_click:
            self.on_click(x, y)


class FakePortal:
    """
    A tiny approvals portal.

    Each request has a chain of identities that must approve it in order:
    [primary] is a plain request, [secondary, primary] is approved as the
    secondary and then finalized as the primary, [] is a request nobody
    can see.
    """

    def __init__(
        self,
        identities: List[str],
        requests: Optional[Dict[str, List[str]]] = None,
        active: Optional[str] = None,
        native_select: bool = True,
    ):
        self.identities = identities
        self.chains: Dict[str, List[str]] = {k: list(v) for k, v in (requests or {}).items()}
        self.active = active or identities[0]
        self.native_select = native_select
        self.closed = False
        self.url = "https://portal.test/approvals"
        self.mouse = MockMouse()
        self.screenshots: List[str] = []

        self.submitted = ""
        self.pending_identity: Optional[str] = None
        self.dialog_open = False
        self.confirm_open = False
        self.switches: List[str] = []
        self.bulk_submits: List[List[str]] = []
        self.approvals: List[tuple] = []  # (request_id, identity)
        self.broken_checkboxes: set = set()
        self.unreachable: set = set()  # identity labels no control can pick

        self.search_input = MockElement("search", handlers={"press": self._on_press})
        self.search_button = MockElement("search-button")
        self.indicator = MockElement("indicator")
        self.switch_entry = MockElement("switch", handlers={"click": self._open_dialog})
        self.identity_select = MockElement("identity-select", handlers={
            "select_option": self._select_option,
            "evaluate": self._select_evaluate,
        })
        self.switch_confirm = MockElement("switch-confirm", handlers={"click": self._confirm_switch})
        self.dialog = MockElement("dialog", children={
            "identity-select": lambda: [self.identity_select] if self.native_select else [],
        })
        self.bulk_button = MockElement("bulk-approve", handlers={"click": self._open_confirm})
        self.confirm_button = MockElement("confirm", handlers={"click": self._confirm_bulk})

        self._rows: Dict[str, MockElement] = {}
        self._checkboxes: Dict[str, MockElement] = {}
        self._approve_buttons: Dict[str, MockElement] = {}
        for request_id in self.chains:
            self._build_row(request_id)

    # -- Page surface -------------------------------------------------------

    def is_closed(self) -> bool:
        return self.closed

    def locator(self, selector: str) -> MockLocator:
        return MockLocator(lambda: self.find(selector))

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        return None

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)

    def find(self, selector: str) -> List[MockElement]:
        if selector.startswith("row:"):
            request_id = selector[len("row:"):]
            return [self._rows[request_id]] if self.row_visible(request_id) else []
        if selector.startswith("option:"):
            label = selector[len("option:"):]
            return [MockElement(f"option:{label}", text=label, handlers={
                "click": lambda el, opts: setattr(self, "pending_identity", label),
            })] if self.dialog_open and self._pickable(label) else []

        self.indicator.text = f"You are viewing as {self.active}"
        static = {
            "search": [self.search_input],
            "search-button": [self.search_button],
            "indicator": [self.indicator],
            "switch": [self.switch_entry],
            "dialog": [self.dialog] if self.dialog_open else [],
            "identity-select": [self.identity_select] if self.dialog_open and self.native_select else [],
            "switch-confirm": [self.switch_confirm] if self.dialog_open else [],
            "bulk-approve": [self.bulk_button],
            "confirm": [self.confirm_button] if self.confirm_open else [],
            "checkbox": [self._checkboxes[r] for r in self._rows if self.row_visible(r)],
        }
        return list(static.get(selector, []))

    # -- Portal behaviour ---------------------------------------------------

    def row_visible(self, request_id: str) -> bool:
        chain = self.chains.get(request_id)
        return bool(chain) and self.submitted == request_id and chain[0] == self.active

    def checkbox(self, request_id: str) -> MockElement:
        return self._checkboxes[request_id]

    def approve_button(self, request_id: str) -> MockElement:
        return self._approve_buttons[request_id]

    def _build_row(self, request_id: str) -> None:
        def toggle(el: MockElement, *args: Any) -> None:
            if request_id not in self.broken_checkboxes:
                el.checked = not el.checked

        def check(el: MockElement, *args: Any) -> None:
            if request_id not in self.broken_checkboxes:
                el.checked = True

        checkbox = MockElement(f"checkbox:{request_id}", handlers={"check": check, "click": toggle})
        label = MockElement(f"label:{request_id}", handlers={"click": lambda el, opts: toggle(checkbox)})
        approve = MockElement(f"approve:{request_id}", handlers={
            "click": lambda el, opts: self._approve(request_id),
        })
        self._checkboxes[request_id] = checkbox
        self._approve_buttons[request_id] = approve
        self._rows[request_id] = MockElement(f"row:{request_id}", text=request_id, children={
            "checkbox": [checkbox],
            "checkbox-label": [label],
            "approve": [approve],
        })

    def _approve(self, request_id: str) -> None:
        chain = self.chains[request_id]
        if chain and chain[0] == self.active:
            chain.pop(0)
            self.approvals.append((request_id, self.active))
        self._checkboxes[request_id].checked = False

    def _on_press(self, el: MockElement, key: str) -> None:
        if key == "Enter":
            self.submitted = el.value

    def _pickable(self, label: str) -> bool:
        return label in self.identities and label not in self.unreachable

    def _open_dialog(self, el: MockElement, opts: dict) -> None:
        self.dialog_open = True

    def _select_option(self, el: MockElement, opts: dict) -> List[str]:
        label = opts.get("label")
        if not self._pickable(label):
            raise FakeTimeout(f"Timeout: no option with label {label}")
        self.pending_identity = label
        return [label]

    def _select_evaluate(self, el: MockElement, script: str, arg: Any) -> Any:
        if "selectedIndex]" in script:
            return self.pending_identity or ""
        return None

    def _confirm_switch(self, el: MockElement, opts: dict) -> None:
        if self.pending_identity:
            self.active = self.pending_identity
            self.switches.append(self.active)
        self.pending_identity = None
        self.dialog_open = False

    def _open_confirm(self, el: MockElement, opts: dict) -> None:
        self.confirm_open = True

    def _confirm_bulk(self, el: MockElement, opts: dict) -> None:
        selected = [r for r, box in self._checkboxes.items() if box.checked]
        for request_id in selected:
            self._approve(request_id)
        self.bulk_submits.append(selected)
        self.confirm_open = False


TEST_STRATEGIES = {
    SemanticTarget.SWITCH_ENTRY: ["switch"],
    SemanticTarget.SWITCH_DIALOG: ["dialog"],
    SemanticTarget.IDENTITY_SELECT: ["identity-select"],
    SemanticTarget.IDENTITY_MENU_OPENER: ["menu-opener"],
    SemanticTarget.IDENTITY_OPTION: ["option:{label}"],
    SemanticTarget.SWITCH_CONFIRM: ["switch-confirm"],
    SemanticTarget.ACTIVE_IDENTITY: ["indicator"],
    SemanticTarget.SEARCH_INPUT: ["search"],
    SemanticTarget.SEARCH_BUTTON: ["search-button"],
    SemanticTarget.RESULT_ROW: ["row:{id}"],
    SemanticTarget.ROW_CHECKBOX_LABEL: ["checkbox-label"],
    SemanticTarget.ROW_CHECKBOX: ["checkbox"],
    SemanticTarget.ROW_APPROVE: ["approve"],
    SemanticTarget.BULK_APPROVE: ["bulk-approve"],
    SemanticTarget.APPROVE_CONFIRM: ["confirm"],
    SemanticTarget.SUCCESS_INDICATOR: ["toast"],
}

FAST_BUDGET = ChainBudget(tries=2, interval_ms=5)


# =============================================================================
# FIXTURES
# =============================================================================

PRIMARY = "Doe, Jane"
SECONDARY = "Roe, Rick"


@pytest.fixture
def identities():
    """Primary and secondary acting identities."""
    return [ActorIdentity(PRIMARY), ActorIdentity(SECONDARY)]


@pytest.fixture
def make_portal():
    """Factory for FakePortal instances."""
    return FakePortal


@pytest.fixture
def make_locators():
    """Factory for a resolver bound to a portal with the test selectors."""
    def _make(portal: FakePortal) -> LocatorResolver:
        return LocatorResolver(portal, TEST_STRATEGIES)
    return _make


@pytest.fixture
def executor():
    """Strategy chain executor without a cancel token."""
    return StrategyChainExecutor()


@pytest.fixture
def fast_budget():
    """Small verification budget for quick tests."""
    return FAST_BUDGET


@pytest.fixture
def element_factory():
    """Factory for standalone mock elements."""
    return MockElement


@pytest.fixture
def locator_factory():
    """Factory for mock locators over a fixed element list."""
    def _make(elements: List[MockElement]) -> MockLocator:
        return MockLocator(lambda: list(elements))
    return _make
