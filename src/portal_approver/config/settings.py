"""
Settings - Pydantic models for type-safe configuration.

This module defines all configuration settings as Pydantic models,
providing validation, type hints, and automatic environment variable loading.

Example:
    >>> from portal_approver.config import Settings, load_config
    >>> settings = load_config()  # Loads from env, yaml, and defaults
    >>> print(settings.approval.mode)
    'bulk'
"""

from typing import List, Literal, Optional, TYPE_CHECKING
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portal_approver.exceptions import ConfigurationError

if TYPE_CHECKING:
    from portal_approver.engine.models import VisitOrder


class BrowserSettings(BaseModel):
    """
    Browser session settings.

    Attributes:
        browser_type: Playwright browser type
        channel: Branded browser channel (msedge, chrome), None for bundled
        headless: Run browser in headless mode
        user_data_dir: Persistent profile directory reused between runs
        timeout_ms: Default timeout for browser operations
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
        slow_mo: Slow down operations by this amount (ms) - useful for debugging
        keep_open_on_failure: Leave the browser attached after a fatal error
    """
    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    channel: Optional[str] = "msedge"
    headless: bool = False
    user_data_dir: Optional[str] = None
    timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    viewport_width: int = Field(default=1400, ge=320, le=3840)
    viewport_height: int = Field(default=900, ge=240, le=2160)
    slow_mo: int = Field(default=0, ge=0, le=5000)
    keep_open_on_failure: bool = True


class PortalSettings(BaseModel):
    """
    Portal and acting-identity settings.

    Attributes:
        home_url: Page the run starts from
        identities: Identity labels in visit order, primary first
        return_to_primary: Re-surface secondary approvals in the primary identity
        navigation_retries: Attempts for loading the home page
    """
    home_url: str = ""
    identities: List[str] = Field(default_factory=list)
    return_to_primary: bool = True
    navigation_retries: int = Field(default=3, ge=1, le=10)

    @field_validator("identities")
    @classmethod
    def _strip_labels(cls, value: List[str]) -> List[str]:
        labels = [label.strip() for label in value if label and label.strip()]
        if len(set(labels)) != len(labels):
            raise ValueError("identity labels must be unique")
        return labels


class ApprovalSettings(BaseModel):
    """
    Approval loop settings.

    Attributes:
        mode: "bulk" selects rows then confirms once per sub-batch,
            "per_row" clicks each row's own approve control
        batch_size: Selections per sub-batch before a bulk confirm
        search_wait_ms: Upper bound for a search result to appear
        poll_interval_ms: Interval between result polls
        settle_delay_ms: Pause after state-changing clicks with no observable signal
        switch_settle_ms: Pause after confirming an identity switch
        retry_on_action_failure: Carry found-but-unactionable requests to the next identity
        chain_tries: Verification polls per interaction strategy
        chain_interval_ms: Interval between verification polls
    """
    mode: Literal["bulk", "per_row"] = "bulk"
    batch_size: int = Field(default=25, ge=1, le=1000)
    search_wait_ms: int = Field(default=40000, ge=0, le=600000)
    poll_interval_ms: int = Field(default=700, ge=1, le=60000)
    settle_delay_ms: int = Field(default=1000, ge=0, le=60000)
    switch_settle_ms: int = Field(default=600, ge=0, le=60000)
    retry_on_action_failure: bool = False
    chain_tries: int = Field(default=3, ge=1, le=50)
    chain_interval_ms: int = Field(default=250, ge=0, le=60000)


class SelectorSettings(BaseModel):
    """
    Ordered selector candidates per semantic target.

    Each list is tried in order. Templates may reference ``{id}`` (request
    identifier), ``{label}`` (identity label) and ``{first}`` (first token
    of the identity label). Row and option selectors match the whole text,
    so "100" never resolves to the row for "1001".
    """
    switch_entry: List[str] = Field(default_factory=lambda: [
        "text=Switch",
        'a:has-text("Switch")',
        'button:has-text("Switch")',
    ])
    switch_dialog: List[str] = Field(default_factory=lambda: [
        'div[role="dialog"]',
        "text=Switch View",
    ])
    identity_select: List[str] = Field(default_factory=lambda: [
        'div[role="dialog"] select',
        "select",
    ])
    identity_menu_opener: List[str] = Field(default_factory=lambda: [
        'div[role="dialog"] >> text="Select..."',
        'div[role="dialog"] >> .select__control',
        'div[role="dialog"] >> button[aria-haspopup="listbox"]',
        'div[role="dialog"] >> [role="combobox"]',
    ])
    identity_option: List[str] = Field(default_factory=lambda: [
        'div[role="option"]:text-is("{label}")',
        'div[role="dialog"] >> text="{label}"',
        'li:text-is("{label}")',
        'div[role="dialog"] >> text={first}',
    ])
    switch_confirm: List[str] = Field(default_factory=lambda: [
        'div[role="dialog"] button:has-text("Switch")',
    ])
    active_identity: List[str] = Field(default_factory=lambda: [
        ':text("You are viewing")',
        '[data-testid="acting-as"]',
    ])
    search_input: List[str] = Field(default_factory=lambda: [
        'input[placeholder*="Search by request ID"]',
        'input[placeholder*="Search by request"]',
        'input[placeholder*="Search"]',
        'div[id^="Search-"] input',
        "div.react-select input",
    ])
    search_button: List[str] = Field(default_factory=lambda: [
        "button:has(svg)",
    ])
    result_row: List[str] = Field(default_factory=lambda: [
        'tr:has(a:text-is("{id}"))',
        'li:has(:text-is("{id}"))',
    ])
    row_checkbox_label: List[str] = Field(default_factory=lambda: [
        ".custom-control-label",
        "label",
    ])
    row_checkbox: List[str] = Field(default_factory=lambda: [
        'input[type="checkbox"]',
        '[role="checkbox"]',
    ])
    row_approve: List[str] = Field(default_factory=lambda: [
        'button:has-text("Approve")',
        '[aria-label*="Approve"]',
    ])
    bulk_approve: List[str] = Field(default_factory=lambda: [
        'button:has-text("Approve")',
    ])
    approve_confirm: List[str] = Field(default_factory=lambda: [
        'div[role="dialog"] button:has-text("Confirm")',
        'button:has-text("Confirm")',
    ])
    success_indicator: List[str] = Field(default_factory=lambda: [
        'div[role="status"]',
        "div.toast-success",
        "text=successfully",
    ])


class DiagnosticsSettings(BaseModel):
    """
    Where run logs and failure diagnostics are written.

    Attributes:
        output_dir: Root directory for run logs
        errors_dir: Sub-directory for screenshots and text notes
        full_page: Capture the full scrollable page
    """
    output_dir: str = "./logs"
    errors_dir: str = "errors"
    full_page: bool = True


class LoggingSettings(BaseModel):
    """
    Logging configuration.

    Attributes:
        level: Log level
        format: Log format string for the file handler
        file: Log file path (None for console only)
    """
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class Settings(BaseSettings):
    """
    Root settings container - single source of truth for all configuration.

    Settings are loaded in this priority order (highest to lowest):
    1. Explicit values passed to constructor (config file values arrive here)
    2. Environment variables (prefixed with PORTAL_APPROVER__)
    3. Default values

    Example:
        >>> settings = Settings()  # Load from env vars
        >>> settings = Settings(approval=ApprovalSettings(mode="per_row"))
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_APPROVER__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    portal: PortalSettings = Field(default_factory=PortalSettings)
    approval: ApprovalSettings = Field(default_factory=ApprovalSettings)
    selectors: SelectorSettings = Field(default_factory=SelectorSettings)
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    debug: bool = False

    def merge_with(self, overrides: dict) -> "Settings":
        """
        Create a new Settings instance with overrides applied.

        Args:
            overrides: Dictionary of values to override

        Returns:
            New Settings instance with overrides applied
        """
        current = self.model_dump()

        def deep_merge(base: dict, updates: dict) -> dict:
            for key, value in updates.items():
                if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                    deep_merge(base[key], value)
                else:
                    base[key] = value
            return base

        merged = deep_merge(current, overrides)
        return Settings(**merged)

    def visit_order(self) -> "VisitOrder":
        """
        Build the identity visit order from the portal settings.

        Raises:
            ConfigurationError: If no identity is configured
        """
        from portal_approver.engine.models import ActorIdentity, VisitOrder

        if not self.portal.identities:
            raise ConfigurationError(
                "No acting identities configured",
                {"hint": "set portal.identities in config.yaml"},
            )
        return VisitOrder(
            identities=tuple(ActorIdentity(label) for label in self.portal.identities),
            return_to_primary=self.portal.return_to_primary,
        )
