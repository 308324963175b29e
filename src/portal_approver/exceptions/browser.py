"""
Browser and portal structure exceptions.

Anything deriving from StructuralError is fatal to the current run.
"""

from portal_approver.exceptions.base import PortalApproverError


class BrowserError(PortalApproverError):
    """Base exception for browser-related errors."""
    pass


class BrowserLaunchError(BrowserError):
    """
    Error launching the browser.

    Raised when the browser fails to start, which could be due to:
    - Missing browser binaries or channel
    - A locked or invalid persistent profile
    - Resource constraints
    """
    pass


class StructuralError(BrowserError):
    """
    The page itself is not in a usable state.

    Structural errors propagate to the top level, where diagnostics are
    captured and the run halts without closing the browser.
    """
    pass


class PageUnreachableError(StructuralError):
    """The hosting page was closed or crashed while the run was in progress."""
    pass


class NavigationError(StructuralError):
    """
    Error during page navigation.

    Raised when the portal home page cannot be loaded, such as:
    - Invalid URL
    - Network error
    - Navigation timeout
    """

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, {"url": url})
        self.url = url


class PortalLayoutError(StructuralError):
    """
    A control the run depends on never appeared.

    Raised for controls that must exist on every visit, such as the
    request search field.
    """

    def __init__(self, message: str, target: str):
        super().__init__(message, {"target": target})
        self.target = target


class IdentitySwitchError(StructuralError):
    """
    The acting identity could not be switched or verified.

    Approving under the wrong identity is worse than stopping, so this
    always aborts the run.
    """

    def __init__(
        self,
        message: str,
        identity: str,
        screenshot: str | None = None,
        note: str | None = None,
    ):
        super().__init__(message, {"identity": identity, "screenshot": screenshot})
        self.identity = identity
        self.screenshot = screenshot
        self.note = note
