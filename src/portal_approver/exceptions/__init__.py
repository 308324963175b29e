"""
Exceptions module - Custom exception hierarchy.

Transient conditions (a request not found, an interaction that could not
be verified) are outcomes, not exceptions. Only input errors and
structural failures are raised.
"""

from portal_approver.exceptions.base import (
    PortalApproverError,
    ConfigurationError,
    InputFileError,
)
from portal_approver.exceptions.browser import (
    BrowserError,
    BrowserLaunchError,
    StructuralError,
    PageUnreachableError,
    NavigationError,
    PortalLayoutError,
    IdentitySwitchError,
)
from portal_approver.exceptions.run import (
    RunError,
    RunCancelledError,
    DuplicateOutcomeError,
)

__all__ = [
    # Base exceptions
    "PortalApproverError",
    "ConfigurationError",
    "InputFileError",
    # Browser exceptions
    "BrowserError",
    "BrowserLaunchError",
    "StructuralError",
    "PageUnreachableError",
    "NavigationError",
    "PortalLayoutError",
    "IdentitySwitchError",
    # Run exceptions
    "RunError",
    "RunCancelledError",
    "DuplicateOutcomeError",
]
