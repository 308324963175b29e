"""
Browsers module - Playwright session ownership.
"""

from portal_approver.browsers.session import BrowserSession

__all__ = [
    "BrowserSession",
]
