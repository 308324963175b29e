"""
Portal Approver - Browser-driven bulk approval for a workflow portal.

Searches each request ID in the portal, selects or approves it, and works
through an ordered list of acting identities until every request is
either approved or exhausted.

Example:
    >>> from portal_approver import ApprovalRunner, load_config
    >>> runner = ApprovalRunner(load_config())
    >>> result = await runner.run(["1001", "1002"])
"""

__version__ = "0.1.0"

# Public API exports
from portal_approver.config import Settings, load_config
from portal_approver.core import ApprovalRunner, RunResult

__all__ = [
    "ApprovalRunner",
    "RunResult",
    "Settings",
    "load_config",
    "__version__",
]
