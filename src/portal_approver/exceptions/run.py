"""
Run-level exceptions.
"""

from portal_approver.exceptions.base import PortalApproverError


class RunError(PortalApproverError):
    """Base exception for batch run errors."""
    pass


class RunCancelledError(RunError):
    """
    The run was cancelled at a suspension point.

    The run log written so far stays valid as a partial result.
    """
    pass


class DuplicateOutcomeError(RunError):
    """
    A second definitive outcome was appended for the same identifier.
    """

    def __init__(self, message: str, request_id: str, existing: str):
        super().__init__(message, {"request_id": request_id, "existing": existing})
        self.request_id = request_id
        self.existing = existing
