"""
Core module - Run orchestration.
"""

from portal_approver.core.runner import ApprovalRunner, RunResult, RunStatus

__all__ = [
    "ApprovalRunner",
    "RunResult",
    "RunStatus",
]
