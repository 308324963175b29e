"""
Utilities module - Common utility functions.
"""

from portal_approver.utils.logging import setup_logging, get_logger
from portal_approver.utils.retry import retry_async, RetryConfig
from portal_approver.utils.waiting import CancelToken, settle, wait_until

__all__ = [
    "setup_logging",
    "get_logger",
    "retry_async",
    "RetryConfig",
    "CancelToken",
    "settle",
    "wait_until",
]
