"""
Reporting module for portal-approver.

Run log and failure diagnostics.
"""

from portal_approver.reporting.run_log import (
    CSV_HEADER,
    RunRecord,
    RunLog,
)
from portal_approver.reporting.diagnostics import (
    DiagnosticCapture,
    DiagnosticsCollector,
)

__all__ = [
    # Run log
    "CSV_HEADER",
    "RunRecord",
    "RunLog",
    # Diagnostics
    "DiagnosticCapture",
    "DiagnosticsCollector",
]
