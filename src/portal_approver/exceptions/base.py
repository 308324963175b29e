"""
Base exceptions for Portal Approver.
"""


class PortalApproverError(Exception):
    """
    Base exception for all Portal Approver errors.

    All custom exceptions inherit from this class, making it easy
    to catch any error raised by the approver.

    Attributes:
        message: Human-readable error message
        details: Optional additional error details
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(PortalApproverError):
    """
    Error in configuration.

    Raised when settings are missing or inconsistent, for example an
    empty identity list or an unknown interaction mode.
    """
    pass


class InputFileError(PortalApproverError):
    """
    The identifier file is missing, unreadable or empty.

    Always raised before any browser interaction takes place.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, {"path": path} if path else None)
        self.path = path
