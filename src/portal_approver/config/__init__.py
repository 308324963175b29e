"""
Configuration module - Centralized settings management.

This module provides type-safe configuration management using Pydantic,
supporting environment variables, YAML files, and CLI arguments.

Usage:
    from portal_approver.config import get_settings, load_config

    # Get global settings (loaded once)
    settings = get_settings()

    # Or load fresh settings with overrides
    settings = load_config(approval={"mode": "per_row"})

Environment Variables:
    PORTAL_APPROVER__PORTAL__HOME_URL=https://portal.example.com/approvals
    PORTAL_APPROVER__PORTAL__IDENTITIES='["Primary, Pat", "Second, Sam"]'
    PORTAL_APPROVER__APPROVAL__BATCH_SIZE=25
    PORTAL_APPROVER__BROWSER__USER_DATA_DIR=/path/to/profile
"""

from portal_approver.config.settings import (
    Settings,
    BrowserSettings,
    PortalSettings,
    ApprovalSettings,
    SelectorSettings,
    DiagnosticsSettings,
    LoggingSettings,
)
from portal_approver.config.loader import ConfigLoader, load_config

# Global settings singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Settings are loaded once from environment variables and config files.
    Call reset_settings() to reload.

    Returns:
        Global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (forces reload on next get_settings())."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "BrowserSettings",
    "PortalSettings",
    "ApprovalSettings",
    "SelectorSettings",
    "DiagnosticsSettings",
    "LoggingSettings",
    "ConfigLoader",
    "load_config",
    "get_settings",
    "reset_settings",
]
