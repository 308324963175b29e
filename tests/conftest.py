"""
Pytest configuration and fixtures.
"""

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep the developer's env vars and config files out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("PORTAL_APPROVER__"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(tmp_path):
    """Provide test settings."""
    from portal_approver.config import (
        Settings,
        BrowserSettings,
        PortalSettings,
        ApprovalSettings,
        DiagnosticsSettings,
    )

    return Settings(
        browser=BrowserSettings(headless=True, channel=None),
        portal=PortalSettings(
            home_url="https://portal.test/approvals",
            identities=["Doe, Jane", "Roe, Rick"],
        ),
        approval=ApprovalSettings(
            batch_size=2,
            search_wait_ms=50,
            poll_interval_ms=5,
            settle_delay_ms=0,
            switch_settle_ms=0,
            chain_tries=2,
            chain_interval_ms=5,
        ),
        diagnostics=DiagnosticsSettings(output_dir=str(tmp_path / "logs")),
    )


@pytest.fixture
def ids_file(tmp_path):
    """Write an identifier file and return its path."""
    def _write(content: str, name: str = "ids.txt"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write
