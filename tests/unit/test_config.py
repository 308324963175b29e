"""
Tests for configuration system.
"""

import pytest

from portal_approver.config import (
    ApprovalSettings,
    BrowserSettings,
    ConfigLoader,
    PortalSettings,
    SelectorSettings,
    Settings,
    get_settings,
    load_config,
    reset_settings,
)
from portal_approver.engine.models import ActorIdentity
from portal_approver.exceptions import ConfigurationError


class TestSettings:
    """Test the Settings classes."""

    def test_default_settings(self):
        settings = Settings()

        assert settings.approval.mode == "bulk"
        assert settings.approval.batch_size == 25
        assert settings.approval.search_wait_ms == 40000
        assert settings.approval.retry_on_action_failure is False
        assert settings.browser.browser_type == "chromium"
        assert settings.browser.keep_open_on_failure is True
        assert settings.portal.identities == []
        assert settings.diagnostics.errors_dir == "errors"

    def test_override_settings(self):
        settings = Settings(
            browser=BrowserSettings(headless=True, channel=None),
            approval=ApprovalSettings(mode="per_row", batch_size=10),
        )

        assert settings.browser.headless is True
        assert settings.browser.channel is None
        assert settings.approval.mode == "per_row"
        assert settings.approval.batch_size == 10

    def test_merge_with_overrides(self):
        settings = Settings()
        new_settings = settings.merge_with({
            "approval": {"batch_size": 5},
            "browser": {"headless": True},
        })

        assert new_settings.approval.batch_size == 5
        assert new_settings.browser.headless is True
        # Other settings should remain default
        assert new_settings.approval.mode == "bulk"
        assert settings.approval.batch_size == 25

    def test_batch_size_validation(self):
        assert ApprovalSettings(batch_size=1).batch_size == 1
        with pytest.raises(ValueError):
            ApprovalSettings(batch_size=0)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            ApprovalSettings(mode="everything")

    def test_identity_labels_are_stripped(self):
        portal = PortalSettings(identities=["  Doe, Jane ", "", "Roe, Rick"])
        assert portal.identities == ["Doe, Jane", "Roe, Rick"]

    def test_duplicate_identities_rejected(self):
        with pytest.raises(ValueError):
            PortalSettings(identities=["Doe, Jane", "Doe, Jane"])

    def test_env_variables(self, monkeypatch):
        monkeypatch.setenv("PORTAL_APPROVER__APPROVAL__BATCH_SIZE", "7")
        monkeypatch.setenv("PORTAL_APPROVER__PORTAL__HOME_URL", "https://portal.test")

        settings = Settings()

        assert settings.approval.batch_size == 7
        assert settings.portal.home_url == "https://portal.test"

    def test_selectors_have_templates(self):
        selectors = SelectorSettings()
        assert any("{id}" in s for s in selectors.result_row)
        assert any("{label}" in s for s in selectors.identity_option)

    def test_switch_confirm_never_reopens_the_entry(self):
        selectors = SelectorSettings()
        assert selectors.switch_confirm
        assert all(s.startswith('div[role="dialog"]') for s in selectors.switch_confirm)
        assert not set(selectors.switch_confirm) & set(selectors.switch_entry)

    def test_row_and_option_selectors_match_whole_text(self):
        selectors = SelectorSettings()
        assert all(":text-is(" in s for s in selectors.result_row)
        assert not any(":has-text(\"{label}\")" in s for s in selectors.identity_option)


class TestVisitOrder:
    """Test building the VisitOrder from settings."""

    def test_visit_order(self, settings):
        order = settings.visit_order()

        assert order.primary == ActorIdentity("Doe, Jane")
        assert order.secondaries == (ActorIdentity("Roe, Rick"),)
        assert order.has_return_pass is True

    def test_no_identities(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings().visit_order()
        assert "hint" in exc_info.value.details

    def test_single_identity_has_no_return_pass(self):
        settings = Settings(portal=PortalSettings(identities=["Doe, Jane"]))
        assert settings.visit_order().has_return_pass is False


class TestConfigLoader:
    """Test loading from files and overrides."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "portal.yaml"
        path.write_text(
            "portal:\n"
            "  home_url: https://portal.test\n"
            "  identities: ['Doe, Jane', 'Roe, Rick']\n"
            "approval:\n"
            "  mode: per_row\n",
            encoding="utf-8",
        )

        settings = load_config(config_path=path)

        assert settings.portal.identities == ["Doe, Jane", "Roe, Rick"]
        assert settings.approval.mode == "per_row"

    def test_default_location(self, tmp_path):
        (tmp_path / "config.yaml").write_text("approval:\n  batch_size: 3\n", encoding="utf-8")
        assert load_config().approval.batch_size == 3

    def test_no_file_gives_defaults(self):
        assert load_config().approval.batch_size == 25

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(config_path=path).approval.mode == "bulk"

    def test_overrides_beat_file(self, tmp_path):
        path = tmp_path / "portal.yaml"
        path.write_text("approval:\n  batch_size: 3\n  mode: per_row\n", encoding="utf-8")

        settings = load_config(config_path=path, approval={"batch_size": 9})

        assert settings.approval.batch_size == 9
        assert settings.approval.mode == "per_row"

    def test_file_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORTAL_APPROVER__PORTAL__HOME_URL", "https://from-env.test")
        path = tmp_path / "portal.yaml"
        path.write_text("portal:\n  home_url: https://from-file.test\n", encoding="utf-8")

        assert load_config(config_path=path).portal.home_url == "https://from-file.test"

    def test_env_file(self, tmp_path):
        env = tmp_path / "approver.env"
        env.write_text("PORTAL_APPROVER__APPROVAL__SEARCH_WAIT_MS=1234\n", encoding="utf-8")

        assert load_config(env_file=env).approval.search_wait_ms == 1234

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("approval: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_invalid_value_is_configuration_error(self, tmp_path):
        path = tmp_path / "portal.yaml"
        path.write_text("approval:\n  batch_size: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_path=path)
        assert exc_info.value.details["path"] == str(path)


class TestGlobalSettings:
    """Test the settings singleton."""

    def test_singleton(self):
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()

    def test_reset(self, tmp_path):
        reset_settings()
        first = get_settings()
        (tmp_path / "config.yaml").write_text("approval:\n  batch_size: 4\n", encoding="utf-8")
        reset_settings()
        try:
            assert get_settings() is not first
            assert get_settings().approval.batch_size == 4
        finally:
            reset_settings()
