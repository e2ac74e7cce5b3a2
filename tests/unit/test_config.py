"""Test Settings loading, env overrides and validation."""

import pytest

from workshop_lifecycle.core.config import Settings, load_settings
from workshop_lifecycle.core.errors import ConfigError


class TestSettingsDefaults:
    def test_default_settings(self):
        settings = Settings()
        assert settings.shop_name == "workshop"
        assert settings.budget.default_validity_days == 7

    def test_stock_defaults(self):
        stock = Settings().stock
        assert stock.sku_pattern == r"^[A-Z0-9-]{3,20}$"
        assert stock.movement_max_age_days == 365
        assert stock.movement_max_future_hours == 24
        assert stock.max_reason_length == 200
        assert stock.max_notes_length == 500

    def test_observability_defaults(self):
        obs = Settings().observability
        assert obs.log_level == "INFO"
        assert obs.log_format == "json"
        assert obs.metrics_enabled is False


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.toml")
        assert settings.budget.default_validity_days == 7

    def test_loads_toml(self, tmp_path):
        path = tmp_path / "workshop.toml"
        path.write_text(
            'shop_name = "garage"\n'
            "[budget]\n"
            "default_validity_days = 14\n"
        )
        settings = load_settings(path)
        assert settings.shop_name == "garage"
        assert settings.budget.default_validity_days == 14

    def test_overrides_apply_on_top(self, tmp_path):
        path = tmp_path / "workshop.toml"
        path.write_text('shop_name = "garage"\n')
        settings = load_settings(path, overrides={"shop_name": "other"})
        assert settings.shop_name == "other"

    def test_env_nested_override(self, monkeypatch):
        monkeypatch.setenv("WORKSHOP_BUDGET__DEFAULT_VALIDITY_DAYS", "3")
        assert Settings().budget.default_validity_days == 3


class TestValidateSettings:
    def test_defaults_pass(self):
        Settings().validate_settings()  # Should not raise

    def test_non_positive_validity_rejected(self):
        settings = Settings(budget={"default_validity_days": 0})
        with pytest.raises(ConfigError, match="default_validity_days"):
            settings.validate_settings()

    def test_bad_sku_pattern_rejected(self):
        settings = Settings(stock={"sku_pattern": "[A-Z"})
        with pytest.raises(ConfigError, match="sku_pattern"):
            settings.validate_settings()


def test_section_override_keeps_other_keys(tmp_path):
    path = tmp_path / "workshop.toml"
    path.write_text("[observability]\nmetrics_enabled = true\nlog_level = \"INFO\"\n")
    settings = load_settings(path, overrides={"observability": {"log_level": "DEBUG"}})
    assert settings.observability.log_level == "DEBUG"
    assert settings.observability.metrics_enabled is True
