"""
Tests for the configuration manager: JSON defaults, schema validation
and environment overrides.
"""

import pytest
from jsonschema import ValidationError

from agentdesk.config import ConfigurationManager, get_config_manager


class TestConfigurationManager:

    def setup_method(self):
        self.cm = ConfigurationManager()

    def test_defaults_load_and_validate(self):
        assert self.cm.validate_config(self.cm.default_config) is True
        auto = self.cm.get_automation_config()
        assert auto["max_open_positions"] == 3
        assert auto["min_confidence_level"] == 70
        assert auto["trading_hours"]["start"] == "00:00"

    def test_singleton(self):
        assert get_config_manager() is get_config_manager()

    def test_automation_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_MAX_POSITION_SIZE", "250")
        monkeypatch.setenv("MAX_OPEN_POSITIONS", "5")
        monkeypatch.setenv("TRADING_HOURS_START", "08:00")
        auto = self.cm.get_automation_config()
        assert auto["max_position_size"] == 250.0
        assert auto["max_open_positions"] == 5
        assert isinstance(auto["max_open_positions"], int)
        assert auto["trading_hours"] == {"start": "08:00", "end": "23:59", "timezone": "UTC"}

    def test_non_numeric_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("MIN_CONFIDENCE_LEVEL", "high")
        assert self.cm.get_automation_config()["min_confidence_level"] == 70

    def test_risk_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_STOP_LOSS_PERCENTAGE", "3")
        monkeypatch.setenv("MAX_LEVERAGE", "10")
        risk = self.cm.get_risk_limits()
        assert risk["stop_loss_percentage"] == 3.0
        assert risk["max_leverage"] == 10.0
        assert risk["take_profit_percentage"] == 15

    def test_invalid_override_is_rejected(self, monkeypatch):
        monkeypatch.setenv("MAX_LEVERAGE", "0")
        with pytest.raises(ValidationError):
            self.cm.get_risk_limits()

    def test_inverted_trading_hours_rejected(self, monkeypatch):
        monkeypatch.setenv("TRADING_HOURS_START", "18:00")
        monkeypatch.setenv("TRADING_HOURS_END", "09:00")
        with pytest.raises(ValidationError):
            self.cm.get_automation_config()

    def test_custom_defaults_validated(self):
        with pytest.raises(ValidationError):
            ConfigurationManager({"automation": {}})

    def test_merge_is_deep(self):
        merged = self.cm.merge_configs({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}})
        assert merged == {"a": {"b": 1, "c": 3}}

    def test_lookups_with_fallbacks(self):
        assert self.cm.get_interval("position_check") == 10
        assert self.cm.get_interval("missing", 42) == 42
        assert self.cm.get_cache_ttl("hyperliquid_pairs") == 300
        assert self.cm.get_rate_limit("beta_verify") == 10
        assert self.cm.get_signal_validation()["volatility_threshold"] == 0.03

    def test_trading_flags(self, monkeypatch):
        assert ConfigurationManager.emergency_stop() is False
        monkeypatch.setenv("EMERGENCY_STOP", "true")
        monkeypatch.setenv("PAPER_TRADING_MODE", "1")
        assert ConfigurationManager.emergency_stop() is True
        assert ConfigurationManager.paper_trading() is True
