"""Tests for calculation config loading and persistence."""

import json

import pytest

from portfolio_metrics.core.config import (
    DEFAULT_CONFIG,
    config_from_dict,
    get_config,
    save_config,
    update_config,
)
from portfolio_metrics.core.exceptions import ConfigError


class TestConfig:
    def test_defaults_without_file(self):
        assert get_config() == DEFAULT_CONFIG
        assert DEFAULT_CONFIG.irr_initial_guess == 0.10
        assert DEFAULT_CONFIG.irr_max_iterations == 100
        assert DEFAULT_CONFIG.irr_tolerance == 1e-4
        assert DEFAULT_CONFIG.dust_threshold == 1e-4

    def test_reads_file(self, isolated_config):
        isolated_config.write_text(json.dumps({"dust_threshold": 0.01, "base_currency": "USD"}))
        cfg = get_config()
        assert cfg.dust_threshold == 0.01
        assert cfg.base_currency == "USD"
        assert cfg.irr_max_iterations == 100

    def test_unknown_keys_ignored(self, isolated_config):
        isolated_config.write_text(json.dumps({"colour": "blue"}))
        assert get_config() == DEFAULT_CONFIG

    def test_broken_file_falls_back_to_defaults(self, isolated_config, caplog):
        isolated_config.write_text("{oops")
        assert get_config() == DEFAULT_CONFIG
        assert "Ignoring unreadable config" in caplog.text

    def test_non_object_file_falls_back_to_defaults(self, isolated_config, caplog):
        isolated_config.write_text("[]")
        assert get_config() == DEFAULT_CONFIG
        assert "Config must be a JSON object" in caplog.text

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ConfigError):
            config_from_dict([])

    def test_cached(self, isolated_config):
        first = get_config()
        isolated_config.write_text(json.dumps({"dust_threshold": 0.5}))
        assert get_config() is first

    def test_save_round_trip(self, isolated_config):
        cfg = config_from_dict({"irr_max_iterations": 50})
        save_config(cfg)
        assert json.loads(isolated_config.read_text())["irr_max_iterations"] == 50
        assert get_config().irr_max_iterations == 50

    def test_update_coerces_types(self, isolated_config):
        cfg = update_config("irr_max_iterations", "25")
        assert cfg.irr_max_iterations == 25
        cfg = update_config("fees_included_in_amount", "false")
        assert cfg.fees_included_in_amount is False
        assert cfg.irr_max_iterations == 25
        saved = json.loads(isolated_config.read_text())
        assert saved["fees_included_in_amount"] is False

    def test_update_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown config key"):
            update_config("nope", "1")

    @pytest.mark.parametrize("key,value", [
        ("dust_threshold", "tiny"),
        ("irr_max_iterations", "1.5"),
        ("flows_at_period_start", "maybe"),
    ])
    def test_update_invalid_value(self, key, value):
        with pytest.raises(ConfigError, match="Invalid value"):
            update_config(key, value)
