"""
Unit tests for config/settings.py
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from quant_analytics.alpha.pairs_analyzer import CointegrationMethod
from quant_analytics.config.settings import (
    AnalyticsSettings,
    IndicatorSettings,
    LoggingSettings,
    OptimizerSettings,
    PairSettings,
    RiskSettings,
    get_settings,
    load_yaml_config,
)
from quant_analytics.core.exceptions import InvalidParameterError
from quant_analytics.monitoring.logger import JsonFormatter, TextFormatter


@pytest.fixture
def yaml_file(tmp_path):
    """Write a YAML override file and return its path."""

    def _write(data) -> Path:
        path = tmp_path / "analytics.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


@pytest.fixture
def fresh_settings():
    """Clear the settings cache around a test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def restore_root_logger():
    """Restore root handlers and level after configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSectionDefaults:
    """Tests for the per-section settings models."""

    def test_indicator_defaults(self):
        settings = IndicatorSettings()
        assert settings.lookback == 14
        assert (settings.macd_fast, settings.macd_slow, settings.macd_signal) == (12, 26, 9)
        assert settings.bollinger_std == 2.0

    def test_pair_defaults(self):
        settings = PairSettings()
        assert settings.z_threshold == 2.0
        assert settings.cointegration_method == "cov_heuristic"

    def test_optimizer_defaults(self):
        settings = OptimizerSettings()
        assert settings.n_candidates == 5000
        assert settings.max_workers is None
        assert settings.seed is None

    def test_risk_defaults(self):
        assert RiskSettings().var_confidence_levels == (0.95, 0.99)

    def test_logging_defaults(self):
        settings = LoggingSettings()
        assert settings.level == "INFO"
        assert settings.format == "json"
        assert settings.file_path is None


class TestAnalyticsSettings:
    """Tests for the top-level settings."""

    def test_default_values(self):
        settings = AnalyticsSettings()
        assert settings.app_name == "Quant Analytics"
        assert settings.factors.value == 0.25
        assert settings.config_file is None

    @patch.dict(
        "os.environ",
        {"QA_OPTIMIZER__N_CANDIDATES": "100", "QA_LOGGING__LEVEL": "DEBUG", "QA_PAIRS__Z_THRESHOLD": "2.5"},
    )
    def test_nested_env_variables(self):
        settings = AnalyticsSettings()
        assert settings.optimizer.n_candidates == 100
        assert settings.logging.level == "DEBUG"
        assert settings.pairs.z_threshold == 2.5

    def test_nested_settings(self):
        settings = AnalyticsSettings(optimizer={"n_candidates": 250, "max_workers": 4})
        assert settings.optimizer.n_candidates == 250
        assert settings.optimizer.max_workers == 4
        assert settings.optimizer.chunk_size == 500


class TestConversions:
    """Tests for the explicit component configs built from settings."""

    def test_indicator_config(self):
        config = AnalyticsSettings(indicators={"lookback": 20}).to_indicator_config()
        assert config.lookback == 20
        assert config.rsi_overbought == 70.0

    def test_factor_weights(self):
        weights = AnalyticsSettings(factors={"value": 0.5}).to_factor_weights()
        assert weights.as_dict()["value"] == 0.5

    def test_pair_config(self):
        config = AnalyticsSettings(pairs={"cointegration_method": "engle_granger"}).to_pair_config()
        assert config.cointegration_method is CointegrationMethod.ENGLE_GRANGER
        assert config.backtest_warmup == 30

    def test_invalid_pair_threshold(self):
        with pytest.raises(InvalidParameterError):
            AnalyticsSettings(pairs={"z_threshold": 5.0}).to_pair_config()

    def test_monte_carlo_config(self):
        config = AnalyticsSettings(optimizer={"n_candidates": 10, "chunk_size": 5}).to_monte_carlo_config()
        assert config.n_candidates == 10
        assert config.chunk_size == 5
        assert config.risk_free_rate == 0.02

    def test_risk_report_config(self):
        config = AnalyticsSettings(risk={"var_confidence_levels": [0.9, 0.975]}).to_risk_report_config()
        assert config.confidence_levels == (0.9, 0.975)
        assert config.weight_tolerance == 0.01


class TestConfigureLogging:
    """Tests for applying the logging section."""

    def test_text_console(self, restore_root_logger):
        AnalyticsSettings(logging={"level": "WARNING", "format": "text"}).configure_logging()
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, TextFormatter)

    def test_file_handler(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "analytics.log"
        AnalyticsSettings(logging={"level": "DEBUG", "file_path": str(log_file)}).configure_logging()
        assert restore_root_logger.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in restore_root_logger.handlers)
        assert all(isinstance(h.formatter, JsonFormatter) for h in restore_root_logger.handlers)
        assert log_file.parent.exists()

    def test_unknown_format_rejected(self):
        with pytest.raises(ValidationError):
            AnalyticsSettings(logging={"format": "xml"})


class TestYamlLoading:
    """Tests for YAML override files."""

    def test_load_yaml_config_nonexistent(self, tmp_path):
        assert load_yaml_config(tmp_path / "missing.yaml") == {}

    def test_load_yaml_config_valid(self, yaml_file):
        path = yaml_file({"pairs": {"z_threshold": 1.5}})
        assert load_yaml_config(path) == {"pairs": {"z_threshold": 1.5}}

    def test_load_yaml_config_empty(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_config(path) == {}

    def test_non_mapping_rejected(self, yaml_file):
        with pytest.raises(InvalidParameterError):
            load_yaml_config(yaml_file(["a", "b"]))

    def test_from_yaml_merges_sections(self, yaml_file):
        """Overrides replace single keys and keep the rest of a section."""
        path = yaml_file({"pairs": {"z_threshold": 1.5}, "optimizer": {"n_candidates": 300}})
        settings = AnalyticsSettings.from_yaml(path)
        assert settings.pairs.z_threshold == 1.5
        assert settings.pairs.backtest_warmup == 30
        assert settings.optimizer.n_candidates == 300
        assert settings.optimizer.risk_free_rate == 0.02


class TestGetSettings:
    """Tests for get_settings function."""

    def test_returns_settings_instance(self, fresh_settings):
        assert isinstance(get_settings(), AnalyticsSettings)

    def test_caching(self, fresh_settings):
        assert get_settings() is get_settings()

    def test_config_file_from_environment(self, fresh_settings, yaml_file):
        path = yaml_file({"factors": {"momentum": 0.4}})
        with patch.dict("os.environ", {"QA_CONFIG_FILE": str(path)}):
            settings = get_settings()
        assert settings.factors.momentum == 0.4
        assert settings.factors.value == 0.25
