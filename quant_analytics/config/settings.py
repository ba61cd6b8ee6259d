"""
Central configuration management using Pydantic settings.

Provides type-safe defaults for every component, environment variable
support (prefix ``QA_``, nested delimiter ``__``) and YAML override
loading. Components never read these settings themselves: orchestration
code converts them into the explicit per-call config objects with the
``to_*_config`` methods, and the entry point applies the logging
section with ``configure_logging``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quant_analytics.alpha.factor_model import FactorWeights
from quant_analytics.alpha.pairs_analyzer import PairAnalysisConfig
from quant_analytics.core.exceptions import InvalidParameterError
from quant_analytics.features.technical import IndicatorConfig
from quant_analytics.monitoring.logger import LogFormat, setup_logging
from quant_analytics.risk.portfolio_optimizer import MonteCarloConfig
from quant_analytics.risk.var_stress_testing import RiskReportConfig


class IndicatorSettings(BaseModel):
    """Technical indicator configuration settings."""

    lookback: int = Field(default=14, description="Default indicator lookback window")
    macd_fast: int = Field(default=12, description="MACD fast EMA period")
    macd_slow: int = Field(default=26, description="MACD slow EMA period")
    macd_signal: int = Field(default=9, description="MACD signal EMA period")
    bollinger_std: float = Field(default=2.0, description="Bollinger band width in std devs")
    stochastic_k: int = Field(default=14, description="Stochastic %K period")
    stochastic_d: int = Field(default=3, description="Stochastic %D period")
    history_window: int = Field(default=10, description="Indicator history values reported")


class FactorSettings(BaseModel):
    """Factor weights for the combined assessment."""

    value: float = 0.25
    quality: float = 0.20
    momentum: float = 0.25
    volatility: float = 0.15


class PairSettings(BaseModel):
    """Pair analysis configuration settings."""

    z_threshold: float = Field(default=2.0, description="Divergence z-score threshold (1-3)")
    cointegration_method: str = Field(default="cov_heuristic", description="cov_heuristic or engle_granger")
    backtest_warmup: int = Field(default=30, description="Spread points skipped before entries")
    backtest_cooldown: int = Field(default=10, description="Trailing spread points without entries")


class OptimizerSettings(BaseModel):
    """Monte Carlo optimizer configuration settings."""

    n_candidates: int = Field(default=5000, description="Candidate portfolios drawn")
    risk_free_rate: float = Field(default=0.02, description="Annual risk-free rate")
    trading_days: int = Field(default=252, description="Trading days per year")
    max_workers: int | None = Field(default=None, description="Evaluation threads (None = serial)")
    chunk_size: int = Field(default=500, description="Candidates per evaluation batch")
    seed: int | None = Field(default=None, description="Seed used when a search is given no generator")


class RiskSettings(BaseModel):
    """Risk report configuration settings."""

    var_confidence_levels: tuple[float, float] = Field(default=(0.95, 0.99), description="VaR confidence levels")
    risk_free_rate: float = Field(default=0.02, description="Annual risk-free rate")
    trading_days: int = Field(default=252, description="Trading days per year")
    weight_tolerance: float = Field(default=0.01, description="Allowed deviation of weight sum from 1")


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = Field(default="INFO", description="Log level")
    format: LogFormat = Field(default=LogFormat.JSON, description="Log format (json or text)")
    file_path: Path | None = Field(default=None, description="Log file path")


class AnalyticsSettings(BaseSettings):
    """Main analytics settings."""

    model_config = SettingsConfigDict(
        env_prefix="QA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "Quant Analytics"
    app_version: str = "1.0.0"
    config_file: Path | None = Field(default=None, description="Optional YAML overrides file")

    indicators: IndicatorSettings = Field(default_factory=IndicatorSettings)
    factors: FactorSettings = Field(default_factory=FactorSettings)
    pairs: PairSettings = Field(default_factory=PairSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> AnalyticsSettings:
        """Build settings with YAML overrides applied on top of env/defaults."""
        overrides = load_yaml_config(config_path)
        base = cls().model_dump()
        return cls(**_deep_merge(base, overrides))

    def to_indicator_config(self) -> IndicatorConfig:
        """Build the explicit indicator config."""
        return IndicatorConfig(**self.indicators.model_dump())

    def to_factor_weights(self) -> FactorWeights:
        """Build the explicit factor weights."""
        return FactorWeights(**self.factors.model_dump())

    def to_pair_config(self) -> PairAnalysisConfig:
        """Build the explicit pair analysis config."""
        return PairAnalysisConfig(
            z_threshold=self.pairs.z_threshold,
            cointegration_method=self.pairs.cointegration_method,
            backtest_warmup=self.pairs.backtest_warmup,
            backtest_cooldown=self.pairs.backtest_cooldown,
        )

    def to_monte_carlo_config(self) -> MonteCarloConfig:
        """Build the explicit optimizer config."""
        return MonteCarloConfig(
            n_candidates=self.optimizer.n_candidates,
            risk_free_rate=self.optimizer.risk_free_rate,
            trading_days=self.optimizer.trading_days,
            max_workers=self.optimizer.max_workers,
            chunk_size=self.optimizer.chunk_size,
        )

    def to_risk_report_config(self) -> RiskReportConfig:
        """Build the explicit risk report config."""
        return RiskReportConfig(
            confidence_levels=tuple(self.risk.var_confidence_levels),
            risk_free_rate=self.risk.risk_free_rate,
            trading_days=self.risk.trading_days,
            weight_tolerance=self.risk.weight_tolerance,
        )

    def configure_logging(self) -> None:
        """Install the root log handlers described by the logging section.

        Meant for the application entry point; the analytics components
        never call it themselves.
        """
        setup_logging(
            level=self.logging.level,
            log_format=self.logging.format,
            log_file=self.logging.file_path,
        )


def load_yaml_config(config_path: Path | str) -> dict[str, Any]:
    """Load configuration overrides from a YAML file.

    A missing file yields no overrides.

    Raises:
        InvalidParameterError: If the file does not hold a mapping.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        return {}
    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidParameterError(
            f"Configuration file {config_path} must contain a mapping",
            parameter="config_path",
            value=str(config_path),
            expected="YAML mapping",
        )
    return data


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@lru_cache(maxsize=1)
def get_settings() -> AnalyticsSettings:
    """Get cached settings instance.

    Loads settings in order:
    1. Defaults, environment variables and the .env file
    2. YAML overrides from ``config_file`` when one is configured
    """
    settings = AnalyticsSettings()
    if settings.config_file is not None:
        settings = AnalyticsSettings.from_yaml(settings.config_file)
    return settings
