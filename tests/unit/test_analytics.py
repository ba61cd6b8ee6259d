"""
Unit tests for the QuantAnalytics facade.
"""

import datetime as dt

import numpy as np
import pytest

from quant_analytics.analytics import QuantAnalytics
from quant_analytics.config.settings import AnalyticsSettings
from quant_analytics.core.data_provider import InMemoryDataProvider
from quant_analytics.core.data_types import OptimizationTarget, PriceSeries
from quant_analytics.core.exceptions import (
    DataUnavailableError,
    InsufficientDataError,
    InsufficientHistoryError,
    InvalidParameterError,
)
from quant_analytics.risk.portfolio_optimizer import MonteCarloConfig
from quant_analytics.risk.sector_exposure import StaticSectorClassifier
from quant_analytics.trading.strategy_recommender import (
    FundamentalContext,
    StrategyRecommender,
    TechnicalContext,
)

START = dt.date(2024, 1, 1)


@pytest.fixture
def engine(provider):
    return QuantAnalytics(provider, optimizer_config=MonteCarloConfig(n_candidates=500))


class TestConstruction:
    """Tests for building the facade."""

    def test_from_settings(self, provider):
        settings = AnalyticsSettings(
            optimizer={"n_candidates": 100},
            pairs={"z_threshold": 1.5},
            indicators={"lookback": 20},
        )
        engine = QuantAnalytics.from_settings(provider, settings)
        assert engine.optimizer.config.n_candidates == 100
        assert engine.pairs.config.z_threshold == 1.5
        assert engine.indicators.config.lookback == 20

    def test_seed_from_settings(self, provider):
        """The configured optimizer seed drives searches called without rng."""
        settings = AnalyticsSettings(optimizer={"n_candidates": 200, "seed": 11})
        engine = QuantAnalytics.from_settings(provider, settings)
        assert engine.seed == 11

        seeded = engine.optimize_portfolio(["AAPL", "MSFT"])
        explicit = engine.optimize_portfolio(["AAPL", "MSFT"], rng=11)
        assert seeded.to_dict() == explicit.to_dict()

    def test_sector_classifier_injected(self, provider):
        classifier = StaticSectorClassifier({"AAPL": "Energy"})
        engine = QuantAnalytics(provider, sector_classifier=classifier)
        assert engine.risk.sector_classifier is classifier


class TestTechnicalAnalysis:
    """Tests for technical_analysis."""

    def test_all_indicators(self, engine):
        analysis = engine.technical_analysis("aapl")
        assert analysis.ticker == "AAPL"
        assert len(analysis.indicators) == 9
        assert analysis.total_signals == 9

    def test_subset_from_polars_source(self, engine):
        analysis = engine.technical_analysis("MSFT", ["rsi", "macd"])
        assert set(analysis.indicators) == {"rsi", "macd"}

    def test_date_window_too_short(self, engine):
        with pytest.raises(InsufficientHistoryError):
            engine.technical_analysis("AAPL", ["macd"], start=START, end=START + dt.timedelta(days=19))

    def test_unknown_ticker(self, engine):
        with pytest.raises(DataUnavailableError) as exc_info:
            engine.technical_analysis("TSLA")
        assert exc_info.value.ticker == "TSLA"


class TestFactorAnalysis:
    """Tests for factor_analysis."""

    def test_with_benchmark(self, engine):
        analysis = engine.factor_analysis("AAPL", benchmark="spy")
        assert analysis.ticker == "AAPL"
        assert set(analysis.benchmark_returns) == {"1m", "3m", "6m"}

    def test_metrics_from_mapping(self, engine):
        analysis = engine.factor_analysis("msft", factors=["value", "quality"])
        assert analysis.ticker == "MSFT"
        assert list(analysis.factors) == ["value", "quality"]

    def test_missing_metrics(self, engine):
        with pytest.raises(DataUnavailableError):
            engine.factor_analysis("JPM")


class TestPairAnalysis:
    """Tests for pair_analysis."""

    def test_pair(self, engine):
        relationship = engine.pair_analysis("aapl", "msft")
        assert (relationship.ticker_a, relationship.ticker_b) == ("AAPL", "MSFT")
        assert len(relationship.zscore_series) == 250

    def test_aligns_common_dates(self):
        closes = 100.0 + np.sin(np.arange(60) / 3.0)
        provider = InMemoryDataProvider(
            prices={
                "AAA": PriceSeries.from_closes("AAA", closes, start=START),
                "BBB": PriceSeries.from_closes("BBB", closes * 1.5, start=START + dt.timedelta(days=10)),
            }
        )
        relationship = QuantAnalytics(provider).pair_analysis("AAA", "BBB")
        assert len(relationship.spread_series) == 50

    def test_same_ticker_twice(self, engine):
        with pytest.raises(InvalidParameterError):
            engine.pair_analysis("AAPL", "aapl")

    def test_no_overlap(self):
        provider = InMemoryDataProvider(
            prices={
                "AAA": PriceSeries.from_closes("AAA", [1.0, 2.0, 3.0], start=START),
                "BBB": PriceSeries.from_closes("BBB", [1.0, 2.0, 3.0], start=START + dt.timedelta(days=30)),
            }
        )
        with pytest.raises(InsufficientDataError):
            QuantAnalytics(provider).pair_analysis("AAA", "BBB")


class TestPortfolio:
    """Tests for optimize_portfolio and portfolio_risk."""

    def test_optimize(self, engine):
        result = engine.optimize_portfolio(["aapl", "msft", "jpm"], OptimizationTarget.MIN_RISK, rng=5)
        assert result.tickers == ["AAPL", "MSFT", "JPM"]
        assert sum(result.optimal_weights.values()) == pytest.approx(1.0, abs=1e-6)

    def test_optimize_without_seed_rejected(self, engine):
        with pytest.raises(InvalidParameterError):
            engine.optimize_portfolio(["AAPL", "JPM"])

    def test_optimize_reproducible(self, engine):
        first = engine.optimize_portfolio(["AAPL", "JPM"], rng=8)
        second = engine.optimize_portfolio(["AAPL", "JPM"], rng=8)
        assert first.to_dict() == second.to_dict()

    def test_risk_with_benchmark(self, engine):
        report = engine.portfolio_risk(["AAPL", "MSFT"], {"aapl": 0.5, "msft": 0.5}, benchmark="spy")
        assert report.benchmark == "SPY"
        assert report.tickers == ["AAPL", "MSFT"]
        assert report.cvar_95 <= -report.var_95

    def test_risk_benchmark_inside_portfolio(self, engine):
        report = engine.portfolio_risk(["AAPL", "JPM"], [0.6, 0.4], benchmark="AAPL")
        assert report.benchmark == "AAPL"

    def test_risk_default_benchmark(self, engine):
        report = engine.portfolio_risk(["JPM", "AAPL"], [0.5, 0.5])
        assert report.benchmark == "JPM"


class TestRecommendStrategy:
    """Tests for recommend_strategy."""

    def test_profile_only(self, engine):
        rec = engine.recommend_strategy("low", "long", "bear")
        assert rec.ticker is None
        assert rec.allocation == {"value": 50, "dividend": 50}

    def test_ticker_context(self, engine, sample_metrics):
        rec = engine.recommend_strategy("moderate", "medium", ticker="aapl")
        expected = StrategyRecommender().recommend(
            "moderate",
            "medium",
            fundamental=FundamentalContext.from_metrics(sample_metrics),
            technical=TechnicalContext.from_analysis(engine.technical_analysis("AAPL")),
            ticker="AAPL",
        )
        assert rec.to_dict() == expected.to_dict()

    def test_ticker_without_metrics(self, engine):
        with pytest.raises(DataUnavailableError):
            engine.recommend_strategy("high", "short", ticker="SPY")
