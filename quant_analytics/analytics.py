"""
Analytics facade.

Wires a DataProvider to the pure components:
- Fetches price series and financial metrics through the provider
- Aligns multi-ticker series on their common dates
- Delegates to the indicator calculator, factor scorer, pairs analyzer,
  portfolio optimizer, risk engine and strategy recommender

The facade holds configuration only; every call fetches fresh data and
returns the component's result unchanged. Provider failures propagate as
``DataUnavailableError``.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping, Sequence

import numpy as np

from quant_analytics.alpha.factor_model import FactorAnalysis, FactorName, FactorScorer, FactorWeights
from quant_analytics.alpha.pairs_analyzer import PairAnalysisConfig, PairRelationship, PairsAnalyzer
from quant_analytics.config.settings import AnalyticsSettings
from quant_analytics.core.data_provider import DataProvider, align_series
from quant_analytics.core.data_types import (
    InvestmentHorizon,
    MarketCondition,
    OptimizationTarget,
    PriceSeries,
    RiskTolerance,
)
from quant_analytics.features.statistical import returns
from quant_analytics.features.technical import (
    IndicatorConfig,
    IndicatorName,
    TechnicalAnalysis,
    TechnicalIndicatorCalculator,
)
from quant_analytics.monitoring.logger import LogCategory, get_logger
from quant_analytics.risk.portfolio_optimizer import MonteCarloConfig, MonteCarloOptimizer, OptimizationResult
from quant_analytics.risk.sector_exposure import SectorClassifier
from quant_analytics.risk.var_stress_testing import RiskEngine, RiskReport, RiskReportConfig
from quant_analytics.trading.strategy_recommender import (
    FundamentalContext,
    MacroContext,
    StrategyRecommendation,
    StrategyRecommender,
    TechnicalContext,
)

logger = get_logger(__name__, LogCategory.SYSTEM)


def _normalize(tickers: Sequence[str]) -> list[str]:
    return [t.upper().strip() for t in tickers]


class QuantAnalytics:
    """Entry point for orchestration code.

    Example:
        >>> provider = InMemoryDataProvider(prices={"AAPL": frame})
        >>> engine = QuantAnalytics(provider)
        >>> engine.technical_analysis("AAPL").signal
    """

    def __init__(
        self,
        provider: DataProvider,
        indicator_config: IndicatorConfig | None = None,
        factor_weights: FactorWeights | None = None,
        pair_config: PairAnalysisConfig | None = None,
        optimizer_config: MonteCarloConfig | None = None,
        risk_config: RiskReportConfig | None = None,
        sector_classifier: SectorClassifier | None = None,
        seed: int | None = None,
    ) -> None:
        """Initialize the facade.

        Args:
            provider: Source of price series and financial metrics.
            indicator_config: Technical indicator parameters.
            factor_weights: Combined-assessment factor weights.
            pair_config: Pair analysis parameters.
            optimizer_config: Monte Carlo search parameters.
            risk_config: Risk report parameters.
            sector_classifier: Ticker to sector lookup for diversification.
            seed: Seed for portfolio searches called without a generator.
        """
        self.provider = provider
        self.indicators = TechnicalIndicatorCalculator(indicator_config)
        self.factors = FactorScorer(factor_weights)
        self.pairs = PairsAnalyzer(pair_config)
        self.optimizer = MonteCarloOptimizer(optimizer_config)
        self.risk = RiskEngine(risk_config, sector_classifier)
        self.recommender = StrategyRecommender()
        self.seed = seed

    @classmethod
    def from_settings(
        cls,
        provider: DataProvider,
        settings: AnalyticsSettings,
        sector_classifier: SectorClassifier | None = None,
    ) -> QuantAnalytics:
        """Build a facade from an explicit settings object."""
        return cls(
            provider,
            indicator_config=settings.to_indicator_config(),
            factor_weights=settings.to_factor_weights(),
            pair_config=settings.to_pair_config(),
            optimizer_config=settings.to_monte_carlo_config(),
            risk_config=settings.to_risk_report_config(),
            sector_classifier=sector_classifier,
            seed=settings.optimizer.seed,
        )

    # =========================================================================
    # DATA ACCESS
    # =========================================================================

    def _aligned_series(
        self,
        tickers: Sequence[str],
        start: dt.date | None,
        end: dt.date | None,
        min_length: int = 2,
    ) -> list[PriceSeries]:
        series = [self.provider.get_price_series(t, start, end) for t in tickers]
        return align_series(series, min_length=min_length)

    @staticmethod
    def _returns_by_ticker(series: Sequence[PriceSeries]) -> dict[str, np.ndarray]:
        return {s.ticker: returns(s.closes, ticker=s.ticker) for s in series}

    # =========================================================================
    # ANALYSES
    # =========================================================================

    def technical_analysis(
        self,
        ticker: str,
        indicators: list[IndicatorName | str] | None = None,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> TechnicalAnalysis:
        """Compute technical indicators and the aggregate signal for a ticker."""
        series = self.provider.get_price_series(ticker.upper().strip(), start, end)
        analysis = self.indicators.calculate(series, indicators)
        logger.with_context(ticker=series.ticker).info(
            f"Technical analysis: {analysis.signal.value} ({analysis.confidence}%)"
        )
        return analysis

    def factor_analysis(
        self,
        ticker: str,
        factors: list[FactorName | str] | None = None,
        benchmark: str | None = None,
        period: str = "annual",
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> FactorAnalysis:
        """Score a ticker's factors, relative to a benchmark ticker when given."""
        metrics = self.provider.get_financial_metrics(ticker.upper().strip(), period)
        benchmark_series = (
            self.provider.get_price_series(benchmark.upper().strip(), start, end) if benchmark else None
        )
        analysis = self.factors.analyze(metrics, factors, benchmark=benchmark_series)
        logger.with_context(ticker=metrics.ticker).info(
            f"Factor analysis: score={analysis.assessment.score:.2f} signal={analysis.assessment.signal.value}"
        )
        return analysis

    def pair_analysis(
        self,
        ticker_a: str,
        ticker_b: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> PairRelationship:
        """Analyze the relationship of two tickers over their common dates."""
        series_a, series_b = self._aligned_series(_normalize([ticker_a, ticker_b]), start, end, min_length=3)
        relationship = self.pairs.analyze(series_a, series_b)
        logger.info(
            f"Pair analysis {series_a.ticker}/{series_b.ticker}: "
            f"z={relationship.current_zscore:.2f} signal={relationship.signal.signal_type.value}"
        )
        return relationship

    def optimize_portfolio(
        self,
        tickers: Sequence[str],
        target: OptimizationTarget | str = OptimizationTarget.MAX_SHARPE,
        *,
        rng: np.random.Generator | int | None = None,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> OptimizationResult:
        """Search portfolio weights over the tickers' aligned daily returns.

        Without ``rng`` the configured seed is used. With neither, the search
        raises InvalidParameterError.
        """
        tickers = _normalize(tickers)
        series = self._aligned_series(tickers, start, end, min_length=3)
        generator = rng if rng is not None else self.seed
        return self.optimizer.optimize(tickers, self._returns_by_ticker(series), target, rng=generator)

    def portfolio_risk(
        self,
        tickers: Sequence[str],
        weights: Sequence[float] | Mapping[str, float],
        benchmark: str | None = None,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> RiskReport:
        """Build a risk report, aligning the benchmark with the portfolio dates."""
        tickers = _normalize(tickers)
        if isinstance(weights, Mapping):
            weights = {k.upper().strip(): v for k, v in weights.items()}

        fetch = list(tickers)
        benchmark_key = benchmark.upper().strip() if benchmark else None
        if benchmark_key and benchmark_key not in fetch:
            fetch.append(benchmark_key)

        series = self._aligned_series(fetch, start, end, min_length=3)
        by_ticker = self._returns_by_ticker(series)
        benchmark_returns = by_ticker[benchmark_key] if benchmark_key else None
        return self.risk.report(
            tickers,
            {t: by_ticker[t] for t in tickers},
            weights,
            benchmark_returns=benchmark_returns,
            benchmark_name=benchmark_key,
        )

    def recommend_strategy(
        self,
        risk_tolerance: RiskTolerance | str,
        investment_horizon: InvestmentHorizon | str,
        market_condition: MarketCondition | str = MarketCondition.NEUTRAL,
        ticker: str | None = None,
        macro: MacroContext | Mapping[str, float] | None = None,
        period: str = "annual",
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> StrategyRecommendation:
        """Recommend strategies, using a ticker's metrics and indicators as context.

        Without a ticker the recommendation rests on the investor profile,
        market condition and the optional macro context only.
        """
        fundamental = None
        technical = None
        if ticker:
            ticker = ticker.upper().strip()
            fundamental = FundamentalContext.from_metrics(self.provider.get_financial_metrics(ticker, period))
            technical = TechnicalContext.from_analysis(self.technical_analysis(ticker, start=start, end=end))

        return self.recommender.recommend(
            risk_tolerance,
            investment_horizon,
            market_condition,
            fundamental=fundamental,
            technical=technical,
            macro=macro,
            ticker=ticker,
        )
