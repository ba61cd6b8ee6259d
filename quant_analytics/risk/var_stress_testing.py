"""
Value-at-Risk, stress testing and portfolio risk reporting.

Key concepts:
- Historical VaR (negative empirical quantile of daily returns) and a
  Gaussian parametric VaR for comparison
- Conditional VaR (mean of the returns at or beyond the VaR quantile)
- Beta, tracking error and information ratio against a benchmark
- Deterministic stress scenarios (uniform return shifts, volatility
  multiplier) re-running portfolio performance
- Tail-risk analysis (skewness, excess kurtosis) with predefined extreme
  events and recovery estimates
- Sector diversification via an injected sector classifier

The benchmark defaults to the first ticker's return series when the caller
does not supply one.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from scipy import stats

from quant_analytics.core.exceptions import InvalidParameterError, NumericDegeneracyError
from quant_analytics.features.statistical import (
    TRADING_DAYS_PER_YEAR,
    ArrayLike,
    as_array,
    as_pair,
    covariance,
    variance,
)
from quant_analytics.risk.portfolio_optimizer import (
    evaluate_performance,
    portfolio_returns,
    returns_matrix,
    validate_weights,
)
from quant_analytics.risk.sector_exposure import (
    SectorClassifier,
    SectorDiversification,
    StaticSectorClassifier,
    analyze_sector_diversification,
)

logger = logging.getLogger(__name__)


class StressType(str, Enum):
    """How a stress scenario transforms daily returns."""

    SHIFT = "shift"  # Add a constant to every daily return
    VOLATILITY = "volatility"  # Scale deviations from each asset's mean


@dataclass(frozen=True)
class StressScenario:
    """A deterministic market shock."""

    name: str
    stress_type: StressType
    magnitude: float


@dataclass(frozen=True)
class ExtremeEvent:
    """A predefined extreme market event and its simulated loss."""

    name: str
    simulated_loss: float


DEFAULT_STRESS_SCENARIOS: tuple[StressScenario, ...] = (
    StressScenario("Severe market decline", StressType.SHIFT, -0.15),
    StressScenario("Moderate market decline", StressType.SHIFT, -0.07),
    StressScenario("Moderate market rally", StressType.SHIFT, 0.07),
    StressScenario("Strong market rally", StressType.SHIFT, 0.15),
    StressScenario("Volatility spike", StressType.VOLATILITY, 1.5),
    StressScenario("Extreme market crash", StressType.SHIFT, -0.25),
)

DEFAULT_EXTREME_EVENTS: tuple[ExtremeEvent, ...] = (
    ExtremeEvent("Financial crisis", -0.40),
    ExtremeEvent("Asset bubble burst", -0.30),
    ExtremeEvent("Inflation spike", -0.15),
    ExtremeEvent("Political crisis", -0.20),
)


@dataclass
class RiskReportConfig:
    """Configuration for portfolio risk reporting."""

    confidence_levels: tuple[float, float] = (0.95, 0.99)
    risk_free_rate: float = 0.02
    trading_days: int = TRADING_DAYS_PER_YEAR
    weight_tolerance: float = 0.01
    stress_scenarios: tuple[StressScenario, ...] = field(default_factory=lambda: DEFAULT_STRESS_SCENARIOS)
    extreme_events: tuple[ExtremeEvent, ...] = field(default_factory=lambda: DEFAULT_EXTREME_EVENTS)

    def __post_init__(self) -> None:
        for level in self.confidence_levels:
            _check_confidence(level)
        if self.trading_days <= 0:
            raise InvalidParameterError(
                "Trading days must be positive",
                parameter="trading_days",
                value=self.trading_days,
                expected="> 0",
            )
        if self.weight_tolerance < 0:
            raise InvalidParameterError(
                "Weight tolerance must be non-negative",
                parameter="weight_tolerance",
                value=self.weight_tolerance,
                expected=">= 0",
            )


@dataclass
class StressTestResult:
    """Portfolio performance under one stress scenario (percent units)."""

    scenario: str
    stress_type: StressType
    portfolio_return_pct: float
    portfolio_risk_pct: float
    max_drawdown_pct: float
    loss_probability_pct: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "scenario": self.scenario,
            "stress_type": self.stress_type.value,
            "portfolio_return_pct": self.portfolio_return_pct,
            "portfolio_risk_pct": self.portfolio_risk_pct,
            "max_drawdown_pct": self.max_drawdown_pct,
            "loss_probability_pct": self.loss_probability_pct,
        }


@dataclass
class TailRiskAnalysis:
    """Tail-risk metrics and extreme-event impacts."""

    conditional_var_95: float
    worst_daily_loss: float
    tail_risk_ratio: float | None
    extreme_event_impact: list[dict[str, Any]]
    parametric_var_95: float | None = None
    skewness: float | None = None
    excess_kurtosis: float | None = None  # None below four observations or for constant returns

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "conditional_var_95": self.conditional_var_95,
            "worst_daily_loss": self.worst_daily_loss,
            "tail_risk_ratio": self.tail_risk_ratio,
            "extreme_event_impact": self.extreme_event_impact,
            "parametric_var_95": self.parametric_var_95,
            "skewness": self.skewness,
            "excess_kurtosis": self.excess_kurtosis,
        }


@dataclass
class RiskReport:
    """Portfolio risk report.

    Return-type quantities are daily fractions except where annualized
    (volatility, tracking error). VaR is reported as a positive loss,
    CVaR as a (negative) average tail return.
    """

    tickers: list[str]
    weights: dict[str, float]
    benchmark: str
    volatility: float
    beta: float
    var_95: float
    var_99: float
    cvar_95: float
    max_drawdown: float
    tracking_error: float
    information_ratio: float
    stress_scenarios: list[StressTestResult]
    tail_risk: TailRiskAnalysis
    diversification: SectorDiversification

    @property
    def sector_allocation(self) -> list[dict[str, Any]]:
        """Sector weights in percent, largest first."""
        return [a.to_dict() for a in self.diversification.allocation]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tickers": self.tickers,
            "weights": self.weights,
            "benchmark": self.benchmark,
            "volatility": self.volatility,
            "beta": self.beta,
            "var_95": self.var_95,
            "var_99": self.var_99,
            "cvar_95": self.cvar_95,
            "max_drawdown": self.max_drawdown,
            "tracking_error": self.tracking_error,
            "information_ratio": self.information_ratio,
            "stress_scenarios": [s.to_dict() for s in self.stress_scenarios],
            "sector_allocation": self.sector_allocation,
            "tail_risk": self.tail_risk.to_dict(),
            "diversification": self.diversification.to_dict(),
        }


# =============================================================================
# RISK MEASURES
# =============================================================================


def _check_confidence(confidence: float) -> None:
    if not 0.0 < confidence < 1.0:
        raise InvalidParameterError(
            "Confidence level must lie strictly between 0 and 1",
            parameter="confidence",
            value=confidence,
            expected="0 < confidence < 1",
        )


def value_at_risk(daily_returns: ArrayLike, confidence: float = 0.95) -> float:
    """Historical VaR: negative of the empirical (1 - confidence) quantile.

    The quantile is the sorted return at index ``floor(n * (1 - confidence))``.
    """
    _check_confidence(confidence)
    r = np.sort(as_array(daily_returns, "returns", 1))
    index = min(int(math.floor(len(r) * (1.0 - confidence))), len(r) - 1)
    return float(-r[index])


def conditional_var(daily_returns: ArrayLike, confidence: float = 0.95) -> float:
    """Mean of the returns at or below the VaR quantile.

    Reported as a return, so it is at most ``-value_at_risk``.
    """
    r = as_array(daily_returns, "returns", 1)
    var = value_at_risk(r, confidence)
    tail = r[r <= -var]
    return float(tail.mean())


def parametric_var(daily_returns: ArrayLike, confidence: float = 0.95) -> float:
    """Gaussian VaR from the sample mean and standard deviation.

    Reported as a positive loss like ``value_at_risk``.
    """
    _check_confidence(confidence)
    r = as_array(daily_returns, "returns", 2)
    z = stats.norm.ppf(1.0 - confidence)
    return float(-(r.mean() + z * r.std(ddof=1)))


def beta(portfolio: ArrayLike, benchmark: ArrayLike) -> float:
    """Covariance with the benchmark over benchmark variance."""
    bench_var = variance(benchmark)
    if bench_var == 0:
        raise NumericDegeneracyError("Benchmark has zero variance; beta is undefined", quantity="variance")
    return covariance(portfolio, benchmark) / bench_var


def tracking_error(
    portfolio: ArrayLike,
    benchmark: ArrayLike,
    trading_days: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """Annualized standard deviation of excess returns."""
    p, b = as_pair(portfolio, benchmark, 2)
    return float(np.std(p - b) * np.sqrt(trading_days))


def information_ratio(portfolio: ArrayLike, benchmark: ArrayLike) -> float:
    """Mean excess return over its standard deviation (0 when excess is constant)."""
    p, b = as_pair(portfolio, benchmark, 2)
    excess = p - b
    sd = float(np.std(excess))
    if sd == 0:
        return 0.0
    return float(excess.mean() / sd)


def loss_probability(daily_returns: ArrayLike) -> float:
    """Percentage of days with a negative return."""
    r = as_array(daily_returns, "returns", 1)
    return float(np.count_nonzero(r < 0) / len(r) * 100.0)


def estimate_recovery_time(loss: float) -> str:
    """Rough recovery-time estimate for a drawdown of the given size."""
    magnitude = abs(loss)
    if magnitude > 0.35:
        return "3-5 years"
    if magnitude > 0.25:
        return "2-3 years"
    if magnitude > 0.15:
        return "1-2 years"
    return "6-12 months"


# =============================================================================
# STRESS TESTING
# =============================================================================


def apply_scenario(matrix: np.ndarray, scenario: StressScenario) -> np.ndarray:
    """Transform a (days, tickers) return matrix under a stress scenario."""
    if scenario.stress_type == StressType.SHIFT:
        return matrix + scenario.magnitude
    means = matrix.mean(axis=0, keepdims=True)
    return means + (matrix - means) * scenario.magnitude


def run_stress_tests(
    weights: np.ndarray,
    matrix: np.ndarray,
    scenarios: Sequence[StressScenario] = DEFAULT_STRESS_SCENARIOS,
    risk_free_rate: float = 0.02,
    trading_days: int = TRADING_DAYS_PER_YEAR,
) -> list[StressTestResult]:
    """Re-run portfolio performance under each scenario."""
    results = []
    for scenario in scenarios:
        stressed = apply_scenario(matrix, scenario)
        perf = evaluate_performance(weights, stressed, risk_free_rate, trading_days)
        results.append(
            StressTestResult(
                scenario=scenario.name,
                stress_type=scenario.stress_type,
                portfolio_return_pct=perf.annualized_return * 100.0,
                portfolio_risk_pct=perf.annualized_risk * 100.0,
                max_drawdown_pct=perf.max_drawdown * 100.0,
                loss_probability_pct=loss_probability(portfolio_returns(weights, stressed)),
            )
        )
    return results


def analyze_tail_risk(
    daily_returns: ArrayLike,
    events: Sequence[ExtremeEvent] = DEFAULT_EXTREME_EVENTS,
) -> TailRiskAnalysis:
    """CVaR, worst day and extreme-event impacts for a portfolio return series."""
    r = as_array(daily_returns, "returns", 1)
    var95 = value_at_risk(r, 0.95)
    cvar95 = conditional_var(r, 0.95)
    ratio = -cvar95 / var95 if var95 > 0 else None

    moments_defined = len(r) >= 4 and float(np.std(r)) > 0
    skewness = float(stats.skew(r, bias=False)) if moments_defined else None
    kurtosis = float(stats.kurtosis(r, bias=False)) if moments_defined else None

    impacts = [
        {
            "event": event.name,
            "potential_loss_pct": event.simulated_loss * 100.0,
            "recovery_time": estimate_recovery_time(event.simulated_loss),
        }
        for event in events
    ]
    return TailRiskAnalysis(
        conditional_var_95=cvar95,
        worst_daily_loss=float(r.min()),
        tail_risk_ratio=ratio,
        extreme_event_impact=impacts,
        parametric_var_95=parametric_var(r, 0.95) if len(r) >= 2 else None,
        skewness=skewness,
        excess_kurtosis=kurtosis,
    )


# =============================================================================
# RISK ENGINE
# =============================================================================


class RiskEngine:
    """Builds portfolio risk reports.

    Example:
        >>> engine = RiskEngine()
        >>> report = engine.report(["AAPL", "JPM"], returns, [0.6, 0.4])
        >>> report.var_95, report.diversification.level
    """

    def __init__(
        self,
        config: RiskReportConfig | None = None,
        sector_classifier: SectorClassifier | None = None,
    ) -> None:
        """Initialize risk engine.

        Args:
            config: Report configuration.
            sector_classifier: Sector lookup; defaults to the static table.
        """
        self.config = config or RiskReportConfig()
        self.sector_classifier = sector_classifier or StaticSectorClassifier()

    def report(
        self,
        tickers: Sequence[str],
        returns_by_ticker: Mapping[str, ArrayLike],
        weights: Sequence[float] | Mapping[str, float],
        benchmark_returns: ArrayLike | None = None,
        benchmark_name: str | None = None,
    ) -> RiskReport:
        """Compute the full risk report for a weighted portfolio.

        Args:
            tickers: Portfolio tickers.
            returns_by_ticker: Date-aligned daily returns per ticker.
            weights: Weights in ticker order or by ticker; must sum to ~1.
            benchmark_returns: Benchmark daily returns aligned with the
                portfolio; defaults to the first ticker's returns.
            benchmark_name: Label for the supplied benchmark.

        Returns:
            RiskReport.
        """
        cfg = self.config
        tickers = list(tickers)
        matrix = returns_matrix(tickers, returns_by_ticker)
        w = validate_weights(tickers, weights, cfg.weight_tolerance)
        daily = portfolio_returns(w, matrix)
        perf = evaluate_performance(w, matrix, cfg.risk_free_rate, cfg.trading_days)

        if benchmark_returns is None:
            bench = matrix[:, 0]
            bench_label = tickers[0]
        else:
            bench = as_array(benchmark_returns, "benchmark_returns", 2)
            bench_label = benchmark_name or "benchmark"
        if len(bench) != len(daily):
            raise InvalidParameterError(
                "Benchmark and portfolio return lengths differ",
                parameter="benchmark_returns",
                value=(len(bench), len(daily)),
                expected="date-aligned series of equal length",
            )

        low, high = cfg.confidence_levels
        report = RiskReport(
            tickers=tickers,
            weights=dict(zip(tickers, w.tolist())),
            benchmark=bench_label,
            volatility=perf.annualized_risk,
            beta=beta(daily, bench),
            var_95=value_at_risk(daily, low),
            var_99=value_at_risk(daily, high),
            cvar_95=conditional_var(daily, low),
            max_drawdown=perf.max_drawdown,
            tracking_error=tracking_error(daily, bench, cfg.trading_days),
            information_ratio=information_ratio(daily, bench),
            stress_scenarios=run_stress_tests(
                w, matrix, cfg.stress_scenarios, cfg.risk_free_rate, cfg.trading_days
            ),
            tail_risk=analyze_tail_risk(daily, cfg.extreme_events),
            diversification=analyze_sector_diversification(tickers, w, self.sector_classifier),
        )

        logger.info(
            f"Risk report for {', '.join(tickers)}: vol={report.volatility:.4f} "
            f"VaR95={report.var_95:.4f} beta={report.beta:.3f} vs {bench_label}"
        )
        return report
