"""
Pairs relationship analysis module.

Implements the statistical-arbitrage view of two aligned price series:
- Return correlation with a strength label
- Cointegration estimate (coefficient-of-variation heuristic on the price
  ratio, or an Engle-Granger test via statsmodels)
- Price-ratio spread and its z-scores
- Divergence/convergence trading signal with per-leg actions
- Historical spread backtest run as a Flat/Positioned state machine
- Opportunity grade combining all of the above
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import statsmodels.api as sm
from statsmodels.tsa.stattools import coint

from quant_analytics.core.data_types import PriceSeries, coerce_enum
from quant_analytics.core.exceptions import (
    InsufficientDataError,
    InvalidParameterError,
    NumericDegeneracyError,
)
from quant_analytics.features.statistical import as_array, correlation, returns, round_half_up

logger = logging.getLogger(__name__)


class CointegrationMethod(str, Enum):
    """Cointegration estimation methods."""

    COV_HEURISTIC = "cov_heuristic"  # Coefficient of variation of A/B
    ENGLE_GRANGER = "engle_granger"  # OLS residual unit-root test


class PairSignalType(str, Enum):
    """Spread trading signal."""

    DIVERGENCE = "divergence"
    CONVERGENCE = "convergence"
    NEUTRAL = "neutral"


class OpportunityGrade(str, Enum):
    """Strength of a pairs-trading opportunity."""

    NONE = "none"
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


# (CoV ceiling, nominal confidence), checked in order
COV_CONFIDENCE_LEVELS = ((0.05, 90), (0.10, 70), (0.15, 50))

# (p-value ceiling, nominal confidence), checked in order
EG_CONFIDENCE_LEVELS = ((0.01, 90), (0.05, 70), (0.10, 50))

MIN_ENGLE_GRANGER_OBSERVATIONS = 20


@dataclass
class PairAnalysisConfig:
    """Configuration for pair analysis."""

    z_threshold: float = 2.0
    cointegration_method: CointegrationMethod = CointegrationMethod.COV_HEURISTIC
    convergence_band: float = 0.5
    backtest_warmup: int = 30  # Spread points skipped before the first entry
    backtest_cooldown: int = 10  # Trailing spread points never used for entries
    sharpe_scale: float = 0.1

    def __post_init__(self) -> None:
        if not np.isfinite(self.z_threshold) or not 1.0 <= self.z_threshold <= 3.0:
            raise InvalidParameterError(
                "Z-score threshold must lie in [1, 3]",
                parameter="z_threshold",
                value=self.z_threshold,
                expected="1 <= z_threshold <= 3",
            )
        self.cointegration_method = coerce_enum(
            CointegrationMethod, self.cointegration_method, "cointegration_method"
        )
        if self.backtest_warmup < 0 or self.backtest_cooldown < 0:
            raise InvalidParameterError(
                "Backtest warm-up and cool-down must be non-negative",
                parameter="backtest_warmup",
                value=(self.backtest_warmup, self.backtest_cooldown),
            )


@dataclass
class CointegrationEstimate:
    """Result of a cointegration check."""

    method: CointegrationMethod
    is_cointegrated: bool
    confidence: int
    statistic: float  # CoV of the ratio, or the Engle-Granger t-statistic
    p_value: float | None = None
    hedge_ratio: float | None = None
    interpretation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "is_cointegrated": self.is_cointegrated,
            "confidence": self.confidence,
            "statistic": self.statistic,
            "p_value": self.p_value,
            "hedge_ratio": self.hedge_ratio,
            "interpretation": self.interpretation,
        }


@dataclass
class PairSignal:
    """Current spread signal and per-leg actions."""

    signal_type: PairSignalType
    actions: dict[str, str]
    z_score: float
    confidence: int
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "signal_type": self.signal_type.value,
            "actions": self.actions,
            "z_score": self.z_score,
            "confidence": self.confidence,
            "interpretation": self.interpretation,
        }


@dataclass
class BacktestSummary:
    """Historical performance of the spread reversion rule."""

    trade_count: int
    win_rate: float
    average_return: float
    total_return: float
    sharpe_ratio: float
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_count": self.trade_count,
            "win_rate": self.win_rate,
            "average_return": self.average_return,
            "total_return": self.total_return,
            "sharpe_ratio": self.sharpe_ratio,
            "interpretation": self.interpretation,
        }


@dataclass
class OpportunityAssessment:
    """Graded pairs-trading opportunity."""

    grade: OpportunityGrade
    confidence: int
    summary: str
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "grade": self.grade.value,
            "confidence": self.confidence,
            "summary": self.summary,
            "recommendation": self.recommendation,
        }


@dataclass
class PairRelationship:
    """Full statistical relationship between two instruments."""

    ticker_a: str
    ticker_b: str
    correlation: float
    correlation_strength: str
    cointegration: CointegrationEstimate
    spread_series: list[float]
    zscore_series: list[float]
    current_zscore: float
    signal: PairSignal
    backtest: BacktestSummary
    opportunity: OpportunityAssessment

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker_a": self.ticker_a,
            "ticker_b": self.ticker_b,
            "correlation": self.correlation,
            "correlation_strength": self.correlation_strength,
            "cointegration": self.cointegration.to_dict(),
            "spread_series": self.spread_series,
            "zscore_series": self.zscore_series,
            "current_zscore": self.current_zscore,
            "signal": self.signal.to_dict(),
            "backtest": self.backtest.to_dict(),
            "opportunity": self.opportunity.to_dict(),
        }


# =============================================================================
# Backtest state machine
# =============================================================================


@dataclass(frozen=True)
class Flat:
    """No open spread position."""


@dataclass(frozen=True)
class Positioned:
    """Open spread position; direction is +1 long spread, -1 short spread."""

    entry_index: int
    direction: int


@dataclass
class _TradeLog:
    returns: list[float] = field(default_factory=list)

    def close(self, entry_spread: float, exit_spread: float, direction: int) -> None:
        self.returns.append(direction * (exit_spread - entry_spread) / entry_spread)


def correlation_strength(coefficient: float) -> str:
    """Label the magnitude of a correlation coefficient."""
    magnitude = abs(coefficient)
    if magnitude > 0.7:
        return "strong"
    if magnitude > 0.5:
        return "moderate"
    if magnitude > 0.3:
        return "weak"
    return "negligible"


def _check_distinct_legs(ticker_a: str, ticker_b: str) -> None:
    if ticker_a == ticker_b:
        raise InvalidParameterError(
            f"Pair legs must be different tickers, got {ticker_a} twice",
            parameter="tickers",
            value=(ticker_a, ticker_b),
            expected="two distinct tickers",
        )


class PairsAnalyzer:
    """Analyzes the relationship between two aligned price series."""

    def __init__(self, config: PairAnalysisConfig | None = None):
        self.config = config or PairAnalysisConfig()

    def analyze(self, series_a: PriceSeries, series_b: PriceSeries) -> PairRelationship:
        """Analyze two date-aligned price series.

        Raises:
            InvalidParameterError: If the series share a ticker or are not
                date-aligned.
            InsufficientDataError: If fewer than three prices are shared.
            NumericDegeneracyError: If either return series is constant.
        """
        if series_a.dates != series_b.dates:
            raise InvalidParameterError(
                f"Series for {series_a.ticker} and {series_b.ticker} are not date-aligned",
                parameter="series",
                expected="identical date sequences",
                details={"tickers": [series_a.ticker, series_b.ticker]},
            )
        return self.analyze_prices(
            series_a.closes, series_b.closes, ticker_a=series_a.ticker, ticker_b=series_b.ticker
        )

    def analyze_prices(
        self,
        prices_a: np.ndarray | list[float],
        prices_b: np.ndarray | list[float],
        ticker_a: str = "A",
        ticker_b: str = "B",
    ) -> PairRelationship:
        """Analyze two equal-length closing price arrays."""
        _check_distinct_legs(ticker_a, ticker_b)
        a = as_array(prices_a, "prices_a", 3, ticker_a)
        b = as_array(prices_b, "prices_b", 3, ticker_b)
        if len(a) != len(b):
            raise InvalidParameterError(
                f"Price series lengths differ ({len(a)} vs {len(b)})",
                parameter="length",
                value=(len(a), len(b)),
                expected="equal-length series",
                details={"tickers": [ticker_a, ticker_b]},
            )
        if np.any(a <= 0) or np.any(b <= 0):
            raise InvalidParameterError(
                "Pair analysis needs strictly positive prices",
                parameter="prices",
                expected="> 0",
                details={"tickers": [ticker_a, ticker_b]},
            )

        try:
            corr = correlation(returns(a, ticker_a), returns(b, ticker_b))
        except NumericDegeneracyError as e:
            raise NumericDegeneracyError(
                f"Correlation undefined for {ticker_a}/{ticker_b}: a return series is constant",
                quantity="return_variance",
                details={"tickers": [ticker_a, ticker_b]},
            ) from e

        spread = a / b
        zscores = self.spread_zscores(spread)
        current_z = float(zscores[-1])
        degenerate = bool(np.std(spread) == 0)

        cointegration = self.estimate_cointegration(a, b, spread)
        signal = self.generate_signal(current_z, ticker_a, ticker_b, degenerate)
        backtest = self.backtest(spread, zscores)
        opportunity = self.grade_opportunity(
            ticker_a, ticker_b, corr, cointegration, current_z, signal, backtest
        )

        logger.debug(
            f"Pair {ticker_a}/{ticker_b}: corr={corr:.3f} z={current_z:.2f} "
            f"coint={cointegration.confidence} grade={opportunity.grade.value}"
        )

        return PairRelationship(
            ticker_a=ticker_a,
            ticker_b=ticker_b,
            correlation=corr,
            correlation_strength=correlation_strength(corr),
            cointegration=cointegration,
            spread_series=spread.tolist(),
            zscore_series=zscores.tolist(),
            current_zscore=current_z,
            signal=signal,
            backtest=backtest,
            opportunity=opportunity,
        )

    # =========================================================================
    # Components
    # =========================================================================

    @staticmethod
    def spread_zscores(spread: np.ndarray) -> np.ndarray:
        """Z-score of every spread point against the full-window mean.

        A constant spread has no deviation and scores zero throughout.
        """
        sd = float(np.std(spread))
        if sd == 0:
            return np.zeros(len(spread))
        return (spread - float(np.mean(spread))) / sd

    def estimate_cointegration(
        self,
        prices_a: np.ndarray,
        prices_b: np.ndarray,
        spread: np.ndarray,
    ) -> CointegrationEstimate:
        if self.config.cointegration_method == CointegrationMethod.ENGLE_GRANGER:
            return self._engle_granger(prices_a, prices_b)
        return self._cov_heuristic(spread)

    @staticmethod
    def _cov_heuristic(spread: np.ndarray) -> CointegrationEstimate:
        """Coefficient of variation of the price ratio, mapped to a nominal confidence.

        A stable ratio suggests a long-run equilibrium; this is a heuristic,
        not a unit-root test.
        """
        ratio_mean = float(np.mean(spread))
        if ratio_mean == 0:
            raise NumericDegeneracyError("Price ratio has zero mean", quantity="ratio_mean")
        cov = float(np.std(spread) / ratio_mean)

        for ceiling, confidence in COV_CONFIDENCE_LEVELS:
            if cov < ceiling:
                return CointegrationEstimate(
                    method=CointegrationMethod.COV_HEURISTIC,
                    is_cointegrated=True,
                    confidence=confidence,
                    statistic=cov,
                    interpretation=f"Price ratio is stable (CoV {cov:.3f}), likely cointegrated",
                )
        return CointegrationEstimate(
            method=CointegrationMethod.COV_HEURISTIC,
            is_cointegrated=False,
            confidence=0,
            statistic=cov,
            interpretation=f"Price ratio drifts (CoV {cov:.3f}), no stable long-run relationship",
        )

    @staticmethod
    def _engle_granger(prices_a: np.ndarray, prices_b: np.ndarray) -> CointegrationEstimate:
        """Engle-Granger two-step test of A on B."""
        if len(prices_a) < MIN_ENGLE_GRANGER_OBSERVATIONS:
            raise InsufficientDataError(
                f"Engle-Granger test needs {MIN_ENGLE_GRANGER_OBSERVATIONS} observations",
                required=MIN_ENGLE_GRANGER_OBSERVATIONS,
                actual=len(prices_a),
            )
        if np.std(prices_a) == 0 or np.std(prices_b) == 0:
            raise NumericDegeneracyError("Engle-Granger test undefined for a constant price series", quantity="price_variance")

        model = sm.OLS(prices_a, sm.add_constant(prices_b)).fit()
        hedge_ratio = float(model.params[1])
        t_stat, p_value, _crit = coint(prices_a, prices_b)
        p_value = float(p_value)

        for ceiling, confidence in EG_CONFIDENCE_LEVELS:
            if p_value < ceiling:
                return CointegrationEstimate(
                    method=CointegrationMethod.ENGLE_GRANGER,
                    is_cointegrated=True,
                    confidence=confidence,
                    statistic=float(t_stat),
                    p_value=p_value,
                    hedge_ratio=hedge_ratio,
                    interpretation=f"Residual spread is stationary (p={p_value:.3f}), cointegrated",
                )
        return CointegrationEstimate(
            method=CointegrationMethod.ENGLE_GRANGER,
            is_cointegrated=False,
            confidence=0,
            statistic=float(t_stat),
            p_value=p_value,
            hedge_ratio=hedge_ratio,
            interpretation=f"Residual spread not stationary (p={p_value:.3f}), no cointegration",
        )

    def generate_signal(
        self,
        z_score: float,
        ticker_a: str,
        ticker_b: str,
        degenerate: bool = False,
    ) -> PairSignal:
        """Classify the current z-score.

        A degenerate (constant) spread is always neutral.
        """
        _check_distinct_legs(ticker_a, ticker_b)
        threshold = self.config.z_threshold
        signal_type = PairSignalType.NEUTRAL
        action_a = action_b = "hold"

        if not degenerate:
            if z_score > threshold:
                signal_type = PairSignalType.DIVERGENCE
                action_a, action_b = "sell", "buy"
            elif z_score < -threshold:
                signal_type = PairSignalType.DIVERGENCE
                action_a, action_b = "buy", "sell"
            elif abs(z_score) < self.config.convergence_band:
                signal_type = PairSignalType.CONVERGENCE

        confidence = max(0, min(95, round_half_up(50 + abs(z_score) * 15)))

        if signal_type == PairSignalType.DIVERGENCE:
            interpretation = (
                f"Spread is {abs(z_score):.2f} standard deviations from its mean, "
                f"possible arbitrage with {confidence}% confidence"
            )
        elif signal_type == PairSignalType.CONVERGENCE:
            interpretation = "Spread is close to its mean, limited arbitrage potential"
        else:
            interpretation = "Spread is within its normal range, no clear signal"

        return PairSignal(
            signal_type=signal_type,
            actions={ticker_a: action_a, ticker_b: action_b},
            z_score=z_score,
            confidence=confidence,
            interpretation=interpretation,
        )

    def backtest(self, spread: np.ndarray, zscores: np.ndarray) -> BacktestSummary:
        """Replay the threshold-entry, mean-crossing-exit rule over the spread.

        Entries are only taken between the warm-up and cool-down margins; a
        position exits on the first later point at or across the mean.
        Positions still open at the end are not counted.
        """
        n = len(spread)
        threshold = self.config.z_threshold
        last_entry = n - self.config.backtest_cooldown
        state: Flat | Positioned = Flat()
        log = _TradeLog()

        for t in range(n):
            z = zscores[t]
            if isinstance(state, Flat):
                if self.config.backtest_warmup <= t < last_entry and abs(z) > threshold:
                    state = Positioned(entry_index=t, direction=-1 if z > 0 else 1)
            elif state.direction * z >= 0:
                log.close(spread[state.entry_index], spread[t], state.direction)
                state = Flat()

        trades = len(log.returns)
        if trades == 0:
            return BacktestSummary(
                trade_count=0,
                win_rate=0.0,
                average_return=0.0,
                total_return=0.0,
                sharpe_ratio=0.0,
                interpretation="No completed spread trades in the history",
            )

        total = float(np.sum(log.returns))
        wins = sum(1 for r in log.returns if r > 0)
        win_rate = wins / trades
        average = total / trades
        sharpe = average / (np.sqrt(trades) * self.config.sharpe_scale)

        return BacktestSummary(
            trade_count=trades,
            win_rate=win_rate,
            average_return=average,
            total_return=total,
            sharpe_ratio=float(sharpe),
            interpretation=(
                f"{trades} historical trades, win rate {win_rate * 100:.1f}%, "
                f"average return {average * 100:.2f}%"
            ),
        )

    @staticmethod
    def grade_opportunity(
        ticker_a: str,
        ticker_b: str,
        corr: float,
        cointegration: CointegrationEstimate,
        z_score: float,
        signal: PairSignal,
        backtest: BacktestSummary,
    ) -> OpportunityAssessment:
        grade = OpportunityGrade.NONE
        confidence = 0
        blended = (cointegration.confidence + backtest.win_rate * 100 + abs(z_score) * 10) / 3

        if cointegration.is_cointegrated and abs(corr) > 0.5 and abs(z_score) > 1.5:
            grade = OpportunityGrade.STRONG
            confidence = min(90, round_half_up(blended))
        elif cointegration.is_cointegrated and abs(corr) > 0.3 and abs(z_score) > 1:
            grade = OpportunityGrade.MODERATE
            confidence = min(70, round_half_up(blended))
        elif cointegration.is_cointegrated:
            grade = OpportunityGrade.WEAK
            confidence = min(50, round_half_up((cointegration.confidence + backtest.win_rate * 100) / 2))

        descriptor = {
            OpportunityGrade.STRONG: "a strong",
            OpportunityGrade.MODERATE: "a moderate",
        }.get(grade)
        if descriptor:
            summary = (
                f"{ticker_a} and {ticker_b} form {descriptor} arbitrage opportunity, "
                f"correlation {corr:.2f}, current z-score {z_score:.2f}"
            )
        else:
            summary = (
                f"{ticker_a} and {ticker_b} show no clear arbitrage opportunity, "
                f"correlation {corr:.2f}, current z-score {z_score:.2f}"
            )

        if grade == OpportunityGrade.STRONG:
            recommendation = (
                f"Execute the pair trade: {signal.actions[ticker_a]} {ticker_a}, "
                f"{signal.actions[ticker_b]} {ticker_b}"
            )
        elif grade == OpportunityGrade.MODERATE and signal.signal_type == PairSignalType.DIVERGENCE:
            recommendation = "Consider the pair trade with a reduced position size"
        elif grade == OpportunityGrade.MODERATE:
            recommendation = "Wait for a stronger divergence signal"
        else:
            recommendation = "Pair trading not advised, keep monitoring the spread"

        return OpportunityAssessment(
            grade=grade,
            confidence=confidence,
            summary=summary,
            recommendation=recommendation,
        )
