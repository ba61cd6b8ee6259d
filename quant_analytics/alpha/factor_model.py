"""
Multi-factor scoring module.

Scores an asset against five factors:
- Value (P/E, P/B, P/S, lower is better)
- Quality (ROE, ROA, profit margin)
- Momentum (1/3/6-month returns, benchmark-relative when available,
  earnings and revenue growth)
- Size (large/mid/small-cap classification, informational only)
- Volatility (realized volatility, lower is better, and distance of beta from 1)

Every metric maps to a 1-10 score by clamped linear interpolation inside a
fixed band. Factor scores combine into a weighted assessment with a
bullish/bearish/neutral signal and a confidence in [30, 95].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from quant_analytics.core.data_types import (
    FinancialMetrics,
    InvestmentHorizon,
    PriceSeries,
    RiskTolerance,
    Signal,
    coerce_enum,
)
from quant_analytics.core.exceptions import InsufficientDataError, InvalidParameterError
from quant_analytics.features.statistical import round_half_up

logger = logging.getLogger(__name__)


class FactorName(str, Enum):
    """Scored factors."""

    VALUE = "value"
    QUALITY = "quality"
    MOMENTUM = "momentum"
    SIZE = "size"
    VOLATILITY = "volatility"


# (min, max) scoring bands
VALUE_BANDS = {"pe_ratio": (5.0, 30.0), "pb_ratio": (0.5, 5.0), "ps_ratio": (0.5, 10.0)}
QUALITY_BANDS = {"roe": (0.05, 0.25), "roa": (0.02, 0.15), "profit_margin": (0.10, 0.35)}
MOMENTUM_BANDS = {
    "return_1m": (-0.05, 0.10),
    "return_3m": (-0.10, 0.20),
    "return_6m": (-0.15, 0.30),
    "earnings_growth": (0.0, 0.30),
    "revenue_growth": (0.0, 0.25),
}
MOMENTUM_WEIGHTS = {
    "return_1m": 0.10,
    "return_3m": 0.20,
    "return_6m": 0.30,
    "earnings_growth": 0.25,
    "revenue_growth": 0.15,
}
VOLATILITY_BAND = (0.10, 0.50)

LARGE_CAP_THRESHOLD = 10_000_000_000
MID_CAP_THRESHOLD = 2_000_000_000

# Trading-day windows for 1/3/6-month returns
RETURN_WINDOWS = {"1m": 21, "3m": 63, "6m": 126}

BULLISH_SCORE = 7.0
BEARISH_SCORE = 3.0
NEUTRAL_SCORE = 5.0


def score_metric(value: float, low: float, high: float) -> float:
    """Map a higher-is-better metric onto [1, 10]."""
    return float(np.clip(1 + 9 * (value - low) / (high - low), 1.0, 10.0))


def reverse_score_metric(value: float, low: float, high: float) -> float:
    """Map a lower-is-better metric onto [1, 10]."""
    return float(np.clip(10 - 9 * (value - low) / (high - low), 1.0, 10.0))


def classify_score(score: float) -> Signal:
    """Bullish at 7 or above, bearish at 3 or below."""
    if score >= BULLISH_SCORE:
        return Signal.BULLISH
    if score <= BEARISH_SCORE:
        return Signal.BEARISH
    return Signal.NEUTRAL


def period_returns(series: PriceSeries) -> dict[str, float]:
    """Trailing 1/3/6-month close-to-close returns of a price series.

    Raises:
        InsufficientDataError: If the series is shorter than 127 bars.
    """
    closes = series.closes
    longest = max(RETURN_WINDOWS.values())
    if len(closes) <= longest:
        raise InsufficientDataError(
            f"Trailing returns need {longest + 1} bars",
            required=longest + 1,
            actual=len(closes),
            ticker=series.ticker,
        )
    return {label: float(closes[-1] / closes[-1 - window] - 1) for label, window in RETURN_WINDOWS.items()}


@dataclass
class FactorWeights:
    """Weights of the scored factors in the combined assessment.

    Size is informational and never weighted.
    """

    value: float = 0.25
    quality: float = 0.20
    momentum: float = 0.25
    volatility: float = 0.15

    def __post_init__(self) -> None:
        for name, weight in self.as_dict().items():
            if not np.isfinite(weight) or weight < 0:
                raise InvalidParameterError(
                    f"Factor weight for {name} must be a non-negative number",
                    parameter=f"weights.{name}",
                    value=weight,
                    expected=">= 0",
                )
        if sum(self.as_dict().values()) <= 0:
            raise InvalidParameterError("At least one factor weight must be positive", parameter="weights")

    def as_dict(self) -> dict[str, float]:
        return {
            FactorName.VALUE.value: self.value,
            FactorName.QUALITY.value: self.quality,
            FactorName.MOMENTUM.value: self.momentum,
            FactorName.VOLATILITY.value: self.volatility,
        }


@dataclass
class FactorScore:
    """Score of one factor.

    ``normalized_score`` is None for the size factor, which only
    classifies market capitalization.
    """

    factor_name: FactorName
    raw_metrics: dict[str, Any]
    sub_scores: dict[str, float]
    normalized_score: float | None
    signal: Signal
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor_name": self.factor_name.value,
            "raw_metrics": self.raw_metrics,
            "sub_scores": self.sub_scores,
            "normalized_score": self.normalized_score,
            "signal": self.signal.value,
            "interpretation": self.interpretation,
        }


@dataclass
class CombinedFactorAssessment:
    """Weighted aggregate of the scored factors."""

    score: float
    signal: Signal
    confidence: int
    strong_factors: list[str]
    weak_factors: list[str]
    factor_scores: list[tuple[str, float]] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "signal": self.signal.value,
            "confidence": self.confidence,
            "strong_factors": self.strong_factors,
            "weak_factors": self.weak_factors,
            "factor_scores": [{"factor": f, "score": s} for f, s in self.factor_scores],
            "summary": self.summary,
        }


@dataclass
class FactorAnalysis:
    """Per-factor scores and their combined assessment for one ticker."""

    ticker: str | None
    factors: dict[str, FactorScore]
    assessment: CombinedFactorAssessment
    benchmark_returns: dict[str, float] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "factors": {name: score.to_dict() for name, score in self.factors.items()},
            "assessment": self.assessment.to_dict(),
            "benchmark_returns": self.benchmark_returns,
        }


class FactorScorer:
    """Scores financial metrics against the factor model."""

    def __init__(self, weights: FactorWeights | None = None):
        self.weights = weights or FactorWeights()

    # =========================================================================
    # Individual factors
    # =========================================================================

    def score_value(self, metrics: FinancialMetrics) -> FactorScore | None:
        sub_scores = {
            f"{name}_score": reverse_score_metric(getattr(metrics, name), *band)
            for name, band in VALUE_BANDS.items()
            if getattr(metrics, name) is not None
        }
        if not sub_scores:
            return None
        score = float(np.mean(list(sub_scores.values())))
        if score >= 7:
            interpretation = "High value score, shares may be undervalued"
        elif score >= 4:
            interpretation = "Moderate value score, valuation within a reasonable range"
        else:
            interpretation = "Low value score, shares may be overvalued"
        return FactorScore(
            factor_name=FactorName.VALUE,
            raw_metrics={name: getattr(metrics, name) for name in VALUE_BANDS},
            sub_scores=sub_scores,
            normalized_score=score,
            signal=classify_score(score),
            interpretation=interpretation,
        )

    def score_quality(self, metrics: FinancialMetrics) -> FactorScore | None:
        sub_scores = {
            f"{name}_score": score_metric(getattr(metrics, name), *band)
            for name, band in QUALITY_BANDS.items()
            if getattr(metrics, name) is not None
        }
        if not sub_scores:
            return None
        score = float(np.mean(list(sub_scores.values())))
        if score >= 7:
            interpretation = "High quality score, strong profitability and efficiency"
        elif score >= 4:
            interpretation = "Moderate quality score, average profitability and efficiency"
        else:
            interpretation = "Low quality score, weak profitability and efficiency"
        return FactorScore(
            factor_name=FactorName.QUALITY,
            raw_metrics={name: getattr(metrics, name) for name in QUALITY_BANDS},
            sub_scores=sub_scores,
            normalized_score=score,
            signal=classify_score(score),
            interpretation=interpretation,
        )

    def score_momentum(
        self,
        metrics: FinancialMetrics,
        benchmark_returns: dict[str, float] | None = None,
    ) -> FactorScore | None:
        """Score momentum; 3/6-month returns are taken relative to the benchmark when given."""
        inputs: dict[str, float | None] = {name: getattr(metrics, name) for name in MOMENTUM_BANDS}
        raw = dict(inputs)
        if benchmark_returns:
            for name, label in (("return_3m", "3m"), ("return_6m", "6m")):
                if inputs[name] is not None and label in benchmark_returns:
                    inputs[name] = inputs[name] - benchmark_returns[label]
                    raw[f"relative_{name}"] = inputs[name]

        sub_scores = {
            f"{name}_score": score_metric(value, *MOMENTUM_BANDS[name])
            for name, value in inputs.items()
            if value is not None
        }
        if not sub_scores:
            return None

        present = [name for name, value in inputs.items() if value is not None]
        total_weight = sum(MOMENTUM_WEIGHTS[name] for name in present)
        score = sum(sub_scores[f"{name}_score"] * MOMENTUM_WEIGHTS[name] for name in present) / total_weight

        if score >= 7:
            interpretation = "High momentum score, strong price and fundamental momentum"
        elif score >= 4:
            interpretation = "Moderate momentum score, middling price or fundamental momentum"
        else:
            interpretation = "Low momentum score, weak or negative momentum"
        return FactorScore(
            factor_name=FactorName.MOMENTUM,
            raw_metrics=raw,
            sub_scores=sub_scores,
            normalized_score=float(score),
            signal=classify_score(score),
            interpretation=interpretation,
        )

    def score_size(self, metrics: FinancialMetrics) -> FactorScore | None:
        if metrics.market_cap is None:
            return None
        if metrics.market_cap >= LARGE_CAP_THRESHOLD:
            category = "large-cap"
            interpretation = "Large-cap, typically lower volatility with less growth potential"
        elif metrics.market_cap >= MID_CAP_THRESHOLD:
            category = "mid-cap"
            interpretation = "Mid-cap, balances growth potential and stability"
        else:
            category = "small-cap"
            interpretation = "Small-cap, typically more volatile with more growth potential"
        return FactorScore(
            factor_name=FactorName.SIZE,
            raw_metrics={"market_cap": metrics.market_cap, "size_category": category},
            sub_scores={},
            normalized_score=None,
            signal=Signal.NEUTRAL,
            interpretation=interpretation,
        )

    def score_volatility(self, metrics: FinancialMetrics) -> FactorScore | None:
        sub_scores: dict[str, float] = {}
        if metrics.volatility is not None:
            sub_scores["volatility_score"] = reverse_score_metric(metrics.volatility, *VOLATILITY_BAND)
        if metrics.beta is not None:
            sub_scores["beta_score"] = float(np.clip(10 - abs(metrics.beta - 1) * 5, 1.0, 10.0))
        if not sub_scores:
            return None
        score = float(np.mean(list(sub_scores.values())))
        if score >= 7:
            interpretation = "High volatility score, price is relatively stable"
        elif score >= 4:
            interpretation = "Moderate volatility score, price stability is average"
        else:
            interpretation = "Low volatility score, price swings are large"
        return FactorScore(
            factor_name=FactorName.VOLATILITY,
            raw_metrics={"volatility": metrics.volatility, "beta": metrics.beta},
            sub_scores=sub_scores,
            normalized_score=score,
            signal=classify_score(score),
            interpretation=interpretation,
        )

    # =========================================================================
    # Aggregation
    # =========================================================================

    def combine(self, scores: dict[str, FactorScore]) -> CombinedFactorAssessment:
        """Weighted combination over the weighted factors actually present."""
        weights = self.weights.as_dict()
        present = [
            (name, s.normalized_score)
            for name, s in scores.items()
            if name in weights and s.normalized_score is not None
        ]

        total_weight = sum(weights[name] for name, _ in present)
        if total_weight > 0:
            final = sum(score * weights[name] for name, score in present) / total_weight
        else:
            final = NEUTRAL_SCORE

        signal = classify_score(final)
        if signal == Signal.BULLISH:
            confidence = round_half_up(50 + (final - BULLISH_SCORE) * 10)
        elif signal == Signal.BEARISH:
            confidence = round_half_up(50 + (BEARISH_SCORE - final) * 10)
        else:
            confidence = round_half_up(50 - abs(final - NEUTRAL_SCORE) * 10)
        confidence = max(30, min(95, confidence))

        ranked = sorted(present, key=lambda item: item[1], reverse=True)
        strong = [name for name, score in ranked if score >= BULLISH_SCORE]
        weak = [name for name, score in ranked if score <= BEARISH_SCORE]

        summary = (
            f"Composite factor score {final:.1f}, {signal.value} signal "
            f"with {confidence}% confidence"
        )
        return CombinedFactorAssessment(
            score=float(final),
            signal=signal,
            confidence=confidence,
            strong_factors=strong,
            weak_factors=weak,
            factor_scores=ranked,
            summary=summary,
        )

    def analyze(
        self,
        metrics: FinancialMetrics,
        factors: list[FactorName | str] | None = None,
        benchmark_returns: dict[str, float] | None = None,
        benchmark: PriceSeries | None = None,
    ) -> FactorAnalysis:
        """Score the requested factors and combine them.

        Args:
            metrics: Financial metrics of the asset.
            factors: Factors to score (default: all five).
            benchmark_returns: Benchmark 3m/6m returns for relative momentum.
            benchmark: Benchmark price series, used to derive
                ``benchmark_returns`` when those are not given.

        Returns:
            FactorAnalysis. Factors without any input metric are omitted.
        """
        requested = (
            [coerce_enum(FactorName, f, "factors") for f in factors]
            if factors
            else list(FactorName)
        )
        if benchmark_returns is None and benchmark is not None:
            benchmark_returns = period_returns(benchmark)

        scorers = {
            FactorName.VALUE: lambda: self.score_value(metrics),
            FactorName.QUALITY: lambda: self.score_quality(metrics),
            FactorName.MOMENTUM: lambda: self.score_momentum(metrics, benchmark_returns),
            FactorName.SIZE: lambda: self.score_size(metrics),
            FactorName.VOLATILITY: lambda: self.score_volatility(metrics),
        }

        results: dict[str, FactorScore] = {}
        for factor in requested:
            score = scorers[factor]()
            if score is None:
                logger.warning(f"No metrics for {factor.value} factor on {metrics.ticker or 'unknown ticker'}, skipped")
                continue
            results[factor.value] = score

        assessment = self.combine(results)
        logger.debug(
            f"Factor analysis {metrics.ticker or ''}: score={assessment.score:.2f} "
            f"signal={assessment.signal.value} confidence={assessment.confidence}"
        )
        return FactorAnalysis(
            ticker=metrics.ticker,
            factors=results,
            assessment=assessment,
            benchmark_returns=benchmark_returns,
        )


def factors_for_profile(
    risk_tolerance: RiskTolerance,
    horizon: InvestmentHorizon,
) -> list[FactorName]:
    """Default factor set for an investor profile.

    Value always; quality for low/moderate risk; momentum for moderate/high
    risk; size for short/medium horizons; volatility for low risk or long
    horizons.
    """
    risk_tolerance = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
    horizon = coerce_enum(InvestmentHorizon, horizon, "horizon")

    selected = [FactorName.VALUE]
    if risk_tolerance in (RiskTolerance.LOW, RiskTolerance.MODERATE):
        selected.append(FactorName.QUALITY)
    if risk_tolerance in (RiskTolerance.MODERATE, RiskTolerance.HIGH):
        selected.append(FactorName.MOMENTUM)
    if horizon in (InvestmentHorizon.SHORT, InvestmentHorizon.MEDIUM):
        selected.append(FactorName.SIZE)
    if risk_tolerance == RiskTolerance.LOW or horizon == InvestmentHorizon.LONG:
        selected.append(FactorName.VOLATILITY)
    return selected
