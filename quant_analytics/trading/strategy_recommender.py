"""
Strategy recommendation scorer.

Scores nine candidate strategies with fixed rule tables keyed by the
investor profile and optional market context:
- Risk tolerance, investment horizon and market condition tables
- Optional fundamental, technical and macro context thresholds
- Primary/secondary selection with a two-way allocation split
- Parameter tables per strategy and risk tolerance
- Templated entry/exit rules and a risk-management block
- Confidence from the score margin and available context

Scores are clamped at zero after all deltas are applied. Ties keep the
declaration order of StrategyType.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from quant_analytics.core.data_types import (
    FinancialMetrics,
    InvestmentHorizon,
    MarketCondition,
    RiskTolerance,
    Signal,
    StrategyType,
    coerce_enum,
    require_finite,
)
from quant_analytics.core.exceptions import InvalidParameterError
from quant_analytics.features.statistical import round_half_up
from quant_analytics.features.technical import IndicatorName, TechnicalAnalysis

logger = logging.getLogger(__name__)

S = StrategyType

# =============================================================================
# Rule tables
# =============================================================================

RISK_TOLERANCE_DELTAS: dict[RiskTolerance, dict[StrategyType, int]] = {
    # Momentum and trend penalties keep conservative profiles on income/value styles
    RiskTolerance.LOW: {
        S.VALUE: 30, S.DIVIDEND: 35, S.MEAN_REVERSION: 15, S.FACTOR_BASED: 10,
        S.MOMENTUM: -30, S.TREND: -20,
    },
    RiskTolerance.MODERATE: {
        S.GROWTH: 20, S.VALUE: 20, S.MEAN_REVERSION: 20, S.FACTOR_BASED: 20, S.TECHNICAL: 15,
    },
    RiskTolerance.HIGH: {
        S.MOMENTUM: 30, S.GROWTH: 25, S.TREND: 20, S.TECHNICAL: 25, S.QUANTITATIVE: 20,
    },
}

HORIZON_DELTAS: dict[InvestmentHorizon, dict[StrategyType, int]] = {
    InvestmentHorizon.SHORT: {
        S.MOMENTUM: 20, S.TECHNICAL: 20, S.MEAN_REVERSION: 15, S.TREND: 15,
        S.VALUE: -15, S.DIVIDEND: -10,
    },
    InvestmentHorizon.MEDIUM: {
        S.TREND: 15, S.GROWTH: 15, S.FACTOR_BASED: 15, S.QUANTITATIVE: 10,
    },
    InvestmentHorizon.LONG: {
        S.VALUE: 25, S.GROWTH: 15, S.DIVIDEND: 20, S.MOMENTUM: -10, S.TECHNICAL: -10,
    },
}

MARKET_DELTAS: dict[MarketCondition, dict[StrategyType, int]] = {
    MarketCondition.BULL: {S.MOMENTUM: 20, S.GROWTH: 15, S.TREND: 15, S.MEAN_REVERSION: -10},
    MarketCondition.BEAR: {
        S.VALUE: 15, S.DIVIDEND: 15, S.MEAN_REVERSION: 20, S.MOMENTUM: -15, S.GROWTH: -10,
    },
    MarketCondition.NEUTRAL: {},
    MarketCondition.VOLATILE: {
        S.MEAN_REVERSION: 20, S.FACTOR_BASED: 15, S.QUANTITATIVE: 15, S.TREND: -10,
    },
}

# Context rules: deltas applied when the named condition holds
CHEAP_VALUATION_DELTAS = {S.VALUE: 15, S.DIVIDEND: 10}
HIGH_GROWTH_DELTAS = {S.GROWTH: 20, S.MOMENTUM: 10}
HIGH_YIELD_DELTAS = {S.DIVIDEND: 25, S.VALUE: 10}
STRONG_MOMENTUM_DELTAS = {S.MOMENTUM: 15, S.TREND: 10}
OVERSOLD_DELTAS = {S.MEAN_REVERSION: 20, S.MOMENTUM: -10}
CLEAR_TREND_DELTAS = {S.TREND: 20, S.TECHNICAL: 15}
HIGH_RATES_DELTAS = {S.VALUE: 10, S.DIVIDEND: 15, S.GROWTH: -10}
LOW_GROWTH_DELTAS = {S.DIVIDEND: 10, S.VALUE: 5, S.GROWTH: -10, S.MOMENTUM: -5}
HIGH_INFLATION_DELTAS = {S.VALUE: 5, S.GROWTH: -5, S.FACTOR_BASED: 10}

STRATEGY_DESCRIPTIONS: dict[StrategyType, str] = {
    S.VALUE: "Value investing looks for stocks trading below intrinsic value, favouring low P/E, "
             "low P/B and steady dividends",
    S.GROWTH: "Growth investing targets companies with strong revenue and earnings growth, even at "
              "higher valuations",
    S.MOMENTUM: "Momentum follows stocks with strong recent price gains, expecting the move to continue",
    S.MEAN_REVERSION: "Mean reversion buys or sells stocks that have strayed from their historical "
                      "average, expecting a return to normal levels",
    S.TREND: "Trend following enters established market trends and exits when they end",
    S.TECHNICAL: "Technical analysis trades price patterns, volume and indicator signals",
    S.QUANTITATIVE: "Quantitative strategies apply statistical models to market data and automate "
                    "trading decisions",
    S.DIVIDEND: "Dividend investing holds companies paying stable, high dividends for a steady "
                "income stream",
    S.FACTOR_BASED: "Factor investing selects stocks by exposures such as value, quality and size",
}

RISK_LABELS = {
    RiskTolerance.LOW: "conservative",
    RiskTolerance.MODERATE: "balanced",
    RiskTolerance.HIGH: "aggressive",
}
HORIZON_LABELS = {
    InvestmentHorizon.SHORT: "short-term (3-6 months)",
    InvestmentHorizon.MEDIUM: "medium-term (6-18 months)",
    InvestmentHorizon.LONG: "long-term (over 18 months)",
}
MARKET_LABELS = {
    MarketCondition.BULL: "bull market",
    MarketCondition.BEAR: "bear market",
    MarketCondition.NEUTRAL: "neutral market",
    MarketCondition.VOLATILE: "volatile market",
}

BASE_CONFIDENCE = 70
MIN_CONFIDENCE = 50
MAX_CONFIDENCE = 95


def _by_risk(risk: RiskTolerance, low: Any, moderate: Any, high: Any) -> Any:
    return {RiskTolerance.LOW: low, RiskTolerance.MODERATE: moderate, RiskTolerance.HIGH: high}[risk]


# =============================================================================
# Optional context
# =============================================================================


class _Context(BaseModel):
    model_config = ConfigDict(frozen=True)

    @field_validator("*")
    @classmethod
    def validate_finite(cls, v: float | None, info: Any) -> float | None:
        """Reject NaN and infinite inputs."""
        return require_finite(info.field_name, v)

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class FundamentalContext(_Context):
    """Fundamental inputs; growth and yield as fractions."""

    pe: float | None = None
    pb: float | None = None
    revenue_growth: float | None = None
    eps_growth: float | None = None
    dividend_yield: float | None = None

    @classmethod
    def from_metrics(cls, metrics: FinancialMetrics) -> FundamentalContext:
        """Build from a FinancialMetrics record."""
        return cls(
            pe=metrics.pe_ratio,
            pb=metrics.pb_ratio,
            revenue_growth=metrics.revenue_growth,
            eps_growth=metrics.earnings_growth,
            dividend_yield=metrics.dividend_yield,
        )


class TechnicalContext(_Context):
    """Technical inputs taken from indicator readings."""

    rsi: float | None = None
    macd_histogram: float | None = None
    bollinger_percent_b: float | None = None
    adx: float | None = None

    @classmethod
    def from_analysis(cls, analysis: TechnicalAnalysis) -> TechnicalContext:
        """Build from a TechnicalAnalysis, using whichever indicators it holds."""
        readings = analysis.indicators
        rsi = readings.get(IndicatorName.RSI.value)
        macd = readings.get(IndicatorName.MACD.value)
        bollinger = readings.get(IndicatorName.BOLLINGER.value)
        adx = readings.get(IndicatorName.ADX.value)
        return cls(
            rsi=rsi.current_value if rsi else None,
            macd_histogram=macd.details.get("histogram") if macd else None,
            bollinger_percent_b=bollinger.details.get("percent_b") if bollinger else None,
            adx=adx.current_value if adx else None,
        )


class MacroContext(_Context):
    """Macro environment; rates as fractions."""

    interest_rate: float | None = None
    gdp_growth: float | None = None
    inflation: float | None = None


def _coerce_context(cls: type[_Context], value: Any, name: str) -> _Context | None:
    if value is None or isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        try:
            return cls(**value)
        except ValidationError as e:
            raise InvalidParameterError(
                f"Invalid {name}: {e.errors()[0]['msg']}",
                parameter=name,
                value=dict(value),
            ) from e
    raise InvalidParameterError(
        f"Unsupported {name} type: {type(value).__name__}",
        parameter=name,
        value=type(value).__name__,
        expected=f"{cls.__name__} or mapping",
    )


# =============================================================================
# Result records
# =============================================================================


@dataclass
class RiskManagement:
    """Position-level risk limits for a risk tolerance."""

    max_position_size: float
    stop_loss: float
    take_profit: float
    trailing_stop: bool

    @classmethod
    def for_risk(cls, risk: RiskTolerance) -> RiskManagement:
        return cls(
            max_position_size=_by_risk(risk, 0.05, 0.10, 0.15),
            stop_loss=_by_risk(risk, 0.05, 0.10, 0.15),
            take_profit=_by_risk(risk, 0.10, 0.20, 0.30),
            trailing_stop=_by_risk(risk, True, True, False),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_position_size": self.max_position_size,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "trailing_stop": self.trailing_stop,
        }


@dataclass
class TradingRules:
    """Entry/exit rules for the primary strategy."""

    entry_signals: list[str]
    exit_signals: list[str]
    position_sizing: float
    stop_loss: float
    take_profit: float
    trailing_stop: bool
    timeframe: str | None = None
    review_frequency: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_signals": self.entry_signals,
            "exit_signals": self.exit_signals,
            "position_sizing": self.position_sizing,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "trailing_stop": self.trailing_stop,
            "timeframe": self.timeframe,
            "review_frequency": self.review_frequency,
        }


@dataclass
class StrategyRecommendation:
    """Recommended strategy mix for an investor profile."""

    ticker: str | None
    risk_tolerance: RiskTolerance
    investment_horizon: InvestmentHorizon
    market_condition: MarketCondition
    primary_strategy: StrategyType
    secondary_strategy: StrategyType
    allocation: dict[str, int]
    primary_params: dict[str, Any]
    secondary_params: dict[str, Any]
    risk_management: RiskManagement
    trading_rules: TradingRules
    explanation: str
    strategy_scores: dict[str, int]
    confidence: int

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "primary_params": self.primary_params,
            "secondary_params": self.secondary_params,
            "risk_management": self.risk_management.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "ticker": self.ticker,
            "risk_profile": {
                "tolerance": self.risk_tolerance.value,
                "horizon": self.investment_horizon.value,
                "market_condition": self.market_condition.value,
            },
            "primary_strategy": self.primary_strategy.value,
            "secondary_strategy": self.secondary_strategy.value,
            "allocation": self.allocation,
            "parameters": self.parameters,
            "trading_rules": self.trading_rules.to_dict(),
            "explanation": self.explanation,
            "strategy_scores": self.strategy_scores,
            "confidence": self.confidence,
        }


@dataclass
class FallbackRecommendation:
    """Static allocation used when scoring cannot run."""

    primary_strategy: StrategyType
    allocation: dict[str, int]
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_strategy": self.primary_strategy.value,
            "allocation": self.allocation,
            "explanation": self.explanation,
        }


class PositionAction(str, Enum):
    """Position action derived from an aggregate signal."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


# Minimum aggregate confidence before acting, per risk tolerance
ACTION_CONFIDENCE_THRESHOLDS = {
    RiskTolerance.LOW: 70,
    RiskTolerance.MODERATE: 60,
    RiskTolerance.HIGH: 50,
}


@dataclass
class ActionRecommendation:
    """Position action and sizing for a signal."""

    action: PositionAction
    confidence: int
    position_size: float
    stop_loss: float | None
    take_profit: float | None
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "position_size": self.position_size,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "reason": self.reason,
        }


# =============================================================================
# Scorer
# =============================================================================


class StrategyRecommender:
    """Rule-weighted scorer for the nine candidate strategies.

    Example:
        >>> recommender = StrategyRecommender()
        >>> rec = recommender.recommend("low", "long", "bear")
        >>> rec.primary_strategy, rec.allocation
    """

    def score_strategies(
        self,
        risk_tolerance: RiskTolerance | str,
        investment_horizon: InvestmentHorizon | str,
        market_condition: MarketCondition | str = MarketCondition.NEUTRAL,
        fundamental: FundamentalContext | Mapping[str, float] | None = None,
        technical: TechnicalContext | Mapping[str, float] | None = None,
        macro: MacroContext | Mapping[str, float] | None = None,
    ) -> dict[StrategyType, int]:
        """Score every strategy; scores are non-negative integers.

        Missing context, or missing fields within a context, skip the
        corresponding rules.
        """
        risk = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
        horizon = coerce_enum(InvestmentHorizon, investment_horizon, "investment_horizon")
        market = coerce_enum(MarketCondition, market_condition, "market_condition")
        fundamental = _coerce_context(FundamentalContext, fundamental, "fundamental")
        technical = _coerce_context(TechnicalContext, technical, "technical")
        macro = _coerce_context(MacroContext, macro, "macro")

        scores = {strategy: 0 for strategy in StrategyType}
        for deltas in (RISK_TOLERANCE_DELTAS[risk], HORIZON_DELTAS[horizon], MARKET_DELTAS[market]):
            _apply(scores, deltas)

        if fundamental is not None:
            f = fundamental
            if _lt(f.pe, 15) or _lt(f.pb, 1.5):
                _apply(scores, CHEAP_VALUATION_DELTAS)
            if _gt(f.revenue_growth, 0.15) or _gt(f.eps_growth, 0.2):
                _apply(scores, HIGH_GROWTH_DELTAS)
            if _gt(f.dividend_yield, 0.04):
                _apply(scores, HIGH_YIELD_DELTAS)

        if technical is not None:
            t = technical
            if (t.rsi is not None and 60 < t.rsi < 75) or _gt(t.macd_histogram, 0):
                _apply(scores, STRONG_MOMENTUM_DELTAS)
            if _lt(t.rsi, 35) or _lt(t.bollinger_percent_b, 0.2):
                _apply(scores, OVERSOLD_DELTAS)
            if _gt(t.adx, 25):
                _apply(scores, CLEAR_TREND_DELTAS)

        if macro is not None:
            m = macro
            if _gt(m.interest_rate, 0.04):
                _apply(scores, HIGH_RATES_DELTAS)
            if _lt(m.gdp_growth, 0.02):
                _apply(scores, LOW_GROWTH_DELTAS)
            if _gt(m.inflation, 0.04):
                _apply(scores, HIGH_INFLATION_DELTAS)

        return {strategy: max(0, score) for strategy, score in scores.items()}

    def recommend(
        self,
        risk_tolerance: RiskTolerance | str,
        investment_horizon: InvestmentHorizon | str,
        market_condition: MarketCondition | str = MarketCondition.NEUTRAL,
        fundamental: FundamentalContext | Mapping[str, float] | None = None,
        technical: TechnicalContext | Mapping[str, float] | None = None,
        macro: MacroContext | Mapping[str, float] | None = None,
        ticker: str | None = None,
    ) -> StrategyRecommendation:
        """Score strategies and assemble the full recommendation."""
        risk = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
        horizon = coerce_enum(InvestmentHorizon, investment_horizon, "investment_horizon")
        market = coerce_enum(MarketCondition, market_condition, "market_condition")
        fundamental = _coerce_context(FundamentalContext, fundamental, "fundamental")
        technical = _coerce_context(TechnicalContext, technical, "technical")
        macro = _coerce_context(MacroContext, macro, "macro")

        scores = self.score_strategies(risk, horizon, market, fundamental, technical, macro)
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        (primary, primary_score), (secondary, secondary_score) = ranked[0], ranked[1]

        total = primary_score + secondary_score
        primary_pct = round_half_up(primary_score / total * 100) if total > 0 else 50
        allocation = {primary.value: primary_pct, secondary.value: 100 - primary_pct}

        primary_params = self.primary_parameters(primary, risk)
        risk_management = RiskManagement.for_risk(risk)
        rules = self.trading_rules(primary, primary_params, risk_management, ticker or "the stock")
        confidence = self.confidence(
            primary_score - secondary_score,
            has_fundamental=fundamental is not None and not fundamental.is_empty(),
            has_technical=technical is not None and not technical.is_empty(),
        )

        explanation = (
            f"Given a {RISK_LABELS[risk]} risk tolerance and a {HORIZON_LABELS[horizon]} horizon "
            f"in the current {MARKET_LABELS[market]}, the recommended mix is:\n"
            f"1. {allocation[primary.value]}% {primary.value}: {STRATEGY_DESCRIPTIONS[primary]}\n"
            f"2. {allocation[secondary.value]}% {secondary.value}: {STRATEGY_DESCRIPTIONS[secondary]}\n"
            f"The combination balances risk and return for this profile."
        )

        logger.info(
            f"Strategy recommendation for {ticker or 'portfolio'}: {primary.value} "
            f"{allocation[primary.value]}% / {secondary.value} {allocation[secondary.value]}% "
            f"(confidence {confidence})"
        )

        return StrategyRecommendation(
            ticker=ticker,
            risk_tolerance=risk,
            investment_horizon=horizon,
            market_condition=market,
            primary_strategy=primary,
            secondary_strategy=secondary,
            allocation=allocation,
            primary_params=primary_params,
            secondary_params=self.secondary_parameters(secondary, risk),
            risk_management=risk_management,
            trading_rules=rules,
            explanation=explanation,
            strategy_scores={s.value: score for s, score in scores.items()},
            confidence=confidence,
        )

    @staticmethod
    def confidence(margin: int, has_fundamental: bool, has_technical: bool) -> int:
        """Confidence from the top-two score margin and context coverage."""
        confidence = BASE_CONFIDENCE
        if margin > 30:
            confidence += 15
        elif margin < 10:
            confidence -= 10

        if has_fundamental and has_technical:
            confidence += 10
        elif not has_fundamental and not has_technical:
            confidence -= 10

        return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))

    @staticmethod
    def primary_parameters(strategy: StrategyType, risk: RiskTolerance) -> dict[str, Any]:
        """Parameter table for the primary strategy."""
        if strategy == S.VALUE:
            return {
                "pe_ratio": _by_risk(risk, 15, 20, 25),
                "pb_ratio": _by_risk(risk, 1.5, 2.0, 2.5),
                "dividend_yield": _by_risk(risk, 3.0, 2.0, 1.0),
                "roe": 15,
            }
        if strategy == S.MOMENTUM:
            return {
                "lookback_period": _by_risk(risk, 12, 6, 3),
                "ma_short_period": _by_risk(risk, 50, 20, 10),
                "ma_long_period": _by_risk(risk, 200, 100, 50),
                "minimum_momentum": 0.05,
            }
        if strategy == S.MEAN_REVERSION:
            return {
                "rsi_period": 14,
                "rsi_oversold": _by_risk(risk, 35, 30, 25),
                "rsi_overbought": _by_risk(risk, 65, 70, 75),
                "bollinger_period": 20,
                "bollinger_deviation": _by_risk(risk, 1.5, 2.0, 2.5),
            }
        if strategy == S.TREND:
            return {
                "adx_threshold": 25,
                "trend_strength": _by_risk(risk, "strong", "medium", "any"),
                "stop_loss": _by_risk(risk, 0.05, 0.08, 0.12),
            }
        if strategy == S.DIVIDEND:
            return {
                "min_yield": _by_risk(risk, 4.0, 3.0, 2.0),
                "payout_ratio_max": _by_risk(risk, 0.6, 0.7, 0.8),
                "dividend_growth": _by_risk(risk, 0.05, 0.03, 0.01),
            }
        return {"risk_level": risk.value, "customized": False}

    @staticmethod
    def secondary_parameters(strategy: StrategyType, risk: RiskTolerance) -> dict[str, Any]:
        """Reduced parameter table for the secondary strategy."""
        if strategy == S.VALUE:
            return {
                "pe_ratio": _by_risk(risk, 15, 20, 25),
                "pb_ratio": _by_risk(risk, 1.5, 2.0, 2.5),
            }
        if strategy == S.MOMENTUM:
            return {
                "lookback_period": _by_risk(risk, 12, 6, 3),
                "ma_short_period": 20,
                "ma_long_period": 50,
            }
        if strategy == S.MEAN_REVERSION:
            return {"rsi_period": 14, "rsi_oversold": 30, "rsi_overbought": 70}
        return {"risk_level": risk.value}

    @staticmethod
    def trading_rules(
        strategy: StrategyType,
        params: dict[str, Any],
        risk_management: RiskManagement,
        ticker: str,
    ) -> TradingRules:
        """Templated entry/exit rules for the primary strategy."""
        base = {
            "position_sizing": risk_management.max_position_size,
            "stop_loss": risk_management.stop_loss,
            "take_profit": risk_management.take_profit,
            "trailing_stop": risk_management.trailing_stop,
        }

        if strategy == S.VALUE:
            return TradingRules(
                entry_signals=[
                    f"{ticker} P/E below {params['pe_ratio']:g}",
                    f"{ticker} P/B below {params['pb_ratio']:g}",
                    f"{ticker} ROE above {params['roe']:g}%",
                ],
                exit_signals=[
                    f"{ticker} P/E above {params['pe_ratio'] * 1.5:g}",
                    f"{ticker} P/B above {params['pb_ratio'] * 1.5:g}",
                    "Significant deterioration in fundamentals",
                ],
                timeframe="weekly or monthly",
                review_frequency="quarterly",
                **base,
            )
        if strategy == S.MOMENTUM:
            short, long_ = params["ma_short_period"], params["ma_long_period"]
            return TradingRules(
                entry_signals=[
                    f"{ticker} price breaks above the {short}-day moving average",
                    f"{short}-day moving average crosses above the {long_}-day moving average",
                    f"{ticker} outperforms the market by {params['minimum_momentum'] * 100:g}% "
                    f"over the past {params['lookback_period']} months",
                ],
                exit_signals=[
                    f"{ticker} price falls below the {short}-day moving average",
                    f"{short}-day moving average crosses below the {long_}-day moving average",
                    "Momentum indicators weaken significantly",
                ],
                timeframe="daily",
                review_frequency="weekly",
                **base,
            )
        if strategy == S.MEAN_REVERSION:
            return TradingRules(
                entry_signals=[
                    f"RSI({params['rsi_period']}) below {params['rsi_oversold']} (oversold)",
                    f"{ticker} touches the lower Bollinger Band ({params['bollinger_period']}-day, "
                    f"{params['bollinger_deviation']:g} std)",
                    "Price more than 2 standard deviations from the 20-day average",
                ],
                exit_signals=[
                    f"RSI({params['rsi_period']}) above {params['rsi_overbought']} (overbought)",
                    "Price returns to the moving average",
                    f"{ticker} touches the upper Bollinger Band",
                ],
                timeframe="daily",
                review_frequency="daily",
                **base,
            )
        if strategy == S.TREND:
            return TradingRules(
                entry_signals=[
                    f"ADX above {params['adx_threshold']} confirms a trend",
                    "Higher highs and higher lows (uptrend)",
                    "Price breaks a key resistance level",
                ],
                exit_signals=[
                    "Price breaks the key trend line",
                    "Reversal pattern forms",
                    "ADX falls below 20",
                ],
                timeframe="daily and weekly",
                review_frequency="weekly",
                **base,
            )
        if strategy == S.DIVIDEND:
            return TradingRules(
                entry_signals=[
                    f"Dividend yield above {params['min_yield']:g}%",
                    f"Payout ratio below {params['payout_ratio_max'] * 100:g}%",
                    f"Annual dividend growth above {params['dividend_growth'] * 100:g}%",
                ],
                exit_signals=[
                    "Company cuts or suspends the dividend",
                    "Dividend coverage falls significantly",
                    "Company fundamentals deteriorate",
                ],
                timeframe="monthly or quarterly",
                review_frequency="semi-annually",
                **base,
            )
        return TradingRules(entry_signals=[], exit_signals=[], **base)


def _apply(scores: dict[StrategyType, int], deltas: Mapping[StrategyType, int]) -> None:
    for strategy, delta in deltas.items():
        scores[strategy] += delta


def _lt(value: float | None, bound: float) -> bool:
    return value is not None and value < bound


def _gt(value: float | None, bound: float) -> bool:
    return value is not None and value > bound


# =============================================================================
# Helpers for callers
# =============================================================================


def fallback_recommendation(risk_tolerance: RiskTolerance | str) -> FallbackRecommendation:
    """Static allocation per risk tolerance."""
    risk = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
    if risk == RiskTolerance.LOW:
        return FallbackRecommendation(
            primary_strategy=S.VALUE,
            allocation={S.VALUE.value: 70, S.DIVIDEND.value: 30},
            explanation="A conservative profile suits a value and dividend mix focused on low "
                        "valuations and stable income.",
        )
    if risk == RiskTolerance.MODERATE:
        return FallbackRecommendation(
            primary_strategy=S.VALUE,
            allocation={S.VALUE.value: 50, S.GROWTH.value: 30, S.MOMENTUM.value: 20},
            explanation="A balanced profile suits a value core with growth and momentum satellites.",
        )
    return FallbackRecommendation(
        primary_strategy=S.MOMENTUM,
        allocation={S.MOMENTUM.value: 60, S.GROWTH.value: 40},
        explanation="An aggressive profile suits a momentum core with growth for higher potential return.",
    )


def recommend_action(
    signal: Signal | str,
    confidence: float,
    risk_tolerance: RiskTolerance | str = RiskTolerance.MODERATE,
) -> ActionRecommendation:
    """Map an aggregate signal to a position action.

    Bullish and oversold readings buy, bearish and overbought readings sell.
    Signals below the risk tolerance's confidence threshold hold. Position
    size scales the maximum position by confidence.

    Args:
        signal: Aggregate signal.
        confidence: Signal confidence in percent (0-100).
        risk_tolerance: Investor risk tolerance.
    """
    signal = coerce_enum(Signal, signal, "signal")
    risk = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
    if not 0 <= confidence <= 100:
        raise InvalidParameterError(
            "Confidence must lie in [0, 100]",
            parameter="confidence",
            value=confidence,
            expected="0 <= confidence <= 100",
        )

    threshold = ACTION_CONFIDENCE_THRESHOLDS[risk]
    limits = RiskManagement.for_risk(risk)
    if signal in (Signal.BULLISH, Signal.OVERSOLD):
        action = PositionAction.BUY
    elif signal in (Signal.BEARISH, Signal.OVERBOUGHT):
        action = PositionAction.SELL
    else:
        action = PositionAction.HOLD

    if action != PositionAction.HOLD and confidence < threshold:
        return ActionRecommendation(
            action=PositionAction.HOLD,
            confidence=round_half_up(confidence),
            position_size=0.0,
            stop_loss=None,
            take_profit=None,
            reason=f"{signal.value} signal below the {threshold}% confidence needed for a "
                   f"{risk.value} risk tolerance",
        )
    if action == PositionAction.HOLD:
        return ActionRecommendation(
            action=action,
            confidence=round_half_up(confidence),
            position_size=0.0,
            stop_loss=None,
            take_profit=None,
            reason="No directional signal",
        )

    return ActionRecommendation(
        action=action,
        confidence=round_half_up(confidence),
        position_size=limits.max_position_size * confidence / 100.0,
        stop_loss=limits.stop_loss,
        take_profit=limits.take_profit,
        reason=f"{signal.value} signal at {confidence:.0f}% confidence",
    )
