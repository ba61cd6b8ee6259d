"""
Unit tests for trading/strategy_recommender.py
"""

import pytest

from quant_analytics.core.data_types import (
    InvestmentHorizon,
    MarketCondition,
    RiskTolerance,
    Signal,
    StrategyType,
)
from quant_analytics.core.exceptions import InvalidParameterError
from quant_analytics.features.technical import TechnicalIndicatorCalculator
from quant_analytics.trading.strategy_recommender import (
    FundamentalContext,
    MacroContext,
    PositionAction,
    StrategyRecommender,
    TechnicalContext,
    fallback_recommendation,
    recommend_action,
)


@pytest.fixture
def recommender():
    return StrategyRecommender()


class TestScoreStrategies:
    """Tests for the rule-table scoring."""

    def test_low_long_bear(self, recommender):
        scores = recommender.score_strategies("low", "long", "bear")
        assert scores[StrategyType.VALUE] == 70
        assert scores[StrategyType.DIVIDEND] == 70
        assert scores[StrategyType.MEAN_REVERSION] == 35
        assert scores[StrategyType.FACTOR_BASED] == 10
        assert scores[StrategyType.GROWTH] == 5

    def test_scores_clamped_at_zero(self, recommender):
        """Momentum (-55) and trend (-20) clamp to zero."""
        scores = recommender.score_strategies(RiskTolerance.LOW, InvestmentHorizon.LONG, MarketCondition.BEAR)
        assert scores[StrategyType.MOMENTUM] == 0
        assert scores[StrategyType.TREND] == 0
        assert all(score >= 0 for score in scores.values())

    def test_high_short_bull(self, recommender):
        scores = recommender.score_strategies("high", "short", "bull")
        assert scores[StrategyType.MOMENTUM] == 70
        assert scores[StrategyType.TREND] == 50
        assert scores[StrategyType.TECHNICAL] == 45
        assert scores[StrategyType.GROWTH] == 40

    def test_context_rules(self, recommender):
        scores = recommender.score_strategies(
            "moderate",
            "medium",
            fundamental={"pe": 10.0, "revenue_growth": 0.2, "dividend_yield": 0.05},
            technical={"rsi": 65.0, "adx": 30.0},
        )
        assert scores[StrategyType.GROWTH] == 55
        assert scores[StrategyType.VALUE] == 45
        assert scores[StrategyType.TREND] == 45
        assert scores[StrategyType.DIVIDEND] == 35
        assert scores[StrategyType.MOMENTUM] == 25
        assert scores[StrategyType.TECHNICAL] == 30

    def test_oversold_rule(self, recommender):
        base = recommender.score_strategies("moderate", "medium")
        scores = recommender.score_strategies("moderate", "medium", technical=TechnicalContext(bollinger_percent_b=0.1))
        assert scores[StrategyType.MEAN_REVERSION] == base[StrategyType.MEAN_REVERSION] + 20

    def test_overheated_rsi_is_not_momentum(self, recommender):
        """RSI at 80 is outside the 60-75 momentum band."""
        base = recommender.score_strategies("moderate", "medium")
        scores = recommender.score_strategies("moderate", "medium", technical={"rsi": 80.0})
        assert scores == base

    def test_macro_rules(self, recommender):
        base = recommender.score_strategies("moderate", "medium")
        scores = recommender.score_strategies(
            "moderate",
            "medium",
            macro=MacroContext(interest_rate=0.05, gdp_growth=0.01, inflation=0.06),
        )
        assert scores[StrategyType.VALUE] == base[StrategyType.VALUE] + 10 + 5 + 5
        assert scores[StrategyType.DIVIDEND] == base[StrategyType.DIVIDEND] + 15 + 10
        assert scores[StrategyType.GROWTH] == base[StrategyType.GROWTH] - 10 - 10 - 5
        assert scores[StrategyType.FACTOR_BASED] == base[StrategyType.FACTOR_BASED] + 10

    def test_missing_fields_skip_rules(self, recommender):
        base = recommender.score_strategies("moderate", "medium")
        assert recommender.score_strategies("moderate", "medium", fundamental=FundamentalContext()) == base

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"risk_tolerance": "extreme", "investment_horizon": "long"},
            {"risk_tolerance": "low", "investment_horizon": "forever"},
            {"risk_tolerance": "low", "investment_horizon": "long", "market_condition": "sideways"},
        ],
    )
    def test_unknown_profile(self, recommender, kwargs):
        with pytest.raises(InvalidParameterError):
            recommender.score_strategies(**kwargs)

    def test_non_finite_context(self, recommender):
        with pytest.raises(InvalidParameterError):
            recommender.score_strategies("low", "long", technical={"rsi": float("nan")})

    def test_unsupported_context_type(self, recommender):
        with pytest.raises(InvalidParameterError):
            recommender.score_strategies("low", "long", fundamental=[10.0])


class TestRecommend:
    """Tests for the assembled recommendation."""

    def test_low_long_bear(self, recommender):
        """Value and dividend tie at 70; declaration order puts value first."""
        rec = recommender.recommend("low", "long", "bear")
        assert rec.primary_strategy == StrategyType.VALUE
        assert rec.secondary_strategy == StrategyType.DIVIDEND
        assert rec.allocation == {"value": 50, "dividend": 50}
        assert rec.confidence == 50

    def test_low_risk_ranking(self, recommender):
        """Conservative profiles never lead with momentum or trend."""
        for horizon in InvestmentHorizon:
            for market in MarketCondition:
                rec = recommender.recommend(RiskTolerance.LOW, horizon, market)
                assert rec.primary_strategy not in (StrategyType.MOMENTUM, StrategyType.TREND)

    def test_allocation_rounds_half_up(self, recommender):
        """70 / (70 + 50) = 58.3%."""
        rec = recommender.recommend("high", "short", "bull")
        assert rec.primary_strategy == StrategyType.MOMENTUM
        assert rec.secondary_strategy == StrategyType.TREND
        assert rec.allocation == {"momentum": 58, "trend": 42}
        assert rec.confidence == 60

    def test_context_raises_confidence(self, recommender):
        rec = recommender.recommend(
            "moderate",
            "medium",
            fundamental={"pe": 10.0, "revenue_growth": 0.2, "dividend_yield": 0.05},
            technical={"rsi": 65.0, "adx": 30.0},
            ticker="AAPL",
        )
        assert rec.primary_strategy == StrategyType.GROWTH
        assert rec.secondary_strategy == StrategyType.VALUE
        assert rec.allocation == {"growth": 55, "value": 45}
        assert rec.confidence == 80

    def test_allocation_sums_to_100(self, recommender):
        for risk in RiskTolerance:
            for horizon in InvestmentHorizon:
                rec = recommender.recommend(risk, horizon, "volatile")
                assert sum(rec.allocation.values()) == 100

    def test_value_parameters_and_rules(self, recommender):
        rec = recommender.recommend("low", "long", "bear", ticker="JNJ")
        assert rec.primary_params == {"pe_ratio": 15, "pb_ratio": 1.5, "dividend_yield": 3.0, "roe": 15}
        assert rec.secondary_params == {"risk_level": "low"}
        assert rec.trading_rules.entry_signals[0] == "JNJ P/E below 15"
        assert rec.trading_rules.exit_signals[0] == "JNJ P/E above 22.5"
        assert rec.trading_rules.position_sizing == 0.05
        assert rec.trading_rules.trailing_stop is True
        assert rec.trading_rules.review_frequency == "quarterly"

    def test_momentum_rules(self, recommender):
        rec = recommender.recommend("high", "short", "bull")
        assert rec.primary_params["ma_short_period"] == 10
        assert "the stock price breaks above the 10-day moving average" in rec.trading_rules.entry_signals
        assert rec.risk_management.trailing_stop is False

    def test_explanation_names_mix(self, recommender):
        rec = recommender.recommend("low", "long", "bear")
        assert "conservative" in rec.explanation
        assert "50% value" in rec.explanation
        assert "50% dividend" in rec.explanation

    def test_to_dict(self, recommender):
        payload = recommender.recommend("moderate", "medium", ticker="MSFT").to_dict()
        assert payload["ticker"] == "MSFT"
        assert payload["risk_profile"] == {"tolerance": "moderate", "horizon": "medium", "market_condition": "neutral"}
        assert set(payload["parameters"]) == {"primary_params", "secondary_params", "risk_management"}
        assert len(payload["strategy_scores"]) == len(StrategyType)

    def test_deterministic(self, recommender):
        first = recommender.recommend("moderate", "long", "volatile", macro={"interest_rate": 0.05})
        second = recommender.recommend("moderate", "long", "volatile", macro={"interest_rate": 0.05})
        assert first.to_dict() == second.to_dict()


class TestConfidence:
    """Tests for the confidence formula."""

    @pytest.mark.parametrize(
        "margin,fundamental,technical,expected",
        [
            (31, True, True, 95),
            (31, False, False, 75),
            (20, True, False, 70),
            (5, False, False, 50),
            (5, True, True, 70),
            (10, False, True, 70),
        ],
    )
    def test_formula(self, margin, fundamental, technical, expected):
        assert StrategyRecommender.confidence(margin, fundamental, technical) == expected


class TestContexts:
    """Tests for the optional context models."""

    def test_from_metrics(self, sample_metrics):
        context = FundamentalContext.from_metrics(sample_metrics)
        assert context.pe == 12.0
        assert context.eps_growth == 0.12
        assert context.dividend_yield == 0.006

    def test_from_analysis(self, ohlcv_series):
        analysis = TechnicalIndicatorCalculator().calculate(ohlcv_series)
        context = TechnicalContext.from_analysis(analysis)
        assert context.rsi == analysis.indicators["rsi"].current_value
        assert context.macd_histogram == analysis.indicators["macd"].details["histogram"]
        assert context.bollinger_percent_b == analysis.indicators["bollinger"].details["percent_b"]
        assert context.adx == analysis.indicators["adx"].current_value

    def test_from_partial_analysis(self, ohlcv_series):
        analysis = TechnicalIndicatorCalculator().calculate(ohlcv_series, ["rsi"])
        context = TechnicalContext.from_analysis(analysis)
        assert context.rsi is not None
        assert context.adx is None
        assert not context.is_empty()

    def test_empty(self):
        assert MacroContext().is_empty()


class TestFallback:
    """Tests for fallback_recommendation."""

    @pytest.mark.parametrize(
        "risk,primary,allocation",
        [
            ("low", StrategyType.VALUE, {"value": 70, "dividend": 30}),
            ("moderate", StrategyType.VALUE, {"value": 50, "growth": 30, "momentum": 20}),
            ("high", StrategyType.MOMENTUM, {"momentum": 60, "growth": 40}),
        ],
    )
    def test_static_allocations(self, risk, primary, allocation):
        fallback = fallback_recommendation(risk)
        assert fallback.primary_strategy == primary
        assert fallback.allocation == allocation
        assert sum(fallback.allocation.values()) == 100


class TestRecommendAction:
    """Tests for recommend_action."""

    def test_bullish_buys(self):
        action = recommend_action(Signal.BULLISH, 80, "moderate")
        assert action.action == PositionAction.BUY
        assert action.position_size == pytest.approx(0.08)
        assert action.stop_loss == 0.10
        assert action.take_profit == 0.20

    def test_below_threshold_holds(self):
        action = recommend_action("bullish", 55, "moderate")
        assert action.action == PositionAction.HOLD
        assert action.position_size == 0.0
        assert action.stop_loss is None

    def test_overbought_sells(self):
        assert recommend_action("overbought", 75, "low").action == PositionAction.SELL

    def test_oversold_buys_at_threshold(self):
        """Confidence exactly at the high-risk threshold of 50 acts."""
        assert recommend_action("oversold", 50, "high").action == PositionAction.BUY

    def test_neutral_holds(self):
        action = recommend_action("neutral", 90)
        assert action.action == PositionAction.HOLD
        assert action.reason == "No directional signal"

    @pytest.mark.parametrize("confidence", [-1, 101])
    def test_confidence_range(self, confidence):
        with pytest.raises(InvalidParameterError):
            recommend_action("bullish", confidence)

    def test_to_dict(self):
        assert recommend_action("bearish", 90, "high").to_dict()["action"] == "sell"
