"""
Trading strategy module.

Scores candidate strategies for an investor profile and maps aggregate
signals to position actions.
"""

from quant_analytics.trading.strategy_recommender import (
    ACTION_CONFIDENCE_THRESHOLDS,
    ActionRecommendation,
    FallbackRecommendation,
    FundamentalContext,
    MacroContext,
    PositionAction,
    RiskManagement,
    StrategyRecommendation,
    StrategyRecommender,
    TechnicalContext,
    TradingRules,
    fallback_recommendation,
    recommend_action,
)

__all__ = [
    "ACTION_CONFIDENCE_THRESHOLDS",
    "ActionRecommendation",
    "FallbackRecommendation",
    "FundamentalContext",
    "MacroContext",
    "PositionAction",
    "RiskManagement",
    "StrategyRecommendation",
    "StrategyRecommender",
    "TechnicalContext",
    "TradingRules",
    "fallback_recommendation",
    "recommend_action",
]
