"""
Core layer for the analytics engine.

Contains type definitions, exceptions, the data-provider boundary and
reproducibility helpers used across all components.
"""

from .data_types import (
    FinancialMetrics,
    InvestmentHorizon,
    MarketCondition,
    OptimizationTarget,
    PricePoint,
    PriceSeries,
    RiskTolerance,
    Signal,
    StrategyType,
)
from .exceptions import (
    AnalyticsError,
    DataUnavailableError,
    InsufficientDataError,
    InsufficientHistoryError,
    InvalidParameterError,
    NumericDegeneracyError,
)
from .data_provider import (
    DataProvider,
    InMemoryDataProvider,
    align_series,
    build_financial_metrics,
    build_price_series,
)
from .reproducibility import make_generator

__all__ = [
    # Data types
    "FinancialMetrics",
    "InvestmentHorizon",
    "MarketCondition",
    "OptimizationTarget",
    "PricePoint",
    "PriceSeries",
    "RiskTolerance",
    "Signal",
    "StrategyType",
    # Exceptions
    "AnalyticsError",
    "DataUnavailableError",
    "InsufficientDataError",
    "InsufficientHistoryError",
    "InvalidParameterError",
    "NumericDegeneracyError",
    # Data provider
    "DataProvider",
    "InMemoryDataProvider",
    "align_series",
    "build_financial_metrics",
    "build_price_series",
    # Reproducibility
    "make_generator",
]
