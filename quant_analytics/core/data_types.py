"""
Pydantic models and type definitions for the analytics engine.

Defines strict type contracts for the data flowing into the engine
(daily price points, price series, financial metrics) and the enumerations
shared by every component (signals, investor profile, optimization target).
Component results are plain dataclasses defined next to the code that
produces them.
"""

from __future__ import annotations

import datetime as dt
import math
from enum import Enum
from typing import Any

import numpy as np
import polars as pl
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import InvalidParameterError


# =============================================================================
# Enumerations
# =============================================================================


class Signal(str, Enum):
    """Qualitative signal emitted by indicators and factor scores."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    OVERBOUGHT = "overbought"
    OVERSOLD = "oversold"


class RiskTolerance(str, Enum):
    """Investor risk tolerance."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class InvestmentHorizon(str, Enum):
    """Investor holding horizon."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class MarketCondition(str, Enum):
    """Prevailing market regime."""

    BULL = "bull"
    BEAR = "bear"
    NEUTRAL = "neutral"
    VOLATILE = "volatile"


class OptimizationTarget(str, Enum):
    """Portfolio optimization objective."""

    MAX_SHARPE = "maxSharpe"
    MIN_RISK = "minRisk"
    MAX_RETURN = "maxReturn"
    BALANCED = "balanced"


class StrategyType(str, Enum):
    """Candidate investment strategies, in scoring tie-break order."""

    VALUE = "value"
    GROWTH = "growth"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "meanReversion"
    TREND = "trend"
    TECHNICAL = "technical"
    QUANTITATIVE = "quantitative"
    DIVIDEND = "dividend"
    FACTOR_BASED = "factorBased"


def coerce_enum(enum_cls: type[Enum], value: Any, parameter: str) -> Any:
    """Convert a raw value to an enum member.

    Raises:
        InvalidParameterError: If the value is not a member.
    """
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidParameterError(
            f"Invalid {parameter}: {value!r}",
            parameter=parameter,
            value=value,
            expected=", ".join(str(m.value) for m in enum_cls),
        ) from e


def require_finite(name: str, value: float | None) -> float | None:
    if value is not None and not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


# =============================================================================
# Price Data
# =============================================================================


class PricePoint(BaseModel):
    """Daily OHLCV observation with strict validation."""

    date: dt.date = Field(..., description="Trading date")
    open: float = Field(..., gt=0, description="Open price")
    high: float = Field(..., gt=0, description="High price")
    low: float = Field(..., gt=0, description="Low price")
    close: float = Field(..., gt=0, description="Close price")
    volume: float = Field(default=0.0, ge=0, description="Trading volume")

    model_config = ConfigDict(frozen=True)

    @field_validator("open", "high", "low", "close", "volume")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Reject NaN and infinite prices."""
        if not math.isfinite(v):
            raise ValueError(f"value must be finite, got {v}")
        return v

    @model_validator(mode="after")
    def validate_ohlc_relationship(self) -> "PricePoint":
        """Validate OHLC relationship: low <= open,close <= high."""
        if self.low > min(self.open, self.close):
            raise ValueError(f"Low price ({self.low}) must be <= open ({self.open}) and close ({self.close})")
        if self.high < max(self.open, self.close):
            raise ValueError(f"High price ({self.high}) must be >= open ({self.open}) and close ({self.close})")
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary with serializable types."""
        return {
            "date": self.date.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


class PriceSeries(BaseModel):
    """Ordered sequence of price points for one instrument.

    Points must be strictly ascending by date. The series is consumed
    read-only by every component; array accessors return fresh copies.
    """

    ticker: str = Field(..., min_length=1, max_length=12, description="Ticker symbol")
    points: tuple[PricePoint, ...] = Field(..., description="Ascending daily observations")

    model_config = ConfigDict(frozen=True)

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v: str) -> str:
        """Validate and normalize ticker."""
        return v.upper().strip()

    @model_validator(mode="after")
    def validate_ordering(self) -> "PriceSeries":
        """Validate strictly ascending dates."""
        for previous, current in zip(self.points, self.points[1:]):
            if current.date <= previous.date:
                raise ValueError(
                    f"Price points must be strictly ascending by date "
                    f"({previous.date} followed by {current.date})"
                )
        return self

    def __len__(self) -> int:
        return len(self.points)

    @property
    def dates(self) -> list[dt.date]:
        return [p.date for p in self.points]

    @property
    def opens(self) -> np.ndarray:
        return np.array([p.open for p in self.points], dtype=np.float64)

    @property
    def highs(self) -> np.ndarray:
        return np.array([p.high for p in self.points], dtype=np.float64)

    @property
    def lows(self) -> np.ndarray:
        return np.array([p.low for p in self.points], dtype=np.float64)

    @property
    def closes(self) -> np.ndarray:
        return np.array([p.close for p in self.points], dtype=np.float64)

    @property
    def volumes(self) -> np.ndarray:
        return np.array([p.volume for p in self.points], dtype=np.float64)

    def to_frame(self) -> pl.DataFrame:
        """Return the series as a polars OHLCV DataFrame."""
        return pl.DataFrame({
            "date": self.dates,
            "open": self.opens,
            "high": self.highs,
            "low": self.lows,
            "close": self.closes,
            "volume": self.volumes,
        })

    def restrict_to(self, dates: set[dt.date]) -> "PriceSeries":
        """Return a new series holding only the points on the given dates."""
        return PriceSeries(
            ticker=self.ticker,
            points=tuple(p for p in self.points if p.date in dates),
        )

    @classmethod
    def from_closes(
        cls,
        ticker: str,
        closes: list[float] | np.ndarray,
        start: dt.date | None = None,
        volume: float = 1_000_000.0,
    ) -> "PriceSeries":
        """Build a series from closing prices alone.

        Open, high and low equal the close, dates are consecutive calendar
        days starting at ``start``.
        """
        start = start or dt.date(2020, 1, 1)
        origin = start.toordinal()
        return cls(
            ticker=ticker,
            points=tuple(
                PricePoint(
                    date=dt.date.fromordinal(origin + i),
                    open=float(c),
                    high=float(c),
                    low=float(c),
                    close=float(c),
                    volume=volume,
                )
                for i, c in enumerate(closes)
            ),
        )


# =============================================================================
# Fundamental Data
# =============================================================================


class FinancialMetrics(BaseModel):
    """Per-ticker fundamental and market metrics.

    Every field is optional; components skip the sub-scores whose inputs
    are missing. Ratios and growth rates are fractions (0.15 = 15%).
    """

    ticker: str | None = None
    pe_ratio: float | None = None
    pb_ratio: float | None = None
    ps_ratio: float | None = None
    roe: float | None = None
    roa: float | None = None
    profit_margin: float | None = None
    return_1m: float | None = None
    return_3m: float | None = None
    return_6m: float | None = None
    earnings_growth: float | None = None
    revenue_growth: float | None = None
    market_cap: float | None = Field(default=None, ge=0)
    volatility: float | None = Field(default=None, ge=0)
    beta: float | None = None
    dividend_yield: float | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator(
        "pe_ratio", "pb_ratio", "ps_ratio", "roe", "roa", "profit_margin",
        "return_1m", "return_3m", "return_6m", "earnings_growth",
        "revenue_growth", "market_cap", "volatility", "beta", "dividend_yield",
    )
    @classmethod
    def validate_finite(cls, v: float | None, info: Any) -> float | None:
        """Reject NaN and infinite metrics."""
        return require_finite(info.field_name, v)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, dropping missing metrics."""
        return self.model_dump(exclude_none=True)
