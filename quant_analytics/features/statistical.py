"""
Time-series statistics library.

Implements the numeric building blocks shared by every component:
- Returns (simple, log)
- Moments (mean, variance, standard deviation, z-score)
- Co-movement (covariance, correlation)
- Annualization (compounded return, square-root-of-time volatility)
- Equity curve metrics (cumulative curve, maximum drawdown)
- Trend slope and half-up rounding for reported percentages

All functions take 1-D numeric sequences and fail fast: fewer observations
than required raise InsufficientDataError, NaN/inf or mismatched lengths
raise InvalidParameterError, and zero-variance denominators raise
NumericDegeneracyError. Variance-type statistics default to the population
form (ddof=0).
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from scipy import stats

from quant_analytics.core.exceptions import (
    InsufficientDataError,
    InvalidParameterError,
    NumericDegeneracyError,
)

TRADING_DAYS_PER_YEAR = 252

ArrayLike = Sequence[float] | np.ndarray


def as_array(
    values: ArrayLike,
    name: str = "values",
    min_length: int = 1,
    ticker: str | None = None,
) -> np.ndarray:
    """Validate a numeric sequence and return it as a float64 array.

    Args:
        values: Input sequence.
        name: Parameter name used in error details.
        min_length: Minimum number of observations.
        ticker: Optional ticker for diagnostics.

    Returns:
        A new 1-D float64 array.
    """
    arr = np.array(values, dtype=np.float64)
    if arr.ndim != 1:
        raise InvalidParameterError(
            f"{name} must be one-dimensional",
            parameter=name,
            value=arr.shape,
            expected="1-D sequence",
        )
    if len(arr) < min_length:
        raise InsufficientDataError(
            f"{name} needs at least {min_length} observations, got {len(arr)}",
            required=min_length,
            actual=len(arr),
            ticker=ticker,
        )
    if not np.all(np.isfinite(arr)):
        bad = int(np.flatnonzero(~np.isfinite(arr))[0])
        raise InvalidParameterError(
            f"{name} contains a non-finite value at index {bad}",
            parameter=name,
            value=arr[bad],
            expected="finite numbers",
            details={"ticker": ticker} if ticker else None,
        )
    return arr


def as_pair(a: ArrayLike, b: ArrayLike, min_length: int) -> tuple[np.ndarray, np.ndarray]:
    x = as_array(a, "a", min_length)
    y = as_array(b, "b", min_length)
    if len(x) != len(y):
        raise InvalidParameterError(
            f"Series lengths differ ({len(x)} vs {len(y)})",
            parameter="length",
            value=(len(x), len(y)),
            expected="equal-length, date-aligned series",
        )
    return x, y


# =============================================================================
# RETURNS
# =============================================================================


def returns(prices: ArrayLike, ticker: str | None = None) -> np.ndarray:
    """Period-over-period simple returns.

    Returns:
        Array of length ``len(prices) - 1``.
    """
    p = as_array(prices, "prices", 2, ticker)
    if np.any(p[:-1] == 0):
        raise NumericDegeneracyError("Zero price in return denominator", quantity="returns", ticker=ticker)
    return (p[1:] - p[:-1]) / p[:-1]


def log_returns(prices: ArrayLike, ticker: str | None = None) -> np.ndarray:
    """Period-over-period log returns."""
    p = as_array(prices, "prices", 2, ticker)
    if np.any(p <= 0):
        raise InvalidParameterError(
            "Log returns need strictly positive prices",
            parameter="prices",
            expected="> 0",
            details={"ticker": ticker} if ticker else None,
        )
    return np.diff(np.log(p))


# =============================================================================
# MOMENTS
# =============================================================================


def mean(values: ArrayLike) -> float:
    """Arithmetic mean."""
    return float(np.mean(as_array(values, "values", 2)))


def variance(values: ArrayLike, ddof: int = 0) -> float:
    """Variance (population by default, sample with ``ddof=1``)."""
    arr = as_array(values, "values", max(2, ddof + 1))
    return float(np.var(arr, ddof=ddof))


def stddev(values: ArrayLike, ddof: int = 0) -> float:
    """Standard deviation (population by default)."""
    return float(np.sqrt(variance(values, ddof=ddof)))


def zscore(values: ArrayLike) -> np.ndarray:
    """Standardize every point against the mean and population stddev."""
    arr = as_array(values, "values", 2)
    sd = float(np.std(arr))
    if sd == 0:
        raise NumericDegeneracyError("Cannot standardize a constant series", quantity="stddev")
    return (arr - np.mean(arr)) / sd


# =============================================================================
# CO-MOVEMENT
# =============================================================================


def covariance(a: ArrayLike, b: ArrayLike, ddof: int = 0) -> float:
    """Covariance of two equal-length series."""
    x, y = as_pair(a, b, max(2, ddof + 1))
    return float(np.sum((x - x.mean()) * (y - y.mean())) / (len(x) - ddof))


def correlation(a: ArrayLike, b: ArrayLike) -> float:
    """Pearson correlation, always within [-1, 1].

    Raises:
        NumericDegeneracyError: If either series has zero variance.
    """
    x, y = as_pair(a, b, 2)
    dx = x - x.mean()
    dy = y - y.mean()
    denom = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denom == 0:
        raise NumericDegeneracyError("Correlation undefined for a constant series", quantity="variance")
    return float(np.clip(np.sum(dx * dy) / denom, -1.0, 1.0))


# =============================================================================
# ANNUALIZATION
# =============================================================================


def annualize_return(daily_mean: float, trading_days: int = TRADING_DAYS_PER_YEAR) -> float:
    """Compound a mean daily return to an annual return."""
    _check_trading_days(trading_days)
    return float((1.0 + daily_mean) ** trading_days - 1.0)


def annualize_volatility(daily_std: float, trading_days: int = TRADING_DAYS_PER_YEAR) -> float:
    """Scale a daily standard deviation by the square root of time."""
    _check_trading_days(trading_days)
    return float(daily_std * np.sqrt(trading_days))


def annualize(daily_metric: float, trading_days: int = TRADING_DAYS_PER_YEAR, kind: str = "return") -> float:
    """Annualize a daily metric.

    Args:
        daily_metric: Mean daily return or daily standard deviation.
        trading_days: Trading days per year.
        kind: ``"return"`` (compounded) or ``"volatility"`` (sqrt-time).
    """
    if kind == "return":
        return annualize_return(daily_metric, trading_days)
    if kind == "volatility":
        return annualize_volatility(daily_metric, trading_days)
    raise InvalidParameterError(
        f"Unknown annualization kind: {kind}",
        parameter="kind",
        value=kind,
        expected="'return' or 'volatility'",
    )


def _check_trading_days(trading_days: int) -> None:
    if trading_days <= 0:
        raise InvalidParameterError(
            "Trading days must be positive",
            parameter="trading_days",
            value=trading_days,
            expected="> 0",
        )


# =============================================================================
# EQUITY CURVE
# =============================================================================


def cumulative_curve(period_returns: ArrayLike) -> np.ndarray:
    """Compounded growth of one unit; element ``i`` is the value after return ``i``."""
    r = as_array(period_returns, "returns", 1)
    return np.cumprod(1.0 + r)


def max_drawdown(period_returns: ArrayLike) -> float:
    """Worst peak-to-trough decline of the compounded curve.

    The curve starts at 1.0 before the first return, so an immediate loss
    counts as a drawdown. Returned as a positive fraction.
    """
    curve = np.concatenate(([1.0], cumulative_curve(period_returns)))
    peaks = np.maximum.accumulate(curve)
    return float(np.max((peaks - curve) / peaks))


# =============================================================================
# TREND
# =============================================================================


def trend_slope(values: ArrayLike) -> float:
    """Least-squares slope of values against their index."""
    arr = as_array(values, "values", 3)
    return float(stats.linregress(np.arange(len(arr), dtype=np.float64), arr).slope)


# =============================================================================
# ROUNDING
# =============================================================================


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(np.floor(value + 0.5))
