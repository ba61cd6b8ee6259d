"""
Pytest fixtures for the Quant Analytics tests.

Synthetic price series are generated from fixed seeds so every test run
sees identical data.
"""

import datetime as dt
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import polars as pl
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from quant_analytics.core.data_provider import InMemoryDataProvider  # noqa: E402
from quant_analytics.core.data_types import FinancialMetrics, PricePoint, PriceSeries  # noqa: E402

START_DATE = dt.date(2024, 1, 1)


def make_closes(seed: int, n: int = 250, drift: float = 0.0005, vol: float = 0.015, start: float = 100.0) -> np.ndarray:
    """Geometric random walk of closing prices."""
    rng = np.random.default_rng(seed)
    daily = rng.normal(drift, vol, n - 1)
    return start * np.concatenate([[1.0], np.cumprod(1.0 + daily)])


def make_ohlcv_series(ticker: str, seed: int, n: int = 250, drift: float = 0.0005, vol: float = 0.015) -> PriceSeries:
    """OHLCV series with consistent high/low bands around open and close."""
    rng = np.random.default_rng(seed + 1000)
    closes = make_closes(seed, n, drift, vol)
    opens = np.concatenate([[closes[0]], closes[:-1]])
    spread_up = rng.uniform(0.0, 0.01, n)
    spread_down = rng.uniform(0.0, 0.01, n)
    volumes = rng.integers(500_000, 2_000_000, n)
    points = tuple(
        PricePoint(
            date=START_DATE + dt.timedelta(days=i),
            open=float(opens[i]),
            high=float(max(opens[i], closes[i]) * (1 + spread_up[i])),
            low=float(min(opens[i], closes[i]) * (1 - spread_down[i])),
            close=float(closes[i]),
            volume=float(volumes[i]),
        )
        for i in range(n)
    )
    return PriceSeries(ticker=ticker, points=points)


def to_pandas_frame(series: PriceSeries) -> pd.DataFrame:
    """pandas OHLCV frame indexed by date, capitalized columns."""
    return pd.DataFrame(
        {
            "Open": series.opens,
            "High": series.highs,
            "Low": series.lows,
            "Close": series.closes,
            "Volume": series.volumes,
        },
        index=pd.to_datetime(series.dates),
    )


def to_polars_frame(series: PriceSeries) -> pl.DataFrame:
    """polars OHLCV frame with a date column."""
    return pl.DataFrame(
        {
            "date": series.dates,
            "open": series.opens,
            "high": series.highs,
            "low": series.lows,
            "close": series.closes,
            "volume": series.volumes,
        }
    )


@pytest.fixture
def rng():
    """Seeded generator for tests that draw random numbers."""
    return np.random.default_rng(42)


@pytest.fixture
def rising_series():
    """60 days rising exactly 1% per day, no losses."""
    closes = 100.0 * 1.01 ** np.arange(60)
    return PriceSeries.from_closes("RISE", closes, start=START_DATE)


@pytest.fixture
def falling_series():
    """60 days falling exactly 1% per day."""
    closes = 100.0 * 0.99 ** np.arange(60)
    return PriceSeries.from_closes("FALL", closes, start=START_DATE)


@pytest.fixture
def ohlcv_series():
    """250-day OHLCV series with realistic bars."""
    return make_ohlcv_series("AAPL", seed=7)


@pytest.fixture
def sample_metrics():
    """Fundamental metrics of a reasonably priced, profitable company."""
    return FinancialMetrics(
        ticker="AAPL",
        pe_ratio=12.0,
        pb_ratio=1.5,
        ps_ratio=2.0,
        roe=0.22,
        roa=0.12,
        profit_margin=0.30,
        return_1m=0.03,
        return_3m=0.08,
        return_6m=0.15,
        earnings_growth=0.12,
        revenue_growth=0.10,
        market_cap=2_500_000_000_000,
        volatility=0.20,
        beta=1.1,
        dividend_yield=0.006,
    )


@pytest.fixture
def returns_by_ticker():
    """Aligned daily returns for three tickers."""
    rng = np.random.default_rng(11)
    return {
        "AAPL": rng.normal(0.0008, 0.018, 250),
        "MSFT": rng.normal(0.0006, 0.015, 250),
        "JPM": rng.normal(0.0004, 0.012, 250),
    }


@pytest.fixture
def provider(sample_metrics):
    """In-memory provider mixing pandas, polars and PriceSeries inputs."""
    aapl = make_ohlcv_series("AAPL", seed=7)
    msft = make_ohlcv_series("MSFT", seed=8)
    jpm = make_ohlcv_series("JPM", seed=9, drift=0.0002)
    spy = make_ohlcv_series("SPY", seed=10, vol=0.01)
    return InMemoryDataProvider(
        prices={
            "AAPL": to_pandas_frame(aapl),
            "MSFT": to_polars_frame(msft),
            "JPM": jpm,
            "SPY": spy,
        },
        metrics={
            "AAPL": sample_metrics,
            "MSFT": {"pe_ratio": 32.0, "roe": 0.35, "beta": 0.9, "unknown_key": "ignored"},
        },
    )


@pytest.fixture
def closes_factory():
    """Seeded closing-price generator, see ``make_closes``."""
    return make_closes
