"""
Data provider interface and boundary validation.

The engine never fetches data itself. Orchestration code supplies a
``DataProvider`` implementation; every record crossing that boundary is
validated into the typed models of ``data_types`` and malformed shapes are
rejected with ``InvalidParameterError``.

Provides:
- DataProvider abstract base class (price series, financial metrics)
- InMemoryDataProvider backed by pandas or polars frames
- Record conversion helpers with pydantic error translation
- Date alignment across several series
"""

from __future__ import annotations

import datetime as dt
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd
import polars as pl
from pydantic import ValidationError

from .data_types import FinancialMetrics, PricePoint, PriceSeries
from .exceptions import DataUnavailableError, InsufficientDataError, InvalidParameterError

logger = logging.getLogger(__name__)

_OHLCV_COLUMNS = ("open", "high", "low", "close", "volume")


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid value")


def build_price_series(ticker: str, records: Iterable[Mapping[str, Any]]) -> PriceSeries:
    """Validate raw OHLCV records into a PriceSeries.

    Args:
        ticker: Instrument symbol.
        records: Mappings with ``date``, ``open``, ``high``, ``low``,
            ``close`` and optional ``volume`` keys, ascending by date.

    Returns:
        Validated PriceSeries.

    Raises:
        InvalidParameterError: If any record or the ordering is malformed.
    """
    try:
        points = tuple(PricePoint(**dict(record)) for record in records)
        return PriceSeries(ticker=ticker, points=points)
    except ValidationError as e:
        raise InvalidParameterError(
            f"Malformed price data for {ticker}: {_validation_message(e)}",
            parameter="price_series",
            expected="ascending OHLCV records with low <= open,close <= high",
            details={"ticker": ticker},
        ) from e
    except TypeError as e:
        raise InvalidParameterError(
            f"Malformed price record for {ticker}: {e}",
            parameter="price_series",
            details={"ticker": ticker},
        ) from e


def build_financial_metrics(ticker: str, metrics: Mapping[str, Any]) -> FinancialMetrics:
    """Validate a raw metrics mapping into FinancialMetrics.

    Unknown keys are ignored.

    Raises:
        InvalidParameterError: If a known metric is not a finite number.
    """
    known = {k: v for k, v in metrics.items() if k in FinancialMetrics.model_fields}
    known["ticker"] = ticker
    try:
        return FinancialMetrics(**known)
    except ValidationError as e:
        raise InvalidParameterError(
            f"Malformed financial metrics for {ticker}: {_validation_message(e)}",
            parameter="financial_metrics",
            details={"ticker": ticker},
        ) from e


def align_series(series: list[PriceSeries], min_length: int = 2) -> list[PriceSeries]:
    """Restrict every series to the dates common to all of them.

    Args:
        series: Price series to align.
        min_length: Minimum number of common dates required.

    Returns:
        New series, same order, sharing identical date sequences.

    Raises:
        InsufficientDataError: If fewer than ``min_length`` dates are shared.
    """
    if not series:
        raise InvalidParameterError("No series to align", parameter="series", expected="non-empty list")

    common = set(series[0].dates)
    for s in series[1:]:
        common &= set(s.dates)

    if len(common) < min_length:
        raise InsufficientDataError(
            f"Only {len(common)} common dates across {[s.ticker for s in series]}",
            required=min_length,
            actual=len(common),
            details={"tickers": [s.ticker for s in series]},
        )

    aligned = [s.restrict_to(common) for s in series]
    dropped = {s.ticker: len(s) - len(common) for s in series if len(s) != len(common)}
    if dropped:
        logger.debug(f"Aligned {len(series)} series to {len(common)} dates, dropped {dropped}")
    return aligned


class DataProvider(ABC):
    """Abstract source of price series and financial metrics."""

    source_name: str = "provider"

    @abstractmethod
    def get_price_series(
        self,
        ticker: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> PriceSeries:
        """Get daily prices for a ticker between two dates (inclusive).

        Raises:
            DataUnavailableError: If the series cannot be supplied.
        """
        pass

    @abstractmethod
    def get_financial_metrics(self, ticker: str, period: str = "annual") -> FinancialMetrics:
        """Get fundamental metrics for a ticker.

        Raises:
            DataUnavailableError: If the metrics cannot be supplied.
        """
        pass


class InMemoryDataProvider(DataProvider):
    """Data provider serving pre-loaded frames.

    Frames may be pandas (date index or ``date`` column) or polars
    (``date`` column) with OHLCV columns; column names are case-insensitive.
    """

    source_name = "memory"

    def __init__(
        self,
        prices: Mapping[str, pd.DataFrame | pl.DataFrame | PriceSeries] | None = None,
        metrics: Mapping[str, Mapping[str, Any] | FinancialMetrics] | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            prices: Mapping of ticker to OHLCV frame or PriceSeries.
            metrics: Mapping of ticker to metrics mapping or FinancialMetrics.
        """
        self._series: dict[str, PriceSeries] = {}
        self._metrics: dict[str, FinancialMetrics] = {}

        for ticker, data in (prices or {}).items():
            key = ticker.upper().strip()
            self._series[key] = data if isinstance(data, PriceSeries) else self._frame_to_series(key, data)
        for ticker, data in (metrics or {}).items():
            key = ticker.upper().strip()
            self._metrics[key] = (
                data if isinstance(data, FinancialMetrics) else build_financial_metrics(key, data)
            )

    @staticmethod
    def _frame_to_series(ticker: str, frame: pd.DataFrame | pl.DataFrame) -> PriceSeries:
        """Convert a pandas or polars OHLCV frame into a PriceSeries."""
        if isinstance(frame, pd.DataFrame):
            df = frame.rename(columns=str.lower)
            if "date" not in df.columns:
                df = df.rename_axis("date").reset_index()
            records = df.to_dict(orient="records")
        else:
            records = frame.rename({c: c.lower() for c in frame.columns}).to_dicts()

        cleaned = []
        for row in records:
            raw_date = row.get("date")
            if isinstance(raw_date, pd.Timestamp):
                raw_date = raw_date.date()
            elif isinstance(raw_date, dt.datetime):
                raw_date = raw_date.date()
            cleaned.append({"date": raw_date, **{c: row[c] for c in _OHLCV_COLUMNS if c in row}})
        return build_price_series(ticker, cleaned)

    def get_price_series(
        self,
        ticker: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> PriceSeries:
        """Get the stored series, filtered to [start, end]."""
        key = ticker.upper().strip()
        if key not in self._series:
            raise DataUnavailableError(
                f"No price data for {key}",
                ticker=key,
                source=self.source_name,
            )
        series = self._series[key]
        points = tuple(
            p for p in series.points
            if (start is None or p.date >= start) and (end is None or p.date <= end)
        )
        if not points:
            raise DataUnavailableError(
                f"No price data for {key} between {start} and {end}",
                ticker=key,
                source=self.source_name,
            )
        return PriceSeries(ticker=key, points=points)

    def get_financial_metrics(self, ticker: str, period: str = "annual") -> FinancialMetrics:
        """Get the stored metrics; ``period`` is accepted for interface parity."""
        key = ticker.upper().strip()
        if key not in self._metrics:
            raise DataUnavailableError(
                f"No {period} financial metrics for {key}",
                ticker=key,
                source=self.source_name,
            )
        return self._metrics[key]
