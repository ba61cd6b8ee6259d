"""
Technical indicators module.

Implements the classical indicators used for signal generation:
- Trend indicators (SMA, EMA, ADX with +DI/-DI)
- Momentum indicators (RSI, MACD, Stochastic)
- Volatility indicators (Bollinger Bands, ATR)
- Volume indicators (OBV)

Every indicator computes its full series on a polars OHLCV frame and
classifies the latest value into a qualitative signal. The
TechnicalIndicatorCalculator runs a requested set and aggregates the
per-indicator signals into a majority vote.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import polars as pl

from quant_analytics.core.data_types import (
    InvestmentHorizon,
    PriceSeries,
    RiskTolerance,
    Signal,
    coerce_enum,
)
from quant_analytics.core.exceptions import InsufficientHistoryError, InvalidParameterError
from quant_analytics.features.statistical import as_array, round_half_up, trend_slope

logger = logging.getLogger(__name__)


class IndicatorName(str, Enum):
    """Supported indicators."""

    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"
    SMA = "sma"
    EMA = "ema"
    ATR = "atr"
    OBV = "obv"
    STOCHASTIC = "stochastic"
    ADX = "adx"


@dataclass
class IndicatorConfig:
    """Configuration for indicator calculation.

    ``lookback`` drives RSI, Bollinger, SMA, EMA, ATR and ADX; MACD and
    Stochastic use their own classical periods.
    """

    lookback: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_std: float = 2.0
    stochastic_k: int = 14
    stochastic_d: int = 3
    history_window: int = 10

    # Classification thresholds
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    stochastic_overbought: float = 80.0
    stochastic_oversold: float = 20.0
    adx_strong: float = 25.0
    adx_moderate: float = 20.0
    atr_high_pct: float = 3.0
    atr_low_pct: float = 1.0

    def __post_init__(self) -> None:
        for name in ("lookback", "macd_fast", "macd_slow", "macd_signal", "stochastic_k", "stochastic_d", "history_window"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise InvalidParameterError(
                    f"{name} must be a positive integer",
                    parameter=name,
                    value=value,
                    expected=">= 1",
                )
        if self.lookback < 2:
            raise InvalidParameterError("lookback must be at least 2", parameter="lookback", value=self.lookback, expected=">= 2")
        if self.macd_fast >= self.macd_slow:
            raise InvalidParameterError(
                "MACD fast period must be shorter than slow period",
                parameter="macd_fast",
                value=self.macd_fast,
                expected=f"< {self.macd_slow}",
            )
        if self.bollinger_std <= 0:
            raise InvalidParameterError(
                "Bollinger width must be positive",
                parameter="bollinger_std",
                value=self.bollinger_std,
                expected="> 0",
            )
        if not 0 <= self.rsi_oversold < self.rsi_overbought <= 100:
            raise InvalidParameterError(
                "RSI thresholds must satisfy 0 <= oversold < overbought <= 100",
                parameter="rsi_overbought",
                value=(self.rsi_oversold, self.rsi_overbought),
            )


@dataclass
class IndicatorResult:
    """Latest value and classification of one indicator."""

    name: str
    current_value: float
    history: list[float]
    signal: Signal
    interpretation: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "current_value": self.current_value,
            "history": self.history,
            "signal": self.signal.value,
            "interpretation": self.interpretation,
            "details": self.details,
        }


@dataclass
class TechnicalAnalysis:
    """Aggregated result of a set of indicators."""

    ticker: str | None
    indicators: dict[str, IndicatorResult]
    signal: Signal
    confidence: int
    bullish_count: int
    bearish_count: int
    total_signals: int
    supporting_indicators: list[str]
    opposing_indicators: list[str]
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "indicators": {name: result.to_dict() for name, result in self.indicators.items()},
            "signal": self.signal.value,
            "confidence": self.confidence,
            "bullish_count": self.bullish_count,
            "bearish_count": self.bearish_count,
            "total_signals": self.total_signals,
            "supporting_indicators": self.supporting_indicators,
            "opposing_indicators": self.opposing_indicators,
            "summary": self.summary,
        }


class TechnicalIndicator(ABC):
    """Abstract base class for technical indicators."""

    required_columns: tuple[str, ...] = ("close",)

    def __init__(self, name: str, config: IndicatorConfig | None = None):
        self.name = name
        self.config = config or IndicatorConfig()

    @property
    @abstractmethod
    def required_length(self) -> int:
        """Minimum number of bars for a defined latest value."""
        pass

    @abstractmethod
    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        """Compute the indicator and return named arrays."""
        pass

    @abstractmethod
    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        """Classify the latest computed values."""
        pass

    def validate_input(self, df: pl.DataFrame, required_columns: list[str] | tuple[str, ...]) -> None:
        """Validate that required columns exist and the history is long enough."""
        missing = [col for col in required_columns if col not in df.columns]
        if missing:
            raise InvalidParameterError(
                f"Missing required columns: {missing}",
                parameter="columns",
                value=missing,
                expected=", ".join(required_columns),
            )
        if df.height < self.required_length:
            raise InsufficientHistoryError(
                f"{self.name} needs at least {self.required_length} bars, got {df.height}",
                indicator=self.name,
                required=self.required_length,
                actual=df.height,
            )

    def evaluate(self, df: pl.DataFrame) -> IndicatorResult:
        """Validate, compute and classify in one step."""
        self.validate_input(df, self.required_columns)
        return self.classify(df, self.compute(df))

    def _history(self, arr: np.ndarray) -> list[float]:
        finite = arr[np.isfinite(arr)]
        return [float(v) for v in finite[-self.config.history_window:]]

    @staticmethod
    def _column(df: pl.DataFrame, name: str) -> np.ndarray:
        return as_array(df[name].to_numpy(), name)


# =============================================================================
# TREND INDICATORS
# =============================================================================


class SMA(TechnicalIndicator):
    """Simple Moving Average."""

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("SMA", config)
        self.period = self.config.lookback

    @property
    def required_length(self) -> int:
        return self.period

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")
        return {f"sma_{self.period}": self._rolling_mean(close, self.period)}

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        sma = values[f"sma_{self.period}"]
        return _price_vs_average(self, float(df["close"][-1]), sma)

    @staticmethod
    def _rolling_mean(arr: np.ndarray, window: int) -> np.ndarray:
        """Compute rolling mean."""
        result = np.full(len(arr), np.nan)
        if len(arr) >= window:
            cumsum = np.cumsum(arr)
            cumsum[window:] = cumsum[window:] - cumsum[:-window]
            result[window - 1 :] = cumsum[window - 1 :] / window
        return result


class EMA(TechnicalIndicator):
    """Exponential Moving Average."""

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("EMA", config)
        self.period = self.config.lookback

    @property
    def required_length(self) -> int:
        return self.period

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")
        return {f"ema_{self.period}": self._ema(close, self.period)}

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        ema = values[f"ema_{self.period}"]
        return _price_vs_average(self, float(df["close"][-1]), ema)

    @staticmethod
    def _ema(arr: np.ndarray, period: int) -> np.ndarray:
        """Compute exponential moving average.

        Leading NaNs are skipped; the first defined value is the SMA of the
        first ``period`` valid points.
        """
        alpha = 2.0 / (period + 1)
        result = np.full(len(arr), np.nan)
        valid = np.flatnonzero(np.isfinite(arr))
        if len(valid) == 0:
            return result
        start = int(valid[0])
        if len(arr) - start >= period:
            seed = start + period - 1
            result[seed] = np.mean(arr[start : seed + 1])
            for i in range(seed + 1, len(arr)):
                result[i] = alpha * arr[i] + (1 - alpha) * result[i - 1]
        return result


def _price_vs_average(indicator: TechnicalIndicator, price: float, average: np.ndarray) -> IndicatorResult:
    current = float(average[-1])
    if price > current:
        signal = Signal.BULLISH
        interpretation = f"Price above {indicator.name}({indicator.config.lookback}), short-term uptrend"
    elif price < current:
        signal = Signal.BEARISH
        interpretation = f"Price below {indicator.name}({indicator.config.lookback}), short-term downtrend"
    else:
        signal = Signal.NEUTRAL
        interpretation = f"Price at {indicator.name}({indicator.config.lookback})"
    return IndicatorResult(
        name=indicator.name,
        current_value=current,
        history=indicator._history(average),
        signal=signal,
        interpretation=interpretation,
        details={"period": indicator.config.lookback, "price": price},
    )


class ADX(TechnicalIndicator):
    """
    Average Directional Index (ADX) with DI+ and DI-.

    ADX measures trend strength regardless of direction, while DI+/DI-
    indicate bullish/bearish directional movement.

    Algorithm:
        1. Calculate Directional Movement:
           - +DM = High[t] - High[t-1] if positive and > Low[t-1] - Low[t]
           - -DM = Low[t-1] - Low[t] if positive and > High[t] - High[t-1]
        2. True Range = max(High-Low, |High-Close[t-1]|, |Low-Close[t-1]|)
        3. Smooth TR, +DM, -DM with Wilder's method
        4. DI+ = 100 * Smoothed(+DM) / Smoothed(TR), DI- likewise
        5. DX = 100 * |DI+ - DI-| / (DI+ + DI-)
        6. ADX = Wilder's smoothed average of DX

    Classification:
        - ADX > 25 with DI+ > DI-: bullish trend
        - ADX > 25 with DI- > DI+: bearish trend
        - otherwise neutral (no tradable trend)
    """

    required_columns = ("high", "low", "close")

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("ADX", config)
        self.period = self.config.lookback

    @property
    def required_length(self) -> int:
        return 2 * self.period

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        high = self._column(df, "high")
        low = self._column(df, "low")
        close = self._column(df, "close")

        n = len(close)
        tr = np.full(n, np.nan)
        plus_dm = np.full(n, np.nan)
        minus_dm = np.full(n, np.nan)

        for i in range(1, n):
            h_diff = high[i] - high[i - 1]
            l_diff = low[i - 1] - low[i]

            plus_dm[i] = h_diff if h_diff > l_diff and h_diff > 0 else 0.0
            minus_dm[i] = l_diff if l_diff > h_diff and l_diff > 0 else 0.0
            tr[i] = _true_range(high[i], low[i], close[i - 1])

        atr = self._wilder_smooth(tr, self.period)
        safe_atr = np.where(atr == 0, 1, atr)
        plus_di = 100 * self._wilder_smooth(plus_dm, self.period) / safe_atr
        minus_di = 100 * self._wilder_smooth(minus_dm, self.period) / safe_atr

        di_sum = plus_di + minus_di
        dx = 100 * np.abs(plus_di - minus_di) / np.where(di_sum == 0, 1, di_sum)
        adx = self._wilder_smooth(dx, self.period)

        return {
            f"adx_{self.period}": adx,
            f"plus_di_{self.period}": plus_di,
            f"minus_di_{self.period}": minus_di,
        }

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        adx = values[f"adx_{self.period}"]
        plus_di = float(values[f"plus_di_{self.period}"][-1])
        minus_di = float(values[f"minus_di_{self.period}"][-1])
        current = float(adx[-1])

        if current > self.config.adx_strong:
            strength = "strong"
        elif current > self.config.adx_moderate:
            strength = "moderate"
        else:
            strength = "weak"

        signal = Signal.NEUTRAL
        if strength == "strong" and plus_di > minus_di:
            signal = Signal.BULLISH
        elif strength == "strong" and minus_di > plus_di:
            signal = Signal.BEARISH

        interpretation = {
            "strong": f"ADX above {self.config.adx_strong:g}, trend is strong",
            "moderate": f"ADX between {self.config.adx_moderate:g} and {self.config.adx_strong:g}, trend is moderate",
            "weak": f"ADX below {self.config.adx_moderate:g}, trend is weak",
        }[strength]

        return IndicatorResult(
            name=self.name,
            current_value=current,
            history=self._history(adx),
            signal=signal,
            interpretation=interpretation,
            details={
                "period": self.period,
                "plus_di": plus_di,
                "minus_di": minus_di,
                "trend_strength": strength,
            },
        )

    @staticmethod
    def _wilder_smooth(arr: np.ndarray, period: int) -> np.ndarray:
        """Wilder's smoothing method, skipping leading NaNs."""
        result = np.full(len(arr), np.nan)
        valid = np.flatnonzero(np.isfinite(arr))
        if len(valid) == 0:
            return result
        start = int(valid[0])
        if len(arr) - start >= period:
            seed = start + period - 1
            result[seed] = np.mean(arr[start : seed + 1])
            for i in range(seed + 1, len(arr)):
                result[i] = (result[i - 1] * (period - 1) + arr[i]) / period
        return result


def _true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


class RSI(TechnicalIndicator):
    """Relative Strength Index with Wilder smoothing.

    Bounded to [0, 100]. A window without losses reads 100, a window
    without any price change reads 50.
    """

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("RSI", config)
        self.period = self.config.lookback

    @property
    def required_length(self) -> int:
        return self.period + 1

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")

        delta = np.diff(close)
        gains = np.where(delta > 0, delta, 0.0)
        losses = np.where(delta < 0, -delta, 0.0)

        avg_gain = ADX._wilder_smooth(gains, self.period)
        avg_loss = ADX._wilder_smooth(losses, self.period)

        with np.errstate(divide="ignore", invalid="ignore"):
            rs = avg_gain / avg_loss
            rsi = 100 - (100 / (1 + rs))
        rsi = np.where(avg_loss == 0, np.where(avg_gain == 0, 50.0, 100.0), rsi)
        rsi = np.where(np.isnan(avg_gain), np.nan, np.clip(rsi, 0.0, 100.0))

        return {f"rsi_{self.period}": np.concatenate(([np.nan], rsi))}

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        rsi = values[f"rsi_{self.period}"]
        current = float(rsi[-1])

        if current >= self.config.rsi_overbought:
            signal = Signal.OVERBOUGHT
            interpretation = f"RSI at {current:.1f} is overbought, pullback risk"
        elif current <= self.config.rsi_oversold:
            signal = Signal.OVERSOLD
            interpretation = f"RSI at {current:.1f} is oversold, rebound potential"
        else:
            signal = Signal.NEUTRAL
            interpretation = f"RSI at {current:.1f} is in the neutral zone"

        return IndicatorResult(
            name=self.name,
            current_value=current,
            history=self._history(rsi),
            signal=signal,
            interpretation=interpretation,
            details={"period": self.period},
        )


class MACD(TechnicalIndicator):
    """Moving Average Convergence Divergence."""

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("MACD", config)
        self.fast = self.config.macd_fast
        self.slow = self.config.macd_slow
        self.signal = self.config.macd_signal

    @property
    def required_length(self) -> int:
        return self.slow + self.signal

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")

        ema_fast = EMA._ema(close, self.fast)
        ema_slow = EMA._ema(close, self.slow)
        macd_line = ema_fast - ema_slow
        signal_line = EMA._ema(macd_line, self.signal)
        histogram = macd_line - signal_line

        return {
            "macd_line": macd_line,
            "macd_signal": signal_line,
            "macd_histogram": histogram,
        }

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        macd = float(values["macd_line"][-1])
        signal_value = float(values["macd_signal"][-1])
        histogram = float(values["macd_histogram"][-1])
        strong = np.sign(macd) == np.sign(histogram) and histogram != 0

        if macd > signal_value:
            signal = Signal.BULLISH
            interpretation = "MACD above signal line" + (", strongly bullish" if strong else ", bullish")
        elif macd < signal_value:
            signal = Signal.BEARISH
            interpretation = "MACD below signal line" + (", strongly bearish" if strong else ", bearish")
        else:
            signal = Signal.NEUTRAL
            interpretation = "MACD on the signal line, no clear direction"

        return IndicatorResult(
            name=self.name,
            current_value=macd,
            history=self._history(values["macd_line"]),
            signal=signal,
            interpretation=interpretation,
            details={
                "signal_line": signal_value,
                "histogram": histogram,
                "fast_period": self.fast,
                "slow_period": self.slow,
                "signal_period": self.signal,
            },
        )


class StochasticOscillator(TechnicalIndicator):
    """Stochastic Oscillator (%K and %D)."""

    required_columns = ("high", "low", "close")

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("Stochastic", config)
        self.k_period = self.config.stochastic_k
        self.d_period = self.config.stochastic_d

    @property
    def required_length(self) -> int:
        return self.k_period + self.d_period - 1

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        high = self._column(df, "high")
        low = self._column(df, "low")
        close = self._column(df, "close")

        n = len(close)
        stoch_k = np.full(n, np.nan)

        for i in range(self.k_period - 1, n):
            highest = np.max(high[i - self.k_period + 1 : i + 1])
            lowest = np.min(low[i - self.k_period + 1 : i + 1])
            if highest != lowest:
                stoch_k[i] = 100 * (close[i] - lowest) / (highest - lowest)
            else:
                stoch_k[i] = 50

        stoch_d = np.full(n, np.nan)
        stoch_d[self.k_period - 1 :] = SMA._rolling_mean(stoch_k[self.k_period - 1 :], self.d_period)

        return {
            f"stoch_k_{self.k_period}": stoch_k,
            f"stoch_d_{self.d_period}": stoch_d,
        }

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        stoch_k = values[f"stoch_k_{self.k_period}"]
        k = float(stoch_k[-1])
        d = float(values[f"stoch_d_{self.d_period}"][-1])

        if k > self.config.stochastic_overbought:
            signal = Signal.OVERBOUGHT
            interpretation = f"%K at {k:.1f} in the overbought zone, pullback risk"
        elif k < self.config.stochastic_oversold:
            signal = Signal.OVERSOLD
            interpretation = f"%K at {k:.1f} in the oversold zone, rebound potential"
        else:
            signal = Signal.NEUTRAL
            interpretation = f"%K at {k:.1f} in the neutral zone"

        return IndicatorResult(
            name=self.name,
            current_value=k,
            history=self._history(stoch_k),
            signal=signal,
            interpretation=interpretation,
            details={"k": k, "d": d, "k_period": self.k_period, "d_period": self.d_period},
        )


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


class ATR(TechnicalIndicator):
    """Average True Range.

    ATR carries no directional view; its signal is always neutral and the
    volatility level is reported in the details.
    """

    required_columns = ("high", "low", "close")

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("ATR", config)
        self.period = self.config.lookback

    @property
    def required_length(self) -> int:
        return self.period + 1

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        high = self._column(df, "high")
        low = self._column(df, "low")
        close = self._column(df, "close")

        n = len(close)
        tr = np.full(n, np.nan)
        for i in range(1, n):
            tr[i] = _true_range(high[i], low[i], close[i - 1])

        atr = ADX._wilder_smooth(tr, self.period)

        return {f"atr_{self.period}": atr, "true_range": tr}

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        atr = values[f"atr_{self.period}"]
        current = float(atr[-1])
        price = float(df["close"][-1])
        volatility_pct = current / price * 100

        if volatility_pct > self.config.atr_high_pct:
            level = "high"
        elif volatility_pct < self.config.atr_low_pct:
            level = "low"
        else:
            level = "medium"

        return IndicatorResult(
            name=self.name,
            current_value=current,
            history=self._history(atr),
            signal=Signal.NEUTRAL,
            interpretation=f"{level.capitalize()} volatility, ATR is {volatility_pct:.2f}% of price",
            details={"period": self.period, "volatility_pct": volatility_pct, "volatility_level": level},
        )


class BollingerBands(TechnicalIndicator):
    """Bollinger Bands."""

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("Bollinger", config)
        self.period = self.config.lookback
        self.std_dev = self.config.bollinger_std

    @property
    def required_length(self) -> int:
        return self.period

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")

        sma = SMA._rolling_mean(close, self.period)

        n = len(close)
        std = np.full(n, np.nan)
        for i in range(self.period - 1, n):
            std[i] = np.std(close[i - self.period + 1 : i + 1], ddof=0)

        upper = sma + self.std_dev * std
        lower = sma - self.std_dev * std
        percent_b = (close - lower) / np.where(upper - lower == 0, 1, upper - lower)
        bandwidth = (upper - lower) / np.where(sma == 0, 1, sma)

        return {
            f"bb_upper_{self.period}": upper,
            f"bb_middle_{self.period}": sma,
            f"bb_lower_{self.period}": lower,
            f"bb_percent_b_{self.period}": percent_b,
            f"bb_bandwidth_{self.period}": bandwidth,
        }

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        price = float(df["close"][-1])
        upper = float(values[f"bb_upper_{self.period}"][-1])
        middle = float(values[f"bb_middle_{self.period}"][-1])
        lower = float(values[f"bb_lower_{self.period}"][-1])

        if price > upper:
            signal = Signal.OVERBOUGHT
            interpretation = "Price above the upper band, pullback risk"
        elif price < lower:
            signal = Signal.OVERSOLD
            interpretation = "Price below the lower band, rebound potential"
        elif price > middle:
            signal = Signal.BULLISH
            interpretation = "Price between middle and upper band, bullish bias"
        elif price < middle:
            signal = Signal.BEARISH
            interpretation = "Price between lower and middle band, bearish bias"
        else:
            signal = Signal.NEUTRAL
            interpretation = "Price on the middle band"

        return IndicatorResult(
            name=self.name,
            current_value=middle,
            history=self._history(values[f"bb_middle_{self.period}"]),
            signal=signal,
            interpretation=interpretation,
            details={
                "upper": upper,
                "middle": middle,
                "lower": lower,
                "percent_b": float(values[f"bb_percent_b_{self.period}"][-1]),
                "bandwidth": float(values[f"bb_bandwidth_{self.period}"][-1]),
                "period": self.period,
                "std_dev": self.std_dev,
            },
        )


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


class OBV(TechnicalIndicator):
    """On-Balance Volume.

    Classified by the least-squares trend of the last ``history_window``
    values: rising is bullish, falling bearish.
    """

    required_columns = ("close", "volume")

    def __init__(self, config: IndicatorConfig | None = None):
        super().__init__("OBV", config)

    @property
    def required_length(self) -> int:
        return 3

    def compute(self, df: pl.DataFrame) -> dict[str, np.ndarray]:
        close = self._column(df, "close")
        volume = self._column(df, "volume")

        direction = np.sign(np.diff(close))
        obv = np.concatenate(([0.0], np.cumsum(direction * volume[1:])))

        return {"obv": obv}

    def classify(self, df: pl.DataFrame, values: dict[str, np.ndarray]) -> IndicatorResult:
        obv = values["obv"]
        recent = obv[-self.config.history_window:]
        slope = trend_slope(recent) if len(recent) >= 3 else trend_slope(obv)

        if slope > 0:
            signal = Signal.BULLISH
            interpretation = "OBV rising, volume confirms the price move"
        elif slope < 0:
            signal = Signal.BEARISH
            interpretation = "OBV falling, volume does not support the price move"
        else:
            signal = Signal.NEUTRAL
            interpretation = "OBV flat, no volume confirmation"

        return IndicatorResult(
            name=self.name,
            current_value=float(obv[-1]),
            history=self._history(obv),
            signal=signal,
            interpretation=interpretation,
            details={"trend": "rising" if slope > 0 else "falling" if slope < 0 else "flat", "slope": slope},
        )


# =============================================================================
# CALCULATOR
# =============================================================================


INDICATOR_CLASSES: dict[IndicatorName, type[TechnicalIndicator]] = {
    IndicatorName.RSI: RSI,
    IndicatorName.MACD: MACD,
    IndicatorName.BOLLINGER: BollingerBands,
    IndicatorName.SMA: SMA,
    IndicatorName.EMA: EMA,
    IndicatorName.ATR: ATR,
    IndicatorName.OBV: OBV,
    IndicatorName.STOCHASTIC: StochasticOscillator,
    IndicatorName.ADX: ADX,
}

_BULLISH_VOTES = (Signal.BULLISH, Signal.OVERSOLD)
_BEARISH_VOTES = (Signal.BEARISH, Signal.OVERBOUGHT)


def aggregate_signals(results: dict[str, IndicatorResult], ticker: str | None = None) -> TechnicalAnalysis:
    """Majority vote across indicator classifications.

    Bullish and oversold readings vote bullish, bearish and overbought
    readings vote bearish. Every computed indicator counts toward the
    confidence denominator. Ties and empty sets are neutral at 50.
    """
    bullish = [name for name, r in results.items() if r.signal in _BULLISH_VOTES]
    bearish = [name for name, r in results.items() if r.signal in _BEARISH_VOTES]
    total = len(results)

    signal = Signal.NEUTRAL
    confidence = 50
    supporting: list[str] = []
    opposing: list[str] = []

    if total > 0 and len(bullish) > len(bearish):
        signal = Signal.BULLISH
        confidence = round_half_up(len(bullish) / total * 100)
        supporting, opposing = bullish, bearish
    elif total > 0 and len(bearish) > len(bullish):
        signal = Signal.BEARISH
        confidence = round_half_up(len(bearish) / total * 100)
        supporting, opposing = bearish, bullish

    if signal == Signal.BULLISH:
        summary = f"Indicators lean bullish: {len(bullish)} of {total} bullish, confidence {confidence}%"
    elif signal == Signal.BEARISH:
        summary = f"Indicators lean bearish: {len(bearish)} of {total} bearish, confidence {confidence}%"
    else:
        summary = "Indicators are mixed with no clear directional signal"

    return TechnicalAnalysis(
        ticker=ticker,
        indicators=results,
        signal=signal,
        confidence=confidence,
        bullish_count=len(bullish),
        bearish_count=len(bearish),
        total_signals=total,
        supporting_indicators=supporting,
        opposing_indicators=opposing,
        summary=summary,
    )


class TechnicalIndicatorCalculator:
    """Computes a requested set of indicators and their aggregate signal."""

    def __init__(self, config: IndicatorConfig | None = None):
        self.config = config or IndicatorConfig()

    def required_length(self, indicators: list[IndicatorName | str] | None = None) -> int:
        """Longest history any of the requested indicators needs."""
        return max(self._build(name).required_length for name in self._resolve(indicators))

    def calculate(
        self,
        data: PriceSeries | pl.DataFrame,
        indicators: list[IndicatorName | str] | None = None,
    ) -> TechnicalAnalysis:
        """Compute indicators on a price series.

        Args:
            data: PriceSeries or polars frame with OHLCV columns.
            indicators: Indicators to compute (default: all).

        Returns:
            TechnicalAnalysis with per-indicator results and the vote.

        Raises:
            InsufficientHistoryError: If the series is shorter than any
                requested indicator's window.
        """
        ticker = data.ticker if isinstance(data, PriceSeries) else None
        df = data.to_frame() if isinstance(data, PriceSeries) else data
        names = self._resolve(indicators)

        results: dict[str, IndicatorResult] = {}
        for name in names:
            results[name.value] = self._build(name).evaluate(df)

        analysis = aggregate_signals(results, ticker)
        logger.debug(
            f"Technical analysis {ticker or ''}: {analysis.signal.value} "
            f"({analysis.bullish_count} bullish / {analysis.bearish_count} bearish of {analysis.total_signals})"
        )
        return analysis

    def _build(self, name: IndicatorName) -> TechnicalIndicator:
        return INDICATOR_CLASSES[name](self.config)

    @staticmethod
    def _resolve(indicators: list[IndicatorName | str] | None) -> list[IndicatorName]:
        if not indicators:
            return list(IndicatorName)
        resolved = []
        for item in indicators:
            name = coerce_enum(IndicatorName, item.lower() if isinstance(item, str) else item, "indicators")
            if name not in resolved:
                resolved.append(name)
        return resolved


def indicators_for_profile(
    risk_tolerance: RiskTolerance,
    horizon: InvestmentHorizon,
) -> list[IndicatorName]:
    """Default indicator set for an investor profile.

    SMA, EMA, RSI and MACD always; Bollinger and ATR for low/moderate risk;
    Stochastic and OBV for moderate/high risk; ADX for medium/long horizons.
    """
    risk_tolerance = coerce_enum(RiskTolerance, risk_tolerance, "risk_tolerance")
    horizon = coerce_enum(InvestmentHorizon, horizon, "horizon")

    selected = [IndicatorName.SMA, IndicatorName.EMA, IndicatorName.RSI, IndicatorName.MACD]
    if risk_tolerance in (RiskTolerance.LOW, RiskTolerance.MODERATE):
        selected += [IndicatorName.BOLLINGER, IndicatorName.ATR]
    if risk_tolerance in (RiskTolerance.MODERATE, RiskTolerance.HIGH):
        selected += [IndicatorName.STOCHASTIC, IndicatorName.OBV]
    if horizon in (InvestmentHorizon.MEDIUM, InvestmentHorizon.LONG):
        selected.append(IndicatorName.ADX)
    return selected
