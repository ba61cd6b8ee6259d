"""
Unit tests for features/technical.py
"""

import numpy as np
import polars as pl
import pytest

from quant_analytics.core.data_types import InvestmentHorizon, PriceSeries, RiskTolerance, Signal
from quant_analytics.core.exceptions import InsufficientHistoryError, InvalidParameterError
from quant_analytics.features.technical import (
    ADX,
    ATR,
    EMA,
    MACD,
    OBV,
    RSI,
    SMA,
    BollingerBands,
    IndicatorConfig,
    IndicatorName,
    IndicatorResult,
    StochasticOscillator,
    TechnicalIndicatorCalculator,
    aggregate_signals,
    indicators_for_profile,
)


def _result(signal: Signal) -> IndicatorResult:
    return IndicatorResult(name="X", current_value=0.0, history=[], signal=signal, interpretation="")


class TestIndicatorConfig:
    """Tests for IndicatorConfig validation."""

    def test_defaults(self):
        config = IndicatorConfig()
        assert config.lookback == 14
        assert (config.macd_fast, config.macd_slow, config.macd_signal) == (12, 26, 9)

    def test_lookback_too_small(self):
        with pytest.raises(InvalidParameterError):
            IndicatorConfig(lookback=1)

    def test_macd_periods_ordered(self):
        with pytest.raises(InvalidParameterError):
            IndicatorConfig(macd_fast=26, macd_slow=12)

    def test_bollinger_width_positive(self):
        with pytest.raises(InvalidParameterError):
            IndicatorConfig(bollinger_std=0)

    def test_rsi_thresholds_ordered(self):
        with pytest.raises(InvalidParameterError):
            IndicatorConfig(rsi_oversold=80, rsi_overbought=70)


class TestRSI:
    """Tests for RSI."""

    def test_bounded(self, ohlcv_series):
        """Every defined RSI value lies in [0, 100]."""
        rsi = RSI().compute(ohlcv_series.to_frame())["rsi_14"]
        defined = rsi[np.isfinite(rsi)]
        assert len(defined) > 0
        assert np.all((defined >= 0) & (defined <= 100))

    def test_rising_series_reads_100(self, rising_series):
        """A loss-free series drives RSI to 100, overbought."""
        result = RSI().evaluate(rising_series.to_frame())
        assert result.current_value == 100.0
        assert result.signal == Signal.OVERBOUGHT

    def test_falling_series_reads_0(self, falling_series):
        """A gain-free series reads 0, oversold."""
        result = RSI().evaluate(falling_series.to_frame())
        assert result.current_value == 0.0
        assert result.signal == Signal.OVERSOLD

    def test_flat_series_reads_50(self):
        """No price change at all is neutral at 50."""
        series = PriceSeries.from_closes("FLAT", [100.0] * 30)
        result = RSI().evaluate(series.to_frame())
        assert result.current_value == 50.0
        assert result.signal == Signal.NEUTRAL

    def test_wilder_smoothing(self):
        """Period 2 on an alternating series gives RSI 75 after one smoothing step."""
        series = PriceSeries.from_closes("ALT", [1.0, 2.0, 1.0, 2.0])
        result = RSI(IndicatorConfig(lookback=2)).evaluate(series.to_frame())
        assert result.current_value == pytest.approx(75.0)

    def test_history_window(self, ohlcv_series):
        """History holds the last ten values."""
        result = RSI().evaluate(ohlcv_series.to_frame())
        assert len(result.history) == 10
        assert result.history[-1] == pytest.approx(result.current_value)

    def test_insufficient_history(self):
        """Fewer than period + 1 bars raise InsufficientHistoryError."""
        series = PriceSeries.from_closes("SHORT", [1.0 + i for i in range(14)])
        with pytest.raises(InsufficientHistoryError) as exc_info:
            RSI().evaluate(series.to_frame())
        assert exc_info.value.indicator == "RSI"
        assert exc_info.value.required == 15


class TestMACD:
    """Tests for MACD."""

    def test_requires_35_bars(self):
        """MACD(12, 26, 9) needs 35 bars."""
        assert MACD().required_length == 35
        series = PriceSeries.from_closes("S", np.linspace(10, 20, 34))
        with pytest.raises(InsufficientHistoryError):
            MACD().evaluate(series.to_frame())

    def test_rising_series_bullish(self, rising_series):
        """Accelerating prices keep the MACD line above its signal line."""
        result = MACD().evaluate(rising_series.to_frame())
        assert result.signal == Signal.BULLISH
        assert result.current_value > result.details["signal_line"]
        assert result.details["histogram"] > 0
        assert "strongly bullish" in result.interpretation

    def test_falling_series_bearish(self, falling_series):
        result = MACD().evaluate(falling_series.to_frame())
        assert result.signal == Signal.BEARISH


class TestMovingAverages:
    """Tests for SMA and EMA."""

    def test_sma_value(self):
        """SMA(3) of 1..5 ends at 4."""
        series = PriceSeries.from_closes("S", [1.0, 2.0, 3.0, 4.0, 5.0])
        result = SMA(IndicatorConfig(lookback=3)).evaluate(series.to_frame())
        assert result.current_value == pytest.approx(4.0)
        assert result.signal == Signal.BULLISH
        assert result.history == pytest.approx([2.0, 3.0, 4.0])

    def test_ema_seeded_with_sma(self):
        """The first EMA value is the SMA of the first period."""
        values = SMA._rolling_mean(np.array([1.0, 2.0, 3.0]), 3)
        assert values[-1] == pytest.approx(2.0)
        ema = EMA._ema(np.array([1.0, 2.0, 3.0, 4.0]), 3)
        assert np.isnan(ema[1])
        assert ema[2] == pytest.approx(2.0)
        assert ema[3] == pytest.approx(0.5 * 4.0 + 0.5 * 2.0)


class TestVolatilityIndicators:
    """Tests for Bollinger Bands and ATR."""

    def test_bollinger_bands_order(self, ohlcv_series):
        result = BollingerBands().evaluate(ohlcv_series.to_frame())
        details = result.details
        assert details["lower"] <= details["middle"] <= details["upper"]
        assert details["bandwidth"] >= 0

    def test_bollinger_flat_series_neutral(self):
        """A flat series sits on the middle band."""
        series = PriceSeries.from_closes("FLAT", [50.0] * 20)
        result = BollingerBands().evaluate(series.to_frame())
        assert result.signal == Signal.NEUTRAL
        assert result.details["upper"] == result.details["lower"] == 50.0

    def test_bollinger_breakout_overbought(self):
        """A close far above the band is overbought."""
        series = PriceSeries.from_closes("JUMP", [100.0, 101.0] * 10 + [130.0])
        result = BollingerBands().evaluate(series.to_frame())
        assert result.signal == Signal.OVERBOUGHT
        assert result.details["percent_b"] > 1.0

    def test_atr_neutral_with_level(self, ohlcv_series):
        """ATR never votes and reports a volatility level."""
        result = ATR().evaluate(ohlcv_series.to_frame())
        assert result.signal == Signal.NEUTRAL
        assert result.current_value > 0
        assert result.details["volatility_level"] in {"high", "medium", "low"}

    def test_atr_high_volatility(self):
        """Daily ranges of 10% are high volatility."""
        closes = [100.0, 110.0] * 10
        series = PriceSeries.from_closes("SWING", closes)
        result = ATR().evaluate(series.to_frame())
        assert result.details["volatility_level"] == "high"


class TestStochasticAndADX:
    """Tests for the Stochastic oscillator and ADX."""

    def test_stochastic_rising_overbought(self, rising_series):
        """Closing at the window high reads %K 100."""
        result = StochasticOscillator().evaluate(rising_series.to_frame())
        assert result.current_value == pytest.approx(100.0)
        assert result.signal == Signal.OVERBOUGHT

    def test_stochastic_flat_window(self):
        """An unchanged window reads 50."""
        series = PriceSeries.from_closes("FLAT", [10.0] * 20)
        result = StochasticOscillator().evaluate(series.to_frame())
        assert result.current_value == 50.0
        assert result.details["d"] == pytest.approx(50.0)

    def test_adx_strong_uptrend(self, rising_series):
        """Persistent higher highs give a strong bullish ADX."""
        result = ADX().evaluate(rising_series.to_frame())
        assert result.details["trend_strength"] == "strong"
        assert result.details["plus_di"] > result.details["minus_di"]
        assert result.signal == Signal.BULLISH

    def test_adx_strong_downtrend(self, falling_series):
        result = ADX().evaluate(falling_series.to_frame())
        assert result.signal == Signal.BEARISH

    def test_adx_window(self):
        """ADX needs twice its period."""
        assert ADX().required_length == 28


class TestOBV:
    """Tests for On-Balance Volume."""

    def test_rising_obv_bullish(self, rising_series):
        result = OBV().evaluate(rising_series.to_frame())
        assert result.signal == Signal.BULLISH
        assert result.details["trend"] == "rising"

    def test_cumulative_signed_volume(self):
        """Volume is added on up days and subtracted on down days."""
        df = pl.DataFrame({"close": [10.0, 11.0, 10.5, 10.5], "volume": [100.0, 200.0, 50.0, 70.0]})
        obv = OBV().compute(df)["obv"]
        assert obv.tolist() == [0.0, 200.0, 150.0, 150.0]

    def test_missing_volume_column(self):
        df = pl.DataFrame({"close": [10.0, 11.0, 12.0]})
        with pytest.raises(InvalidParameterError):
            OBV().evaluate(df)


class TestAggregateSignals:
    """Tests for the majority vote."""

    def test_bullish_majority(self):
        """Oversold readings vote bullish; confidence counts every indicator."""
        results = {
            "a": _result(Signal.BULLISH),
            "b": _result(Signal.OVERSOLD),
            "c": _result(Signal.BEARISH),
            "d": _result(Signal.NEUTRAL),
        }
        analysis = aggregate_signals(results)
        assert analysis.signal == Signal.BULLISH
        assert analysis.confidence == 50
        assert analysis.supporting_indicators == ["a", "b"]
        assert analysis.opposing_indicators == ["c"]

    def test_confidence_rounds_half_up(self):
        """Two of three bearish is 67%."""
        results = {
            "a": _result(Signal.OVERBOUGHT),
            "b": _result(Signal.BEARISH),
            "c": _result(Signal.NEUTRAL),
        }
        analysis = aggregate_signals(results)
        assert analysis.signal == Signal.BEARISH
        assert analysis.confidence == 67

    def test_tie_is_neutral(self):
        results = {"a": _result(Signal.BULLISH), "b": _result(Signal.BEARISH)}
        analysis = aggregate_signals(results)
        assert analysis.signal == Signal.NEUTRAL
        assert analysis.confidence == 50

    def test_empty_is_neutral(self):
        analysis = aggregate_signals({})
        assert analysis.signal == Signal.NEUTRAL
        assert analysis.total_signals == 0


class TestTechnicalIndicatorCalculator:
    """Tests for the calculator."""

    def test_all_indicators_by_default(self, ohlcv_series):
        analysis = TechnicalIndicatorCalculator().calculate(ohlcv_series)
        assert set(analysis.indicators) == {name.value for name in IndicatorName}
        assert analysis.ticker == "AAPL"
        assert analysis.total_signals == 9

    def test_requested_subset_case_insensitive(self, ohlcv_series):
        """Names resolve case-insensitively and duplicates collapse."""
        analysis = TechnicalIndicatorCalculator().calculate(ohlcv_series, ["RSI", "macd", IndicatorName.RSI])
        assert list(analysis.indicators) == ["rsi", "macd"]

    def test_unknown_indicator(self, ohlcv_series):
        with pytest.raises(InvalidParameterError):
            TechnicalIndicatorCalculator().calculate(ohlcv_series, ["vwap"])

    def test_required_length(self):
        calculator = TechnicalIndicatorCalculator()
        assert calculator.required_length() == 35
        assert calculator.required_length(["rsi"]) == 15

    def test_rising_series_vote(self, rising_series):
        """Trend followers vote bullish while oscillators read overbought."""
        analysis = TechnicalIndicatorCalculator().calculate(rising_series)
        assert analysis.indicators["rsi"].signal == Signal.OVERBOUGHT
        assert analysis.indicators["macd"].signal == Signal.BULLISH
        assert analysis.signal == Signal.BULLISH
        assert analysis.bullish_count == 6
        assert analysis.bearish_count == 2
        assert analysis.confidence == 67

    def test_accepts_polars_frame(self, ohlcv_series):
        analysis = TechnicalIndicatorCalculator().calculate(ohlcv_series.to_frame(), ["sma"])
        assert analysis.ticker is None

    def test_deterministic(self, ohlcv_series):
        calculator = TechnicalIndicatorCalculator()
        assert calculator.calculate(ohlcv_series).to_dict() == calculator.calculate(ohlcv_series).to_dict()


class TestIndicatorsForProfile:
    """Tests for indicators_for_profile."""

    def test_low_risk_short_horizon(self):
        assert indicators_for_profile(RiskTolerance.LOW, InvestmentHorizon.SHORT) == [
            IndicatorName.SMA,
            IndicatorName.EMA,
            IndicatorName.RSI,
            IndicatorName.MACD,
            IndicatorName.BOLLINGER,
            IndicatorName.ATR,
        ]

    def test_high_risk_long_horizon(self):
        assert indicators_for_profile("high", "long") == [
            IndicatorName.SMA,
            IndicatorName.EMA,
            IndicatorName.RSI,
            IndicatorName.MACD,
            IndicatorName.STOCHASTIC,
            IndicatorName.OBV,
            IndicatorName.ADX,
        ]

    def test_moderate_includes_all_optional(self):
        selected = indicators_for_profile("moderate", "medium")
        assert len(selected) == 9
