"""
Unit tests for core/exceptions.py
"""

import pytest

from quant_analytics.core.exceptions import (
    AnalyticsError,
    DataUnavailableError,
    InsufficientDataError,
    InsufficientHistoryError,
    InvalidParameterError,
    NumericDegeneracyError,
)


class TestAnalyticsError:
    """Tests for base AnalyticsError."""

    def test_basic_error(self):
        """Test basic error creation."""
        error = AnalyticsError("Something went wrong")
        assert str(error) == "[AnalyticsError] Something went wrong"
        assert error.message == "Something went wrong"
        assert error.error_code == "AnalyticsError"

    def test_error_with_code(self):
        """Test error with custom error code."""
        error = AnalyticsError("Failed", error_code="QA001")
        assert error.error_code == "QA001"
        assert "[QA001]" in str(error)

    def test_error_with_details(self):
        """Test error with details."""
        error = AnalyticsError("Operation failed", details={"key": "value"})
        assert error.details["key"] == "value"
        assert "Details:" in str(error)

    def test_to_dict(self):
        """Test conversion to dictionary."""
        error = AnalyticsError("Test error", error_code="T1", details={"foo": "bar"})
        d = error.to_dict()
        assert d == {
            "error_type": "AnalyticsError",
            "error_code": "T1",
            "message": "Test error",
            "details": {"foo": "bar"},
        }


class TestDataErrors:
    """Tests for data-related errors."""

    def test_insufficient_data_details(self):
        """Required/actual lengths and ticker land in details."""
        error = InsufficientDataError("Too short", required=3, actual=1, ticker="AAPL")
        assert error.details == {"required": 3, "actual": 1, "ticker": "AAPL"}
        assert error.required == 3
        assert error.actual == 1
        assert isinstance(error, AnalyticsError)

    def test_insufficient_history_is_insufficient_data(self):
        """History errors are catchable as InsufficientDataError."""
        error = InsufficientHistoryError("MACD needs 35 bars", indicator="macd", required=35, actual=20)
        assert isinstance(error, InsufficientDataError)
        assert error.indicator == "macd"
        assert error.details["indicator"] == "macd"
        assert error.details["required"] == 35

    def test_data_unavailable(self):
        """Ticker and source are recorded."""
        error = DataUnavailableError("Not found", ticker="XYZ", source="memory")
        assert error.details == {"ticker": "XYZ", "source": "memory"}
        with pytest.raises(AnalyticsError):
            raise error

    def test_extra_details_are_merged(self):
        """Caller details survive alongside the typed fields."""
        error = InsufficientDataError("x", required=2, details={"tickers": ["A", "B"]})
        assert error.details["tickers"] == ["A", "B"]
        assert error.details["required"] == 2


class TestParameterAndNumericErrors:
    """Tests for parameter and numeric errors."""

    def test_invalid_parameter(self):
        """Parameter name, stringified value and expectation are recorded."""
        error = InvalidParameterError("Bad threshold", parameter="z_threshold", value=5.0, expected="1-3")
        assert error.parameter == "z_threshold"
        assert error.value == 5.0
        assert error.details == {"parameter": "z_threshold", "value": "5.0", "expected": "1-3"}

    def test_invalid_parameter_without_value(self):
        """A missing value is not recorded."""
        error = InvalidParameterError("Bad", parameter="weights")
        assert "value" not in error.details

    def test_numeric_degeneracy(self):
        """Quantity and ticker are recorded."""
        error = NumericDegeneracyError("Zero variance", quantity="variance", ticker="FLAT")
        assert error.details == {"quantity": "variance", "ticker": "FLAT"}
        assert error.to_dict()["error_type"] == "NumericDegeneracyError"
