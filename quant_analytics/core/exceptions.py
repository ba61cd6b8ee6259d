"""
Custom exception hierarchy for the analytics engine.

Provides a structured exception hierarchy for the failure modes of the
quantitative components:
- Data errors (series too short, collaborator fetch failures)
- Parameter errors (out-of-range thresholds, mismatched lengths, bad weights)
- Numeric errors (zero variance, zero mean, degenerate denominators)
"""

from __future__ import annotations

from typing import Any


class AnalyticsError(Exception):
    """Base exception for all analytics engine errors.

    All custom exceptions in the engine inherit from this class.
    Provides structured error information including error code, message,
    and additional context.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Optional error code for programmatic handling.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def __str__(self) -> str:
        """Return formatted error string."""
        if self.details:
            return f"[{self.error_code}] {self.message} - Details: {self.details}"
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Data Errors
# =============================================================================


class InsufficientDataError(AnalyticsError):
    """Raised when a series is shorter than a computation requires.

    Examples:
        - Fewer than two observations for a variance
        - Return series too short for a trend
        - Price history shorter than a backtest window
    """

    def __init__(
        self,
        message: str,
        required: int | None = None,
        actual: int | None = None,
        ticker: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if required is not None:
            details["required"] = required
        if actual is not None:
            details["actual"] = actual
        if ticker:
            details["ticker"] = ticker
        super().__init__(message, details=details, **kwargs)
        self.required = required
        self.actual = actual
        self.ticker = ticker


class InsufficientHistoryError(InsufficientDataError):
    """Raised when a price history is shorter than an indicator's window.

    Examples:
        - Fewer than 35 bars for MACD(12, 26, 9)
        - Fewer than period + 1 bars for RSI
    """

    def __init__(
        self,
        message: str,
        indicator: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if indicator:
            details["indicator"] = indicator
        super().__init__(message, details=details, **kwargs)
        self.indicator = indicator


class DataUnavailableError(AnalyticsError):
    """Raised when the data provider cannot supply a series.

    Examples:
        - Unknown ticker
        - Upstream API failure
        - Empty date range
    """

    def __init__(
        self,
        message: str,
        ticker: str | None = None,
        source: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if ticker:
            details["ticker"] = ticker
        if source:
            details["source"] = source
        super().__init__(message, details=details, **kwargs)
        self.ticker = ticker
        self.source = source


# =============================================================================
# Parameter Errors
# =============================================================================


class InvalidParameterError(AnalyticsError):
    """Raised when a parameter or input shape fails validation.

    Examples:
        - Z-score threshold outside [1, 3]
        - Return series of different lengths
        - Weights not summing to one
        - NaN or infinite values in a numeric input
    """

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        value: Any = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if parameter:
            details["parameter"] = parameter
        if value is not None:
            details["value"] = str(value)
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)
        self.parameter = parameter
        self.value = value
        self.expected = expected


# =============================================================================
# Numeric Errors
# =============================================================================


class NumericDegeneracyError(AnalyticsError):
    """Raised when a computation hits a degenerate denominator.

    Examples:
        - Correlation of a constant series (zero variance)
        - Coefficient of variation with a zero mean
        - Z-score of a spread with zero standard deviation
    """

    def __init__(
        self,
        message: str,
        quantity: str | None = None,
        ticker: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if quantity:
            details["quantity"] = quantity
        if ticker:
            details["ticker"] = ticker
        super().__init__(message, details=details, **kwargs)
        self.quantity = quantity
        self.ticker = ticker
