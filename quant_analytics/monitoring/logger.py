"""
Structured logging for the analytics engine.

Provides:
- JSON and human-readable log formats
- Log categories per analytics component, inferred from the logger name
  when a record carries none
- Contextual metadata (correlation ID, ticker, extra data)
- Rotating file handler

The engine modules log through plain ``logging.getLogger(__name__)``
loggers and never configure handlers; ``setup_logging`` is for the
application embedding the engine.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class LogCategory(str, Enum):
    """Log categories for the analytics components."""

    SYSTEM = "SYSTEM"
    DATA = "DATA"
    INDICATORS = "INDICATORS"
    FACTORS = "FACTORS"
    PAIRS = "PAIRS"
    PORTFOLIO = "PORTFOLIO"
    RISK = "RISK"
    STRATEGY = "STRATEGY"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    TEXT = "text"


# Logger-name prefixes mapped to categories, most specific first
_CATEGORY_PREFIXES: tuple[tuple[str, LogCategory], ...] = (
    ("quant_analytics.core.data_provider", LogCategory.DATA),
    ("quant_analytics.features", LogCategory.INDICATORS),
    ("quant_analytics.alpha.factor_model", LogCategory.FACTORS),
    ("quant_analytics.alpha.pairs_analyzer", LogCategory.PAIRS),
    ("quant_analytics.risk.portfolio_optimizer", LogCategory.PORTFOLIO),
    ("quant_analytics.risk", LogCategory.RISK),
    ("quant_analytics.trading", LogCategory.STRATEGY),
)


def category_for_logger(name: str, default: LogCategory = LogCategory.SYSTEM) -> LogCategory:
    """Infer the log category of an engine module from its logger name."""
    for prefix, category in _CATEGORY_PREFIXES:
        if name == prefix or name.startswith(prefix + "."):
            return category
    return default


class StructuredLogRecord(BaseModel):
    """Structured log record with metadata."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: str
    category: LogCategory
    message: str
    correlation_id: str | None = None
    ticker: str | None = None
    extra_data: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Convert to JSON string."""
        data = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "category": self.category.value,
            "message": self.message,
        }
        if self.correlation_id:
            data["correlation_id"] = self.correlation_id
        if self.ticker:
            data["ticker"] = self.ticker
        if self.extra_data:
            data["extra_data"] = self.extra_data
        return json.dumps(data, default=str)

    def to_text(self) -> str:
        """Convert to human-readable text."""
        parts = [
            self.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
            f"[{self.level:8s}]",
            f"[{self.category.value:10s}]",
        ]
        if self.correlation_id:
            parts.append(f"[{self.correlation_id[:8]}]")
        if self.ticker:
            parts.append(f"[{self.ticker}]")
        parts.append(self.message)
        if self.extra_data:
            parts.append(f"| {self.extra_data}")
        return " ".join(parts)


def _record_category(record: logging.LogRecord, default: LogCategory) -> str:
    category = getattr(record, "category", None)
    if category:
        return category
    return category_for_logger(record.name, default).value


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(self, category: LogCategory = LogCategory.SYSTEM) -> None:
        """Initialize the formatter.

        Args:
            category: Category for records outside the engine packages.
        """
        super().__init__()
        self.category = category

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "category": _record_category(record, self.category),
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "correlation_id", None):
            log_data["correlation_id"] = record.correlation_id
        if getattr(record, "ticker", None):
            log_data["ticker"] = record.ticker
        if getattr(record, "extra_data", None):
            log_data["extra_data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for development."""

    def __init__(self, category: LogCategory = LogCategory.SYSTEM) -> None:
        super().__init__()
        self.category = category

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as human-readable text."""
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        parts = [
            timestamp,
            f"[{record.levelname:8s}]",
            f"[{_record_category(record, self.category):10s}]",
        ]

        if getattr(record, "correlation_id", None):
            parts.append(f"[{record.correlation_id[:8]}]")
        if getattr(record, "ticker", None):
            parts.append(f"[{record.ticker}]")

        parts.append(record.getMessage())

        if getattr(record, "extra_data", None):
            parts.append(f"| {record.extra_data}")

        message = " ".join(parts)
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter injecting category, correlation ID and ticker context."""

    def __init__(
        self,
        logger: logging.Logger,
        category: LogCategory = LogCategory.SYSTEM,
        correlation_id: str | None = None,
        ticker: str | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the context logger.

        Args:
            logger: Base logger instance.
            category: Log category.
            correlation_id: Optional correlation ID for request tracing.
            ticker: Ticker the messages relate to.
            extra_data: Additional context attached to every record.
        """
        super().__init__(logger, {})
        self.category = category
        self.correlation_id = correlation_id or str(uuid4())
        self.ticker = ticker
        self.extra_data = extra_data or {}

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Add the context to the logging call."""
        extra = dict(kwargs.get("extra") or {})
        extra["category"] = self.category.value
        extra["correlation_id"] = self.correlation_id
        if self.ticker and "ticker" not in extra:
            extra["ticker"] = self.ticker
        if self.extra_data:
            extra["extra_data"] = {**self.extra_data, **extra.get("extra_data", {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, ticker: str | None = None, **extra_data: Any) -> ContextLogger:
        """Create a new logger sharing this correlation ID with added context."""
        return ContextLogger(
            self.logger,
            self.category,
            self.correlation_id,
            ticker or self.ticker,
            {**self.extra_data, **extra_data},
        )


def setup_logging(
    level: str = "INFO",
    log_format: LogFormat | str = LogFormat.JSON,
    log_file: Path | str | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 30,
) -> None:
    """Set up logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json or text).
        log_file: Optional log file path.
        max_bytes: Rotation size for the file handler.
        backup_count: Rotated files kept.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    if LogFormat(log_format) == LogFormat.JSON:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = TextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


@lru_cache(maxsize=32)
def get_logger(
    name: str,
    category: LogCategory = LogCategory.SYSTEM,
    correlation_id: str | None = None,
) -> ContextLogger:
    """Get a context logger for a component.

    Args:
        name: Logger name.
        category: Log category.
        correlation_id: Optional correlation ID.

    Returns:
        ContextLogger instance.
    """
    return ContextLogger(logging.getLogger(name), category, correlation_id)


# Convenience functions for quick logging
def log_analytics(
    message: str,
    category: LogCategory = LogCategory.SYSTEM,
    ticker: str | None = None,
    level: str = "INFO",
    **kwargs: Any,
) -> None:
    """Log an analytics message under a category."""
    logger = get_logger(category.value.lower(), category)
    extra: dict[str, Any] = {"extra_data": kwargs}
    if ticker:
        extra["ticker"] = ticker
    getattr(logger, level.lower())(message, extra=extra)


def log_risk(message: str, level: str = "WARNING", **kwargs: Any) -> None:
    """Log a risk message."""
    logger = get_logger("risk", LogCategory.RISK)
    getattr(logger, level.lower())(message, extra={"extra_data": kwargs})
