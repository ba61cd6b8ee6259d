"""
Monitoring module.

Provides structured logging for the analytics engine.
"""

from .logger import (
    ContextLogger,
    JsonFormatter,
    LogCategory,
    LogFormat,
    StructuredLogRecord,
    TextFormatter,
    category_for_logger,
    get_logger,
    log_analytics,
    log_risk,
    setup_logging,
)

__all__ = [
    "ContextLogger",
    "JsonFormatter",
    "LogCategory",
    "LogFormat",
    "StructuredLogRecord",
    "TextFormatter",
    "category_for_logger",
    "get_logger",
    "log_analytics",
    "log_risk",
    "setup_logging",
]
