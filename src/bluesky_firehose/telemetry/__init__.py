"""
Telemetry module for bluesky-firehose.

Provides structured logging with subscription context and credential masking.
"""

from bluesky_firehose.telemetry.logger import (
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    StreamLogger,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)

__all__ = [
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "StreamLogger",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
]
