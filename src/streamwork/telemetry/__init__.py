"""
Telemetry module for streamwork.

Provides structured, context-aware logging.
"""

from streamwork.telemetry.logger import (
    CredentialMasker,
    JsonFormatter,
    LogContext,
    LogLevel,
    StreamLogger,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)

__all__ = [
    "CredentialMasker",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "StreamLogger",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
]
