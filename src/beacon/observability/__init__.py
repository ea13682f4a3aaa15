"""Observability for Beacon: structured logging with correlation context."""

from beacon.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    correlation_id_var,
    observer_id_var,
    request_id_var,
    user_id_var,
)

__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "configure_logging",
    "correlation_id_var",
    "observer_id_var",
    "request_id_var",
    "user_id_var",
]
