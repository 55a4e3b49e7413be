"""
Observability: structured logging for handles, renewals and retries.
"""

from redismap.observability.logging import (
    LogLevel,
    JsonFormatter,
    StructuredLogger,
    get_logger,
    setup_logging,
)

__all__ = [
    "LogLevel",
    "JsonFormatter",
    "StructuredLogger",
    "get_logger",
    "setup_logging",
]
