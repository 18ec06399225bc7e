"""
Observability module: structured logging.
"""

from osapi.observability.logging import (
    StructuredLogger,
    LogLevel,
    JsonFormatter,
    mask_secrets,
    setup_logging,
)

__all__ = [
    "StructuredLogger",
    "LogLevel",
    "JsonFormatter",
    "mask_secrets",
    "setup_logging",
]
