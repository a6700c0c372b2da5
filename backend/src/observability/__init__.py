"""Observability module for the webhook work queue.

Provides structured logging, correlation IDs and Prometheus metrics.
"""

from .logging_config import configure_logging, get_logger
from .request_id import (
    correlation_id_var,
    get_correlation_id,
    set_correlation_id,
    reset_correlation_id,
    generate_correlation_id,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "correlation_id_var",
    "get_correlation_id",
    "set_correlation_id",
    "reset_correlation_id",
    "generate_correlation_id",
]
