"""Shared utilities for services."""

from shared.utils.logging import configure_logging, get_correlation_id, set_correlation_id
from shared.utils.db import get_db_session, init_db
from shared.utils.metrics import MetricsMiddleware, create_counter, create_histogram

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
    "get_db_session",
    "init_db",
    "MetricsMiddleware",
    "create_counter",
    "create_histogram",
]
