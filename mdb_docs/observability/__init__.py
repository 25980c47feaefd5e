"""
Observability components.

Provides structured logging and operation metrics.
"""

from .logging import (
    DocsLoggerAdapter,
    correlation_scope,
    get_correlation_id,
    get_logger,
    log_operation,
)
from .metrics import (
    MetricsCollector,
    OperationStats,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationStats",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "DocsLoggerAdapter",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "log_operation",
]
