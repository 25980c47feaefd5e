"""
Operation metrics for MDB_DOCS.

Every MongoDB primitive issued by the connection handle is counted and
timed under its operation name (``mongo.find``, ``connection.open``, ...).
"""

import functools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class OperationStats:
    """Running totals for one operation name."""

    count: int = 0
    failures: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, duration_ms: float, success: bool) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        if not success:
            self.failures += 1

    def snapshot(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "failures": self.failures,
            "avg_ms": round(self.total_ms / self.count, 2) if self.count else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


class MetricsCollector:
    """Thread-safe map of operation name to ``OperationStats``."""

    def __init__(self) -> None:
        self._stats: dict[str, OperationStats] = {}
        self._lock = threading.Lock()

    def record_operation(self, operation_name: str, duration_ms: float, success: bool = True) -> None:
        with self._lock:
            self._stats.setdefault(operation_name, OperationStats()).add(duration_ms, success)

    def get_metrics(self, prefix: str | None = None) -> dict[str, dict[str, Any]]:
        """Snapshot of every operation, or only those starting with ``prefix``."""
        with self._lock:
            return {
                name: stats.snapshot()
                for name, stats in self._stats.items()
                if prefix is None or name.startswith(prefix)
            }

    def get_operation_count(self, operation_name: str) -> int:
        with self._lock:
            stats = self._stats.get(operation_name)
            return stats.count if stats else 0

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """The process-wide collector fed by ``timed_operation``."""
    return _metrics_collector


def record_operation(operation_name: str, duration_ms: float, success: bool = True) -> None:
    _metrics_collector.record_operation(operation_name, duration_ms, success)


def timed_operation(operation_name: str) -> Callable:
    """
    Time an async function under ``operation_name``.

    Exceptions are counted as failures and re-raised unchanged.

    Usage:
        @timed_operation("mongo.insert_one")
        async def insert_one(self, collection_name, document):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.perf_counter()
            success = False
            try:
                result = await func(*args, **kwargs)
                success = True
                return result
            finally:
                record_operation(operation_name, (time.perf_counter() - start) * 1000, success)

        return wrapper

    return decorator
