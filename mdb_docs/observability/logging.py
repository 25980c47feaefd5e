"""
Structured logging for MDB_DOCS.

Log records emitted by repositories carry the collection they act on and,
inside a ``correlation_scope()``, the caller's correlation id, so the
records of one request can be grouped without threading ids through every
call.

Usage:
    from mdb_docs.observability import correlation_scope

    with correlation_scope(request_id):
        await users.load(user_id)  # records carry correlation_id=request_id
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mdb_docs_correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """
    Attach a correlation id to every record logged inside the block.

    Scopes nest; the enclosing id is restored on exit. A random id is
    generated when none is given.
    """
    token = _correlation_id.set(correlation_id or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


class DocsLoggerAdapter(logging.LoggerAdapter):
    """
    Adds the adapter's bound fields and the current correlation id to each
    record. Per-call ``extra`` wins over bound fields.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(self.extra)
        correlation_id = _correlation_id.get()
        if correlation_id is not None:
            extra["correlation_id"] = correlation_id
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **fields: Any) -> "DocsLoggerAdapter":
        """Return a logger with ``fields`` added to the bound fields."""
        return DocsLoggerAdapter(self.logger, {**self.extra, **fields})


def get_logger(name: str, **fields: Any) -> DocsLoggerAdapter:
    """
    Get a logger whose records always carry ``fields``.

    Args:
        name: Logger name (typically __name__)
        **fields: Fields bound to every record (collection, db_name, ...)
    """
    return DocsLoggerAdapter(logging.getLogger(name), fields)


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    success: bool = True,
    duration_ms: float | None = None,
    level: int = logging.DEBUG,
    **fields: Any,
) -> None:
    """
    Log the outcome of one repository operation.

    The record carries ``operation`` and ``success`` plus ``duration_ms``
    when given, and any extra ``fields`` (doc_id, count, ...).
    """
    message = f"{operation} {'ok' if success else 'failed'}"
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)
        message += f" in {duration_ms:.2f}ms"
    logger.log(level, message, extra={"operation": operation, "success": success, **fields})
