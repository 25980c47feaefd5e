"""
Custom exceptions for MDB_DOCS.

Every fallible repository operation surfaces exactly one of the exceptions
below. Callers see a short, fixed message and a stable ``kind``; the
low-level driver error is logged where it happens and kept on
``__cause__`` for diagnosis.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Dict, Optional

from bson.errors import BSONError
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class MongoDocsError(RuntimeError):
    """
    Base exception for MDB_DOCS errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection,
                 doc_id, etc.)
    """

    kind: str = "error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class InvalidInputError(MongoDocsError):
    """Raised for caller input errors: malformed identifiers, page numbers < 1, bad filters."""

    kind = "invalid_input"


class NotFoundError(MongoDocsError):
    """Raised when a load or find matches zero documents."""

    kind = "not_found"


class ConnectionUnavailableError(MongoDocsError):
    """
    Raised when the MongoDB connection cannot be used.

    Either the handshake failed or the handle was requested before a
    successful ``connect()``. Startup code should treat this as fatal.
    The connection URI is never attached since it may hold credentials.

    Attributes:
        db_name: Database name (if available)
    """

    kind = "connection_unavailable"

    def __init__(
        self,
        message: str,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.db_name = db_name


class StoreOperationError(MongoDocsError):
    """Raised when an insert, update, delete, find, count or aggregate call fails."""

    kind = "store_operation_failed"


class SerializationError(MongoDocsError):
    """Raised when a payload cannot be converted to or from a BSON document."""

    kind = "serialization_failed"


class ConfigurationError(MongoDocsError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
    """

    kind = "configuration"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


@contextmanager
def store_errors(description: str, **context: Any) -> Iterator[None]:
    """
    Translate driver and serialization failures into domain errors.

    The underlying exception is logged with its traceback and chained as
    ``__cause__``; the raised error only carries ``description``.

    Usage:
        with store_errors("create failed", collection="users"):
            await connection.insert_one("users", doc)

    Args:
        description: Short fixed message for the raised error
        **context: Context attached to the raised error and the log record
    """
    try:
        yield
    except PyMongoError as e:
        logger.error(
            f"{description}: {type(e).__name__}: {e}",
            extra={"error_type": type(e).__name__, **context},
            exc_info=True,
        )
        raise StoreOperationError(description, context=context) from e
    except (ValidationError, PydanticSerializationError, BSONError) as e:
        logger.error(
            f"{description}: payload could not be converted: {e}",
            extra={"error_type": type(e).__name__, **context},
            exc_info=True,
        )
        raise SerializationError(description, context=context) from e
