"""
MDB_DOCS - MongoDB document repositories

Generic, typed document repositories over a single shared MongoDB
connection: envelopes with client-side identifiers and timestamps,
pagination, counting, aggregation and composable filters.
"""

# Connection lifecycle
from .config import DocsConfig
from .database import (
    MongoConnection,
    close_connection,
    connect,
    connect_from_config,
    instance,
)
# Documents
from .documents import Doc, DocRepository, DocState, Payload
# Errors
from .exceptions import (
    ConfigurationError,
    ConnectionUnavailableError,
    InvalidInputError,
    MongoDocsError,
    NotFoundError,
    SerializationError,
    StoreOperationError,
)
# Filters and naming
from .filters import Contains, Equals, FilterBuilder, Predicate
from .naming import CollectionNamed, collection_for, resolve_collection_name

__version__ = "0.1.0"

__all__ = [
    # Connection
    "MongoConnection",
    "connect",
    "connect_from_config",
    "instance",
    "close_connection",
    "DocsConfig",
    # Documents
    "Doc",
    "DocRepository",
    "DocState",
    "Payload",
    # Filters
    "Predicate",
    "Equals",
    "Contains",
    "FilterBuilder",
    # Naming
    "CollectionNamed",
    "collection_for",
    "resolve_collection_name",
    # Errors
    "MongoDocsError",
    "InvalidInputError",
    "NotFoundError",
    "ConnectionUnavailableError",
    "StoreOperationError",
    "SerializationError",
    "ConfigurationError",
]
