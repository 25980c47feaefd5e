"""
MongoDB connection handle.

Owns the single motor client used by every repository in the process and
exposes the narrow set of primitives the repository layer needs. Each
primitive is one round trip to the server; none of them retries.

The handshake happens exactly once per process. Concurrent first callers
of ``connect()`` share one in-flight initialization; later calls return the
existing handle without re-validating it.

Usage:
    from mdb_docs.database import connect, instance

    # At startup
    await connect("mongodb://mongo:27017", "wxmp")

    # Anywhere afterwards
    handle = instance()
    await handle.count("logs", {})
"""

import asyncio
import logging
import threading
import time
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ..config import DocsConfig
from ..constants import (
    APP_NAME,
    DEFAULT_MAX_IDLE_TIME_MS,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from ..exceptions import ConnectionUnavailableError
from ..observability import get_logger, record_operation, timed_operation

logger = logging.getLogger(__name__)


class MongoConnection:
    """
    A session bound to one MongoDB database.

    Build one with ``connect()`` for the process-wide handle, or wrap an
    existing motor database with ``from_database()`` to inject it directly.
    """

    def __init__(
        self,
        mongo_uri: str,
        db_name: str,
        max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
        min_pool_size: int = DEFAULT_MIN_POOL_SIZE,
        server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    ) -> None:
        """
        Args:
            mongo_uri: MongoDB connection URI
            db_name: Database name
            max_pool_size: Maximum MongoDB connection pool size
            min_pool_size: Minimum MongoDB connection pool size
            server_selection_timeout_ms: Server selection timeout in milliseconds
        """
        self.mongo_uri = mongo_uri
        self.db_name = db_name
        self.max_pool_size = max_pool_size
        self.min_pool_size = min_pool_size
        self.server_selection_timeout_ms = server_selection_timeout_ms

        self._client: AsyncIOMotorClient | None = None
        self._db: AsyncIOMotorDatabase | None = None

    @classmethod
    def from_database(cls, database: AsyncIOMotorDatabase) -> "MongoConnection":
        """Wrap an already-open motor database."""
        handle = cls(mongo_uri="", db_name=database.name)
        handle._client = database.client
        handle._db = database
        return handle

    async def open(self) -> None:
        """
        Create the motor client and verify it with a ping.

        Raises:
            ConnectionUnavailableError: If the server cannot be reached or the
                URI, options or database name are invalid
        """
        start_time = time.time()
        log = get_logger(__name__, db_name=self.db_name)
        log.info(
            "Connecting to MongoDB",
            extra={"max_pool_size": self.max_pool_size, "min_pool_size": self.min_pool_size},
        )

        client = None
        try:
            client = AsyncIOMotorClient(
                self.mongo_uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                appname=APP_NAME,
                maxPoolSize=self.max_pool_size,
                minPoolSize=self.min_pool_size,
                maxIdleTimeMS=DEFAULT_MAX_IDLE_TIME_MS,
            )
            # InvalidName / TypeError for an unusable database name
            database = client[self.db_name]
            await client.admin.command("ping")
        except (PyMongoError, TypeError, ValueError) as e:
            if client is not None:
                client.close()
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.open", duration_ms, success=False)
            log.critical(
                "MongoDB connection failed",
                extra={"error_type": type(e).__name__, "duration_ms": round(duration_ms, 2)},
                exc_info=True,
            )
            raise ConnectionUnavailableError(
                "connection unavailable",
                db_name=self.db_name,
                context={"error_type": type(e).__name__},
            ) from e

        self._client = client
        self._db = database

        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.open", duration_ms, success=True)
        log.info(
            "MongoDB connection established",
            extra={
                "pool_size": f"{self.min_pool_size}-{self.max_pool_size}",
                "duration_ms": round(duration_ms, 2),
            },
        )

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._db = None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """
        The bound motor database.

        Raises:
            ConnectionUnavailableError: If the handle is not open
        """
        if self._db is None:
            raise ConnectionUnavailableError(
                "connection unavailable", db_name=self.db_name
            )
        return self._db

    @property
    def is_open(self) -> bool:
        return self._db is not None

    async def ping(self) -> bool:
        """Return True if the server answers a ping."""
        try:
            await self.database.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @timed_operation("mongo.insert_one")
    async def insert_one(self, collection_name: str, document: dict[str, Any]) -> Any:
        """Insert one document and return its ``_id``."""
        result = await self.database[collection_name].insert_one(document)
        return result.inserted_id

    @timed_operation("mongo.insert_many")
    async def insert_many(
        self, collection_name: str, documents: list[dict[str, Any]]
    ) -> list[Any]:
        """Insert documents in one batch and return their ``_id`` values."""
        result = await self.database[collection_name].insert_many(documents)
        return list(result.inserted_ids)

    @timed_operation("mongo.find_one")
    async def find_one(
        self, collection_name: str, filter: dict[str, Any]
    ) -> dict[str, Any] | None:
        return await self.database[collection_name].find_one(filter)

    @timed_operation("mongo.find")
    async def find(
        self,
        collection_name: str,
        filter: dict[str, Any],
        skip: int = 0,
        limit: int = 0,
        sort: list[tuple[str, int]] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Find documents.

        Args:
            collection_name: Collection to query
            filter: MongoDB filter
            skip: Number of documents to skip
            limit: Maximum documents to return (0 for no limit)
            sort: List of (field, direction) tuples

        Returns:
            Matching documents
        """
        cursor = self.database[collection_name].find(filter, skip=skip, limit=limit, sort=sort)
        return await cursor.to_list(length=None)

    @timed_operation("mongo.delete_one")
    async def delete_one(self, collection_name: str, filter: dict[str, Any]) -> int:
        result = await self.database[collection_name].delete_one(filter)
        return result.deleted_count

    @timed_operation("mongo.delete_many")
    async def delete_many(self, collection_name: str, filter: dict[str, Any]) -> int:
        result = await self.database[collection_name].delete_many(filter)
        return result.deleted_count

    @timed_operation("mongo.update_one")
    async def update_one(
        self, collection_name: str, filter: dict[str, Any], update: dict[str, Any]
    ) -> int:
        """
        Apply an update document (e.g. ``{"$set": {...}}``) to the first match.

        Returns:
            Number of matched documents (0 or 1)
        """
        result = await self.database[collection_name].update_one(filter, update)
        return result.matched_count

    @timed_operation("mongo.update_many")
    async def update_many(
        self, collection_name: str, filter: dict[str, Any], update: dict[str, Any]
    ) -> int:
        """Apply an update document to every match and return the modified count."""
        result = await self.database[collection_name].update_many(filter, update)
        return result.modified_count

    @timed_operation("mongo.count")
    async def count(self, collection_name: str, filter: dict[str, Any]) -> int:
        return await self.database[collection_name].count_documents(filter)

    @timed_operation("mongo.aggregate")
    async def aggregate(
        self, collection_name: str, pipeline: list[dict[str, Any]], **options: Any
    ) -> list[dict[str, Any]]:
        """
        Run an aggregation pipeline and return every result document.

        Args:
            collection_name: Collection to aggregate
            pipeline: MongoDB aggregation pipeline
            **options: Passed to motor's ``aggregate`` (allowDiskUse, ...)
        """
        cursor = self.database[collection_name].aggregate(pipeline, **options)
        return await cursor.to_list(length=None)


# ----------------------------------------------------------------------
# Process-wide handle
# ----------------------------------------------------------------------

_handle: MongoConnection | None = None
_pending: asyncio.Future | None = None
# Guards creation of the initialization task across threads
_init_lock = threading.Lock()


async def _open_handle(
    mongo_uri: str,
    db_name: str,
    max_pool_size: int,
    min_pool_size: int,
    server_selection_timeout_ms: int,
) -> MongoConnection:
    global _handle
    handle = MongoConnection(
        mongo_uri,
        db_name,
        max_pool_size=max_pool_size,
        min_pool_size=min_pool_size,
        server_selection_timeout_ms=server_selection_timeout_ms,
    )
    await handle.open()
    _handle = handle
    return handle


async def connect(
    mongo_uri: str,
    db_name: str,
    max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
    min_pool_size: int = DEFAULT_MIN_POOL_SIZE,
    server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
) -> MongoConnection:
    """
    Connect the process-wide handle.

    The first call performs the handshake; calls made while it is in flight
    wait for the same result, and calls made after it succeeded return the
    existing handle (arguments are ignored).

    Returns:
        The process-wide MongoConnection

    Raises:
        ConnectionUnavailableError: If the handshake fails. No handle is
            installed and startup should abort.
    """
    global _pending

    if _handle is not None:
        logger.debug("MongoDB handle already connected; ignoring connect()")
        return _handle

    with _init_lock:
        if _pending is None:
            _pending = asyncio.ensure_future(
                _open_handle(
                    mongo_uri,
                    db_name,
                    max_pool_size,
                    min_pool_size,
                    server_selection_timeout_ms,
                )
            )
        pending = _pending

    try:
        return await asyncio.shield(pending)
    except Exception:
        # A failed handshake leaves connect() retryable
        with _init_lock:
            if _pending is pending:
                _pending = None
        raise


async def connect_from_config(config: DocsConfig | None = None) -> MongoConnection:
    """
    Validate a DocsConfig (from the environment when omitted) and connect.

    Raises:
        ConfigurationError: If the configuration is invalid
        ConnectionUnavailableError: If the handshake fails
    """
    config = config or DocsConfig()
    config.validate()
    return await connect(**config.connection_options())


def instance() -> MongoConnection:
    """
    Get the process-wide handle.

    Raises:
        ConnectionUnavailableError: If ``connect()`` has not succeeded
    """
    if _handle is None:
        raise ConnectionUnavailableError(
            "connection unavailable",
            context={"reason": "connect() has not completed"},
        )
    return _handle


def close_connection() -> None:
    """
    Close and clear the process-wide handle.

    Should be called during application shutdown.
    """
    global _handle, _pending

    with _init_lock:
        handle = _handle
        _handle = None
        _pending = None

    if handle is not None:
        handle.close()
