"""
Document Repository

Binds a payload type to its MongoDB collection and a connection handle,
and exposes typed CRUD, pagination, counting and aggregation over Doc
envelopes.

Usage:
    from mdb_docs import DocRepository, Equals, FilterBuilder, Payload

    class UserProfile(Payload):
        who: str
        age: int = 0

    users = DocRepository(UserProfile)          # uses instance() lazily
    doc = users.create(UserProfile(who="alice"))
    await doc.save()

    page = await users.list(1, FilterBuilder().push(Equals("who", "alice")))
    same = await users.load(str(doc.id))
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from bson import ObjectId
from pydantic import BaseModel
from pymongo import DESCENDING

from ..constants import (
    CREATED_AT_FIELD,
    DATA_FIELD,
    DEFAULT_PAGE_SIZE,
    ID_FIELD,
    UPDATED_AT_FIELD,
)
from ..database.connection import MongoConnection, instance
from ..exceptions import InvalidInputError, NotFoundError, SerializationError, store_errors
from ..filters import FilterLike, to_query
from ..naming import collection_for
from ..observability import get_logger, log_operation
from .base import DocState, now_ms
from .doc import Doc

T = TypeVar("T", bound=BaseModel)

_STORED_FIELDS = (ID_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD, DATA_FIELD)


class DocRepository(Generic[T]):
    """
    Repository of Doc[T] envelopes stored in one collection.

    The connection handle is injected or, when omitted, taken from
    ``instance()`` at the time of the first store call, so repositories can
    be declared at import time before ``connect()`` runs.
    """

    def __init__(
        self,
        payload_type: type[T],
        connection: MongoConnection | None = None,
        collection_name: str | None = None,
    ):
        """
        Args:
            payload_type: Pydantic model class of the payload
            connection: Handle to use instead of the process-wide one
            collection_name: Explicit collection name; required when the payload
                type does not implement ``collection_name()``
        """
        self.payload_type = payload_type
        self.collection_name = collection_name or collection_for(payload_type)
        self._connection = connection
        self._logger = get_logger(__name__, collection=self.collection_name)

    @property
    def connection(self) -> MongoConnection:
        """
        Raises:
            ConnectionUnavailableError: If no handle was injected and
                ``connect()`` has not completed
        """
        if self._connection is not None:
            return self._connection
        return instance()

    def _log(self, operation: str, start_time: float, **context: Any) -> None:
        log_operation(
            self._logger,
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            **context,
        )

    def _to_doc(self, raw: dict[str, Any]) -> Doc[T]:
        missing = [f for f in _STORED_FIELDS if f not in raw]
        if missing:
            self._logger.error(
                f"Stored document in {self.collection_name} is missing {missing}",
                extra={"doc_id": str(raw.get(ID_FIELD))},
            )
            raise SerializationError(
                "decode failed", context={"collection": self.collection_name}
            )
        with store_errors("decode failed", collection=self.collection_name):
            payload = self.payload_type.model_validate(raw[DATA_FIELD])
        return Doc(
            payload,
            repository=self,
            id=raw[ID_FIELD],
            created_at=raw[CREATED_AT_FIELD],
            updated_at=raw[UPDATED_AT_FIELD],
            state=DocState.COMMITTED,
        )

    @staticmethod
    def parse_id(id: str | ObjectId) -> ObjectId:
        """
        Parse a caller-supplied identifier.

        Raises:
            InvalidInputError: If ``id`` is not a 24-character hex string
        """
        if isinstance(id, ObjectId):
            return id
        if isinstance(id, str) and ObjectId.is_valid(id):
            return ObjectId(id)
        raise InvalidInputError("invalid identifier", context={"id": repr(id)})

    # ------------------------------------------------------------------
    # Envelope lifecycle
    # ------------------------------------------------------------------

    def create(self, data: T) -> Doc[T]:
        """
        Wrap a payload in a new, not yet persisted envelope. No I/O.

        Raises:
            InvalidInputError: If ``data`` is not an instance of the payload type
        """
        return self._new_doc(data, now_ms())

    def _new_doc(self, data: T, timestamp: int) -> Doc[T]:
        if not isinstance(data, self.payload_type):
            raise InvalidInputError(
                "invalid payload",
                context={
                    "expected": self.payload_type.__name__,
                    "got": type(data).__name__,
                },
            )
        return Doc(
            data,
            repository=self,
            id=ObjectId(),
            created_at=timestamp,
            updated_at=timestamp,
        )

    async def save(self, doc: Doc[T]) -> None:
        """
        Persist an envelope.

        Uncommitted envelopes are inserted whole and become committed.
        Committed envelopes get ``data`` and ``updated_at`` replaced through
        ``$set``; ``_id`` and ``created_at`` are never rewritten. A failed
        save leaves the envelope unchanged.

        Raises:
            StoreOperationError: "create failed" / "update failed"
            SerializationError: If the payload cannot be encoded
        """
        start_time = time.time()
        connection = self.connection
        context = {"collection": self.collection_name, "doc_id": str(doc.id)}

        if doc.state is DocState.UNCOMMITTED:
            with store_errors("create failed", **context):
                await connection.insert_one(self.collection_name, doc.to_document())
            doc._mark_committed()
            self._log("doc.create", start_time, doc_id=str(doc.id))
            return

        updated_at = max(now_ms(), doc.updated_at)
        with store_errors("update failed", **context):
            matched = await connection.update_one(
                self.collection_name,
                {ID_FIELD: doc.id},
                {"$set": {DATA_FIELD: doc.dump_data(), UPDATED_AT_FIELD: updated_at}},
            )
        if not matched:
            self._logger.warning(
                f"Update of {doc.id} in {self.collection_name} matched no document",
                extra={"doc_id": str(doc.id)},
            )
        doc._touch(updated_at)
        self._log("doc.update", start_time, doc_id=str(doc.id))

    async def delete(self, doc: Doc[T]) -> bool:
        """
        Delete the envelope's stored document.

        Raises:
            StoreOperationError: "delete failed"
        """
        start_time = time.time()
        connection = self.connection
        with store_errors("delete failed", collection=self.collection_name, doc_id=str(doc.id)):
            deleted = await connection.delete_one(self.collection_name, {ID_FIELD: doc.id})
        self._log("doc.delete", start_time, doc_id=str(doc.id), deleted=deleted)
        return deleted > 0

    async def reload(self, doc: Doc[T]) -> None:
        """
        Refresh an envelope's ``data`` and ``updated_at`` from the store.

        Raises:
            NotFoundError: If the document no longer exists
        """
        fresh = await self.load(doc.id)
        doc.data = fresh.data
        doc._touch(fresh.updated_at)
        doc._mark_committed()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load(self, id: str | ObjectId) -> Doc[T]:
        """
        Load an envelope by identifier.

        Raises:
            InvalidInputError: If the identifier is malformed
            NotFoundError: If no document has this identifier
        """
        object_id = self.parse_id(id)
        return await self.first({ID_FIELD: object_id})

    async def first(self, filter: FilterLike = None) -> Doc[T]:
        """
        Get the first document matching a filter (any document when omitted).

        Raises:
            NotFoundError: If nothing matches
        """
        start_time = time.time()
        query = to_query(filter)
        connection = self.connection
        with store_errors("find failed", collection=self.collection_name):
            raw = await connection.find_one(self.collection_name, query)
        if raw is None:
            raise NotFoundError("not found", context={"collection": self.collection_name})
        doc = self._to_doc(raw)
        self._log("doc.find_one", start_time, doc_id=str(doc.id))
        return doc

    async def find_one(self, filter: FilterLike) -> Doc[T]:
        """Alias of ``first()`` with a required filter argument."""
        return await self.first(filter)

    async def find_many(
        self,
        filter: FilterLike = None,
        skip: int = 0,
        limit: int = 0,
        sort: list[tuple[str, int]] | None = None,
    ) -> list[Doc[T]]:
        """
        Find envelopes.

        Args:
            filter: FilterBuilder, Predicate, raw query dict or None
            skip: Number of documents to skip
            limit: Maximum documents to return (0 for no limit)
            sort: List of (field, direction) tuples; defaults to
                ``created_at`` descending

        Raises:
            InvalidInputError: For negative skip/limit or unsupported filters
        """
        if skip < 0 or limit < 0:
            raise InvalidInputError(
                "invalid pagination", context={"skip": skip, "limit": limit}
            )
        start_time = time.time()
        query = to_query(filter)
        sort = sort or [(CREATED_AT_FIELD, DESCENDING)]
        connection = self.connection
        with store_errors("find failed", collection=self.collection_name):
            raws = await connection.find(
                self.collection_name, query, skip=skip, limit=limit, sort=sort
            )
        docs = [self._to_doc(raw) for raw in raws]
        self._log("doc.find_many", start_time, count=len(docs))
        return docs

    async def list(self, page_number: int, filter: FilterLike = None) -> list[Doc[T]]:
        """
        One page of envelopes, most recently created first.

        Pages are 1-indexed and hold ``DEFAULT_PAGE_SIZE`` (20) documents.

        Raises:
            InvalidInputError: If ``page_number`` is not a positive integer
        """
        if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
            raise InvalidInputError(
                "invalid page number", context={"page_number": page_number}
            )
        return await self.find_many(
            filter,
            skip=(page_number - 1) * DEFAULT_PAGE_SIZE,
            limit=DEFAULT_PAGE_SIZE,
        )

    async def count(self, filter: FilterLike = None) -> int:
        """Count documents matching a filter."""
        start_time = time.time()
        query = to_query(filter)
        connection = self.connection
        with store_errors("count failed", collection=self.collection_name):
            total = await connection.count(self.collection_name, query)
        self._log("doc.count", start_time, count=total)
        return total

    async def aggregate(self, pipeline: list[dict[str, Any]], **options: Any) -> list[dict[str, Any]]:
        """
        Run an aggregation pipeline and return the raw result documents.

        Stages are passed to the server untouched; remember that payload
        fields live under ``data.``.

        Args:
            pipeline: MongoDB aggregation pipeline
            **options: Aggregate options (allowDiskUse, maxTimeMS, ...)
        """
        if not isinstance(pipeline, list):
            raise InvalidInputError(
                "invalid pipeline", context={"pipeline_type": type(pipeline).__name__}
            )
        start_time = time.time()
        connection = self.connection
        with store_errors("aggregate failed", collection=self.collection_name):
            results = await connection.aggregate(self.collection_name, pipeline, **options)
        self._log("doc.aggregate", start_time, stages=len(pipeline), count=len(results))
        return results

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------

    async def insert_many(self, payloads: Iterable[T]) -> list[Doc[T]]:
        """
        Insert payloads in a single batch.

        Every envelope gets a fresh identifier and the same timestamp and is
        returned committed. An empty input is a no-op. A failed batch is
        reported as one error without telling which documents were written.

        Raises:
            InvalidInputError: If a payload is not of the payload type
            StoreOperationError: "insert failed"
        """
        timestamp = now_ms()
        docs = [self._new_doc(payload, timestamp) for payload in payloads]
        if not docs:
            return []

        start_time = time.time()
        connection = self.connection
        with store_errors("insert failed", collection=self.collection_name, count=len(docs)):
            await connection.insert_many(
                self.collection_name, [doc.to_document() for doc in docs]
            )
        for doc in docs:
            doc._mark_committed()
        self._log("doc.insert_many", start_time, count=len(docs))
        return docs

    async def update_many(self, filter: FilterLike, fields: dict[str, Any]) -> int:
        """
        Set payload fields on every matching document.

        Args:
            filter: Documents to update
            fields: Payload field names (relative to ``data``) and new values

        Returns:
            Number of modified documents
        """
        if not fields:
            raise InvalidInputError("no fields to update")
        query = to_query(filter)
        update = {f"{DATA_FIELD}.{key}": value for key, value in fields.items()}
        update[UPDATED_AT_FIELD] = now_ms()

        start_time = time.time()
        connection = self.connection
        with store_errors("update failed", collection=self.collection_name):
            modified = await connection.update_many(
                self.collection_name, query, {"$set": update}
            )
        self._log("doc.update_many", start_time, modified=modified)
        return modified

    async def delete_many(self, filter: FilterLike) -> int:
        """
        Delete documents matching a non-empty filter.

        Use ``delete_all()`` to empty the collection.

        Returns:
            Number of deleted documents
        """
        query = to_query(filter)
        if not query:
            raise InvalidInputError(
                "filter required", context={"collection": self.collection_name}
            )
        return await self._delete(query)

    async def delete_all(self, filter: FilterLike = None) -> int:
        """
        Delete every document matching ``filter``, or every document in the
        collection when no filter is given.

        Returns:
            Number of deleted documents
        """
        return await self._delete(to_query(filter))

    async def _delete(self, query: dict[str, Any]) -> int:
        start_time = time.time()
        connection = self.connection
        with store_errors("delete failed", collection=self.collection_name):
            deleted = await connection.delete_many(self.collection_name, query)
        self._log("doc.delete_many", start_time, deleted=deleted)
        return deleted
