"""
Pytest configuration and shared fixtures for MDB_DOCS tests.

This module provides:
- Mock motor client fixtures
- An in-memory connection handle for repository tests
- Testcontainers fixtures for integration tests
"""

import copy
import re
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from mdb_docs.database import connection as connection_module
from mdb_docs.database.connection import MongoConnection
from mdb_docs.observability import metrics as metrics_module

# ============================================================================
# IN-MEMORY CONNECTION
# ============================================================================

_MISSING = object()


def _get_path(document: Dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Subset of MongoDB matching: $and, equality on dotted paths, $regex."""
    for key, condition in query.items():
        if key == "$and":
            if not all(_matches(document, sub) for sub in condition):
                return False
            continue
        value = _get_path(document, key)
        if isinstance(condition, dict) and "$regex" in condition:
            if not isinstance(value, str) or re.search(condition["$regex"], value) is None:
                return False
        elif value is _MISSING or value != condition:
            return False
    return True


class InMemoryConnection(MongoConnection):
    """
    MongoConnection storing documents in dictionaries.

    Implements the primitives used by DocRepository without a server.
    """

    def __init__(self) -> None:
        super().__init__(mongo_uri="memory://", db_name="test_db")
        self.collections: Dict[str, List[Dict[str, Any]]] = {}

    @property
    def is_open(self) -> bool:
        return True

    def _collection(self, name: str) -> List[Dict[str, Any]]:
        return self.collections.setdefault(name, [])

    async def insert_one(self, collection_name, document):
        docs = self._collection(collection_name)
        if any(d["_id"] == document["_id"] for d in docs):
            raise DuplicateKeyError("E11000 duplicate key error")
        docs.append(copy.deepcopy(document))
        return document["_id"]

    async def insert_many(self, collection_name, documents):
        return [await self.insert_one(collection_name, d) for d in documents]

    async def find_one(self, collection_name, filter):
        for d in self._collection(collection_name):
            if _matches(d, filter):
                return copy.deepcopy(d)
        return None

    async def find(self, collection_name, filter, skip=0, limit=0, sort=None):
        results = [copy.deepcopy(d) for d in self._collection(collection_name) if _matches(d, filter)]
        for field, direction in reversed(sort or []):
            results.sort(key=lambda d: _get_path(d, field), reverse=direction < 0)
        results = results[skip:]
        if limit:
            results = results[:limit]
        return results

    async def delete_one(self, collection_name, filter):
        docs = self._collection(collection_name)
        for i, d in enumerate(docs):
            if _matches(d, filter):
                del docs[i]
                return 1
        return 0

    async def delete_many(self, collection_name, filter):
        docs = self._collection(collection_name)
        kept = [d for d in docs if not _matches(d, filter)]
        deleted = len(docs) - len(kept)
        self.collections[collection_name] = kept
        return deleted

    async def update_one(self, collection_name, filter, update):
        for d in self._collection(collection_name):
            if _matches(d, filter):
                for path, value in update["$set"].items():
                    _set_path(d, path, copy.deepcopy(value))
                return 1
        return 0

    async def update_many(self, collection_name, filter, update):
        modified = 0
        for d in self._collection(collection_name):
            if _matches(d, filter):
                for path, value in update["$set"].items():
                    _set_path(d, path, copy.deepcopy(value))
                modified += 1
        return modified

    async def count(self, collection_name, filter):
        return sum(1 for d in self._collection(collection_name) if _matches(d, filter))

    async def aggregate(self, collection_name, pipeline, **options):
        results = [copy.deepcopy(d) for d in self._collection(collection_name)]
        for stage in pipeline:
            if "$match" in stage:
                results = [d for d in results if _matches(d, stage["$match"])]
            elif "$count" in stage:
                results = [{stage["$count"]: len(results)}]
            else:
                raise NotImplementedError(f"stage not supported in memory: {stage}")
        return results


@pytest.fixture
def memory_connection() -> InMemoryConnection:
    return InMemoryConnection()


# ============================================================================
# MOCK MOTOR FIXTURES
# ============================================================================


@pytest.fixture
def mock_mongo_collection() -> MagicMock:
    """Create a mock motor collection."""
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id1", "id2"]))
    collection.find_one = AsyncMock(return_value=None)
    # find/aggregate return cursors synchronously
    collection.find = MagicMock(return_value=MagicMock(to_list=AsyncMock(return_value=[])))
    collection.aggregate = MagicMock(return_value=MagicMock(to_list=AsyncMock(return_value=[])))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=2))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_mongo_database(mock_mongo_collection) -> MagicMock:
    """Create a mock motor database that hands out ``mock_mongo_collection``."""
    db = MagicMock()
    db.name = "test_db"
    db.client = MagicMock()
    db.client.admin.command = AsyncMock(return_value={"ok": 1})
    db.__getitem__.return_value = mock_mongo_collection
    return db


@pytest.fixture
def mock_mongo_client() -> MagicMock:
    """Create a mock motor client whose ping succeeds."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    return client


# ============================================================================
# GLOBAL STATE
# ============================================================================


@pytest.fixture(autouse=True)
def reset_process_handle(monkeypatch):
    """Start every test without a process-wide connection or metrics."""
    monkeypatch.setattr(connection_module, "_handle", None)
    monkeypatch.setattr(connection_module, "_pending", None)
    monkeypatch.setattr(metrics_module, "_metrics_collector", metrics_module.MetricsCollector())
    yield


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables before each test."""
    for var in [
        "MONGO_URI",
        "DB_NAME",
        "MONGO_MAX_POOL_SIZE",
        "MONGO_MIN_POOL_SIZE",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    ]:
        monkeypatch.delenv(var, raising=False)
    yield


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB container for integration tests.

    Session-scoped: the container starts once and is reused.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    try:
        container = MongoDbContainer(image="mongo:7")
        container.start()
    except Exception as e:  # docker unavailable
        pytest.skip(f"MongoDB container could not be started: {e}")

    yield container
    container.stop()


@pytest.fixture
def mongodb_connection_string(mongodb_container) -> str:
    return mongodb_container.get_connection_url()


@pytest.fixture
async def real_connection(mongodb_connection_string, request) -> Optional[MongoConnection]:
    """
    Open a MongoConnection against the test container.

    Uses a unique database per test and drops it afterwards.
    """
    db_name = re.sub(r"[^A-Za-z0-9_]", "_", f"test_db_{request.node.name}")[:60]
    handle = MongoConnection(mongodb_connection_string, db_name, max_pool_size=5, min_pool_size=1)
    await handle.open()

    yield handle

    await handle.database.client.drop_database(db_name)
    handle.close()
