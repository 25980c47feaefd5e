"""
Document envelope.

A ``Doc`` wraps a payload with an identifier and millisecond timestamps.
Only ``_id``, ``created_at``, ``updated_at`` and ``data`` are ever written;
the envelope's state and collection binding live on the instance only.
"""

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from bson import ObjectId
from pydantic import BaseModel

from ..constants import CREATED_AT_FIELD, DATA_FIELD, ID_FIELD, UPDATED_AT_FIELD
from .base import DocState

if TYPE_CHECKING:
    from .repository import DocRepository

T = TypeVar("T", bound=BaseModel)


class Doc(Generic[T]):
    """
    Envelope around a payload of type T.

    Instances are produced by a DocRepository (``create``, ``load``,
    ``find_many``, ``insert_many``...) and are bound to its collection.

    Example:
        doc = users.create(UserProfile(who="alice"))
        await doc.save()          # insert
        doc.data.age = 31
        await doc.save()          # $set data + updated_at
        await doc.delete()
    """

    def __init__(
        self,
        data: T,
        repository: "DocRepository[T]",
        id: ObjectId,
        created_at: int,
        updated_at: int,
        state: DocState = DocState.UNCOMMITTED,
    ) -> None:
        self.data = data
        self._repository = repository
        self._id = id
        self._created_at = created_at
        self._updated_at = updated_at
        self._state = state

    @property
    def id(self) -> ObjectId:
        return self._id

    @property
    def created_at(self) -> int:
        return self._created_at

    @property
    def updated_at(self) -> int:
        return self._updated_at

    @property
    def state(self) -> DocState:
        return self._state

    @property
    def is_committed(self) -> bool:
        return self._state is DocState.COMMITTED

    @property
    def collection(self) -> str:
        """Name of the collection this envelope is bound to."""
        return self._repository.collection_name

    @property
    def repository(self) -> "DocRepository[T]":
        return self._repository

    def dump_data(self) -> dict[str, Any]:
        """Payload as a BSON-ready dict."""
        return self.data.model_dump(mode="python", by_alias=True)

    def to_document(self) -> dict[str, Any]:
        """Storage representation."""
        return {
            ID_FIELD: self._id,
            CREATED_AT_FIELD: self._created_at,
            UPDATED_AT_FIELD: self._updated_at,
            DATA_FIELD: self.dump_data(),
        }

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly wire representation with a string ``id``."""
        return {
            "id": str(self._id),
            CREATED_AT_FIELD: self._created_at,
            UPDATED_AT_FIELD: self._updated_at,
            DATA_FIELD: self.data.model_dump(mode="json", by_alias=True),
        }

    async def save(self) -> None:
        """Insert when uncommitted, otherwise update ``data`` and ``updated_at``."""
        await self._repository.save(self)

    async def delete(self) -> bool:
        """Delete the stored document. Returns True if one was removed."""
        return await self._repository.delete(self)

    async def reload(self) -> None:
        """Replace ``data`` and ``updated_at`` with the stored values."""
        await self._repository.reload(self)

    def _mark_committed(self) -> None:
        self._state = DocState.COMMITTED

    def _touch(self, updated_at: int) -> None:
        self._updated_at = updated_at

    def __repr__(self) -> str:
        return (
            f"Doc(id={self._id}, collection={self.collection!r}, "
            f"state={self._state.value}, data={self.data!r})"
        )
