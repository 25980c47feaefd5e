"""
Collection name resolution.

Maps a payload type onto the MongoDB collection that stores it. Names are
derived from the type's short name by converting CamelCase to snake_case
and pluralizing:

    UserProfile -> user_profiles
    log         -> logs

Payload types may declare their own name through the ``collection_name()``
classmethod (see ``CollectionNamed``).
"""

from typing import Protocol, runtime_checkable

from .constants import COLLECTION_SUFFIX


@runtime_checkable
class CollectionNamed(Protocol):
    """Protocol for payload types that declare their target collection."""

    @classmethod
    def collection_name(cls) -> str: ...


def _short_name(type_name: str) -> str:
    for separator in ("::", "."):
        if separator in type_name:
            type_name = type_name.rsplit(separator, 1)[1]
    return type_name


def resolve_collection_name(type_name: str) -> str:
    """
    Derive a collection name from a type identifier.

    Any namespace qualification ("app.models.UserProfile") is dropped, an
    underscore is inserted before every uppercase letter except the first
    character, the result is lowercased and a plural suffix appended.

    Args:
        type_name: Type identifier, e.g. ``cls.__name__``

    Returns:
        Collection name
    """
    short = _short_name(type_name)
    chars = []
    for i, ch in enumerate(short):
        if ch.isupper():
            if i > 0:
                chars.append("_")
            chars.append(ch.lower())
        else:
            chars.append(ch)
    return "".join(chars) + COLLECTION_SUFFIX


def collection_for(payload_type: type) -> str:
    """
    Get the collection name for a payload type.

    Raises:
        TypeError: If the type does not implement ``collection_name()``
    """
    if isinstance(payload_type, type) and isinstance(payload_type, CollectionNamed):
        return payload_type.collection_name()
    raise TypeError(
        f"{payload_type!r} does not declare collection_name(); "
        "pass collection_name explicitly"
    )
