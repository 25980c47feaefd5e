"""
Filter construction for payload queries.

Predicates compare a payload field (stored under ``data.<field>``) against
a value and are combined by conjunction only.

Usage:
    from mdb_docs.filters import Contains, Equals, FilterBuilder

    query = (
        FilterBuilder()
        .push(Equals("who", "alice"))
        .push(Contains("title", "^Draft"))
        .build()
    )
    # {"$and": [{"data.who": "alice"}, {"data.title": {"$regex": "^Draft"}}]}
"""

from abc import ABC, abstractmethod
from typing import Any, Union

from .constants import DATA_FIELD
from .exceptions import InvalidInputError


class Predicate(ABC):
    """
    A single comparison against a payload field.

    Subclass and implement ``to_query()`` to add new comparator kinds.
    """

    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value

    @property
    def path(self) -> str:
        """Dotted storage path of the compared field."""
        return f"{DATA_FIELD}.{self.field}"

    @abstractmethod
    def to_query(self) -> dict[str, Any]:
        """Render this predicate as a MongoDB query fragment."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field!r}, {self.value!r})"


class Equals(Predicate):
    """Exact match on ``data.<field>``."""

    def to_query(self) -> dict[str, Any]:
        return {self.path: self.value}


class Contains(Predicate):
    """
    Pattern match on ``data.<field>`` using ``$regex``.

    The pattern is passed through unescaped; use ``re.escape`` on user
    input when a literal substring match is wanted.
    """

    def to_query(self) -> dict[str, Any]:
        return {self.path: {"$regex": self.value}}


class FilterBuilder:
    """Ordered list of predicates rendered as a single ``$and`` query."""

    def __init__(self, *predicates: Predicate) -> None:
        self._predicates: list[Predicate] = []
        for predicate in predicates:
            self.push(predicate)

    def push(self, predicate: Predicate) -> "FilterBuilder":
        """Append a predicate and return the builder for chaining."""
        if not isinstance(predicate, Predicate):
            raise InvalidInputError(
                "invalid filter", context={"predicate": type(predicate).__name__}
            )
        self._predicates.append(predicate)
        return self

    def build(self) -> dict[str, Any]:
        """
        Render all predicates.

        Returns:
            ``{}`` (match everything) when empty, the predicate's own query
            when there is one, ``{"$and": [...]}`` otherwise
        """
        if not self._predicates:
            return {}
        if len(self._predicates) == 1:
            return self._predicates[0].to_query()
        return {"$and": [p.to_query() for p in self._predicates]}

    def __len__(self) -> int:
        return len(self._predicates)

    def __iter__(self):
        return iter(self._predicates)

    def __repr__(self) -> str:
        return f"FilterBuilder({', '.join(repr(p) for p in self._predicates)})"


FilterLike = Union[FilterBuilder, Predicate, dict, None]


def to_query(filter: FilterLike) -> dict[str, Any]:
    """
    Normalize any accepted filter form into a MongoDB query dict.

    Raw dicts are passed through untouched.

    Raises:
        InvalidInputError: For unsupported filter types
    """
    if filter is None:
        return {}
    if isinstance(filter, FilterBuilder):
        return filter.build()
    if isinstance(filter, Predicate):
        return filter.to_query()
    if isinstance(filter, dict):
        return filter
    raise InvalidInputError("invalid filter", context={"filter_type": type(filter).__name__})
