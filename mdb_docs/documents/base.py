"""
Payload base model and envelope state.
"""

import enum
import time
from typing import ClassVar, Optional

from pydantic import BaseModel

from ..naming import resolve_collection_name


class Payload(BaseModel):
    """
    Base class for payload models stored inside a Doc envelope.

    The target collection is derived from the class name unless
    ``__collection__`` is set.

    Example:
        class UserProfile(Payload):
            who: str
            age: int = 0

        UserProfile.collection_name()  # "user_profiles"

        class AuditEntry(Payload):
            __collection__ = "audit"
    """

    __collection__: ClassVar[Optional[str]] = None

    @classmethod
    def collection_name(cls) -> str:
        return cls.__collection__ or resolve_collection_name(cls.__name__)


class DocState(str, enum.Enum):
    """Whether an envelope has been persisted yet. Never stored."""

    UNCOMMITTED = "uncommitted"
    COMMITTED = "committed"


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000
