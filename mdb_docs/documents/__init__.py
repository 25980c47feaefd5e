"""
Document envelopes and the generic repository that persists them.
"""

from .base import DocState, Payload, now_ms
from .doc import Doc
from .repository import DocRepository

__all__ = [
    "Doc",
    "DocRepository",
    "DocState",
    "Payload",
    "now_ms",
]
