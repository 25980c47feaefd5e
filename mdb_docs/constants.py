"""
Constants for MDB_DOCS.

This module contains the shared constants used across the codebase to avoid
magic numbers in the repository and connection layers.
"""

from typing import Final

# ============================================================================
# CONNECTION CONSTANTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

MIN_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 1000
"""Lowest accepted server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

APP_NAME: Final[str] = "MDB_DOCS"
"""Application name reported to the MongoDB server."""

# ============================================================================
# DOCUMENT ENVELOPE CONSTANTS
# ============================================================================

ID_FIELD: Final[str] = "_id"
"""Storage field holding the envelope identifier."""

CREATED_AT_FIELD: Final[str] = "created_at"
"""Envelope creation timestamp field (milliseconds since epoch)."""

UPDATED_AT_FIELD: Final[str] = "updated_at"
"""Envelope last-update timestamp field (milliseconds since epoch)."""

DATA_FIELD: Final[str] = "data"
"""Envelope field holding the payload."""

# ============================================================================
# PAGINATION CONSTANTS
# ============================================================================

DEFAULT_PAGE_SIZE: Final[int] = 20
"""Number of documents returned per page by DocRepository.list()."""

COLLECTION_SUFFIX: Final[str] = "s"
"""Suffix appended to derived collection names."""
