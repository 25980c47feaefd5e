"""
Database layer.

Provides the MongoDB connection handle and its process-wide lifecycle.
"""

from .connection import (
    MongoConnection,
    close_connection,
    connect,
    connect_from_config,
    instance,
)

__all__ = [
    "MongoConnection",
    "connect",
    "connect_from_config",
    "instance",
    "close_connection",
]
