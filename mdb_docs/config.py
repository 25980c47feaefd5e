"""
Configuration management for MDB_DOCS.

Connection settings are read from the environment unless passed directly.

Example:
    # Using environment variables
    config = DocsConfig()
    await connect_from_config(config)

    # Or using direct parameters
    await connect("mongodb://localhost:27017", "my_db")
"""

import os
from typing import Any

from .constants import (
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    MIN_SERVER_SELECTION_TIMEOUT_MS,
)
from .exceptions import ConfigurationError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer", config_key=name, config_value=raw
        ) from e


class DocsConfig:
    """
    MongoDB connection configuration.

    Attributes:
        mongo_uri: MongoDB connection URI (MONGO_URI)
        db_name: Database name (DB_NAME)
        max_pool_size: Maximum connection pool size (MONGO_MAX_POOL_SIZE, default 50)
        min_pool_size: Minimum connection pool size (MONGO_MIN_POOL_SIZE, default 10)
        server_selection_timeout_ms: Server selection timeout
            (MONGO_SERVER_SELECTION_TIMEOUT_MS, default 5000)
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        max_pool_size: int | None = None,
        min_pool_size: int | None = None,
        server_selection_timeout_ms: int | None = None,
    ):
        self.mongo_uri = mongo_uri if mongo_uri is not None else os.getenv("MONGO_URI", "")
        self.db_name = db_name if db_name is not None else os.getenv("DB_NAME", "")
        self.max_pool_size = (
            max_pool_size
            if max_pool_size is not None
            else _env_int("MONGO_MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE)
        )
        self.min_pool_size = (
            min_pool_size
            if min_pool_size is not None
            else _env_int("MONGO_MIN_POOL_SIZE", DEFAULT_MIN_POOL_SIZE)
        )
        self.server_selection_timeout_ms = (
            server_selection_timeout_ms
            if server_selection_timeout_ms is not None
            else _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", DEFAULT_SERVER_SELECTION_TIMEOUT_MS)
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGO_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if not self.db_name:
            raise ConfigurationError(
                "db_name is required (set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size < 1:
            raise ConfigurationError(
                f"min_pool_size must be >= 1, got {self.min_pool_size}",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.server_selection_timeout_ms < MIN_SERVER_SELECTION_TIMEOUT_MS:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= {MIN_SERVER_SELECTION_TIMEOUT_MS}, "
                f"got {self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )

    def connection_options(self) -> dict[str, Any]:
        """Keyword arguments for ``connect()``."""
        return {
            "mongo_uri": self.mongo_uri,
            "db_name": self.db_name,
            "max_pool_size": self.max_pool_size,
            "min_pool_size": self.min_pool_size,
            "server_selection_timeout_ms": self.server_selection_timeout_ms,
        }
