"""Centralized provider module for the row store implementation.

Developers can modify get_row_store to swap the store without changing other code.

Default implementation:
- RowStore: SQLite (stdlib sqlite3, no external services required)
"""

import structlog

from mtp_catalog.errors import StoreTransactionFailed
from mtp_catalog.models.config import DatabaseConfig
from mtp_catalog.storage.row_store import RowStore

log = structlog.stdlib.get_logger()


def get_row_store(database_config: DatabaseConfig | None = None) -> RowStore:
    """Get the configured row store implementation.

    Args:
        database_config: Database settings; defaults to an in-memory store

    Returns:
        RowStore instance

    Raises:
        StoreTransactionFailed: If the store cannot be opened
    """
    config = database_config or DatabaseConfig()

    try:
        log.info("initializing_row_store", path=config.path, provider="SQLite")
        store = RowStore(db_path=config.path, timeout=config.timeout)
        log.info("row_store_initialized_successfully", path=config.path)
        return store

    except StoreTransactionFailed as e:
        log.error(
            "get_row_store_failed",
            path=config.path,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
