"""Row storage for the MTP document catalog.

The SQLite row store lives in mtp_catalog.storage.row_store; use
mtp_catalog.providers.get_row_store to create one from configuration.
"""

__all__ = []
