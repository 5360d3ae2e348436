"""Data models for the MTP document catalog."""

from mtp_catalog.models.config import AppConfig, DatabaseConfig, LoggingConfig, SyncConfig
from mtp_catalog.models.entry import FORMAT_ASSOCIATION, ObjectEntry, RootEntry
from mtp_catalog.models.row import DocumentRow, Identifier, RootExtra, UpsertResult
from mtp_catalog.models.scope import ScopeKind, SyncScope

__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "DocumentRow",
    "FORMAT_ASSOCIATION",
    "Identifier",
    "LoggingConfig",
    "ObjectEntry",
    "RootEntry",
    "RootExtra",
    "ScopeKind",
    "SyncConfig",
    "SyncScope",
    "UpsertResult",
]
