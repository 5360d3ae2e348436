"""Stable-ID document catalog for MTP devices."""

from mtp_catalog.catalog import DocumentCatalog
from mtp_catalog.errors import (
    CatalogError,
    CycleAlreadyActive,
    InvalidArgument,
    NoActiveCycle,
    NotFound,
    StoreTransactionFailed,
    UnknownMappingMode,
)
from mtp_catalog.sync.models import MappingMode

__version__ = "0.1.0"

__all__ = [
    "CatalogError",
    "CycleAlreadyActive",
    "DocumentCatalog",
    "InvalidArgument",
    "MappingMode",
    "NoActiveCycle",
    "NotFound",
    "StoreTransactionFailed",
    "UnknownMappingMode",
]
