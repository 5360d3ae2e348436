"""Synchronization components for remapping device identifiers to stable IDs."""

from mtp_catalog.sync.identifier_translator import IdentifierTranslator
from mtp_catalog.sync.mapping_state import MappingStateTracker
from mtp_catalog.sync.models import ActiveCycle, MappingMode
from mtp_catalog.sync.reconciler import ReconciliationEngine

__all__ = [
    "ActiveCycle",
    "IdentifierTranslator",
    "MappingMode",
    "MappingStateTracker",
    "ReconciliationEngine",
]
