"""Document catalog exposing stable IDs for the objects of connected MTP devices."""

from typing import Sequence

import structlog

from mtp_catalog.models.config import DatabaseConfig
from mtp_catalog.models.entry import ObjectEntry, RootEntry
from mtp_catalog.models.row import DocumentRow, Identifier, RootExtra
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.providers import get_row_store
from mtp_catalog.storage.row_store import RowStore
from mtp_catalog.sync.identifier_translator import IdentifierTranslator
from mtp_catalog.sync.mapping_state import MappingStateTracker
from mtp_catalog.sync.models import MappingMode
from mtp_catalog.sync.reconciler import ReconciliationEngine

log = structlog.stdlib.get_logger()


class DocumentCatalog:
    """Persistent catalog of device documents addressed by stable IDs.

    MTP object handles are only valid for one session, so the catalog assigns
    its own IDs and remaps fresh handles onto them on every listing. To update
    the roots of a device (children work the same way)::

        catalog.begin_root_cycle(device_id)
        catalog.reconcile_roots(device_id, roots)     # possibly in chunks
        catalog.close_root_cycle(device_id)

    All entries must be fed before closing; rows missing from the listing are
    deleted. After ``clear_all_mappings`` the next cycle of each scope matches
    rows by display name instead of device identifier.
    """

    def __init__(
        self,
        store: RowStore | None = None,
        database_config: DatabaseConfig | None = None,
    ):
        """
        Initialize the catalog.

        Args:
            store: Optional row store instance (uses provider module if None)
            database_config: Optional database config used when store is None
        """
        if store is not None:
            self._store: RowStore = store
        else:
            self._store = get_row_store(database_config)

        self._tracker: MappingStateTracker = MappingStateTracker(self._store)
        self._engine: ReconciliationEngine = ReconciliationEngine(self._store, self._tracker)
        self._translator: IdentifierTranslator = IdentifierTranslator(self._store, self._tracker)

        log.info("document_catalog_initialized")

    @property
    def store(self) -> RowStore:
        return self._store

    @property
    def tracker(self) -> MappingStateTracker:
        return self._tracker

    def close(self) -> None:
        self._store.close()

    # Synchronization cycles

    def begin_root_cycle(self, device_id: int) -> MappingMode:
        return self._engine.start_cycle(SyncScope.roots(device_id))

    def begin_child_cycle(self, parent_id: int) -> MappingMode:
        return self._engine.start_cycle(SyncScope.children(parent_id))

    def reconcile_roots(self, device_id: int, entries: Sequence[RootEntry]) -> bool:
        """Put a batch of roots for the device; True if any row was added or changed."""
        return self._engine.reconcile_batch(SyncScope.roots(device_id), entries)

    def reconcile_children(self, parent_id: int, entries: Sequence[ObjectEntry]) -> bool:
        """Put a batch of children of the parent; True if any row was added or changed."""
        return self._engine.reconcile_batch(SyncScope.children(parent_id), entries)

    def close_root_cycle(self, device_id: int) -> bool:
        """Finish the device's root cycle; True if any root was removed."""
        return self._engine.close_cycle(SyncScope.roots(device_id))

    def close_child_cycle(self, parent_id: int) -> bool:
        """Finish the parent's child cycle; True if any child was removed."""
        return self._engine.close_cycle(SyncScope.children(parent_id))

    def clear_all_mappings(self) -> None:
        self._tracker.clear_all()

    # Identifier translation

    def remove_device(self, device_id: int) -> int:
        return self._translator.remove_rows_for_device(device_id)

    def new_child_id(self, parent_id: int) -> int:
        return self._translator.new_child_id(parent_id)

    def parent_of(self, stable_id: int) -> int | None:
        return self._translator.parent_of(stable_id)

    def identifier_of(self, stable_id: int) -> Identifier:
        return self._translator.identifier_of(stable_id)

    def put_new_document(
        self, parent_id: int, entry: ObjectEntry, stable_id: int | None = None
    ) -> int:
        return self._translator.put_new_document(parent_id, entry, stable_id=stable_id)

    def delete_document(self, stable_id: int) -> int:
        return self._translator.delete_document(stable_id)

    # Lookups

    def get_document(self, stable_id: int) -> DocumentRow | None:
        return self._store.get_row(stable_id)

    def list_roots(self, device_id: int) -> list[DocumentRow]:
        return self._store.select_rows(SyncScope.roots(device_id))

    def list_children(self, parent_id: int) -> list[DocumentRow]:
        return self._store.select_rows(SyncScope.children(parent_id))

    def get_root_extra(self, stable_id: int) -> RootExtra | None:
        return self._store.get_root_extra(stable_id)
