"""Lookups and edits keyed by stable ID."""

import structlog

from mtp_catalog.errors import NotFound
from mtp_catalog.models.entry import ObjectEntry
from mtp_catalog.models.row import DocumentRow, Identifier
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.storage.row_store import RowStore
from mtp_catalog.sync.mapping_state import MappingStateTracker
from mtp_catalog.sync.values import child_document_values

log = structlog.stdlib.get_logger()


class IdentifierTranslator:
    """Resolves stable IDs to their tree position and device identifiers."""

    def __init__(self, store: RowStore, tracker: MappingStateTracker | None = None):
        """
        Initialize the translator.

        Args:
            store: Row store holding the catalog
            tracker: Tracker of active cycles; documents created under a parent
                whose child cycle is running are confirmed into that cycle
        """
        self._store: RowStore = store
        self._tracker: MappingStateTracker | None = tracker

    def _require_row(self, stable_id: int) -> DocumentRow:
        row = self._store.get_row(stable_id)
        if row is None:
            log.warning("document_not_found", stable_id=stable_id)
            raise NotFound(stable_id)
        return row

    def new_child_id(self, parent_stable_id: int) -> int:
        """
        Allocate a fresh stable ID for a document to be created under a parent.

        No row is created; pass the ID to ``put_new_document`` once the device
        has created the object.

        Raises:
            NotFound: If the parent has no row
        """
        self._require_row(parent_stable_id)
        stable_id = self._store.allocate_stable_id()
        log.debug("child_id_allocated", parent_stable_id=parent_stable_id, stable_id=stable_id)
        return stable_id

    def parent_of(self, stable_id: int) -> int | None:
        """Return the parent's stable ID, or None for a root.

        Raises:
            NotFound: If the stable ID has no row
        """
        return self._require_row(stable_id).parent_stable_id

    def identifier_of(self, stable_id: int) -> Identifier:
        row = self._require_row(stable_id)
        return Identifier(
            device_id=row.device_id,
            storage_id=row.storage_id,
            object_handle=row.object_handle,
            stable_id=row.stable_id,
        )

    def put_new_document(
        self, parent_stable_id: int, entry: ObjectEntry, stable_id: int | None = None
    ) -> int:
        """
        Insert a row for an object just created on the device.

        Args:
            parent_stable_id: Stable ID of the directory the object was created in
            entry: Object as reported by the device after creation
            stable_id: ID obtained from ``new_child_id``, or None to allocate one

        Returns:
            Stable ID of the new row

        Raises:
            NotFound: If the parent has no row
            InvalidArgument: If ``stable_id`` was not allocated or is already in use
        """
        with self._store.exclusive():
            with self._store.transaction():
                parent = self._require_row(parent_stable_id)
                values = child_document_values(parent.device_id, parent.stable_id, entry)
                stable_id = self._store.insert_row(values, stable_id=stable_id)

            confirmed = False
            if self._tracker is not None:
                confirmed = self._tracker.confirm_if_active(
                    SyncScope.children(parent_stable_id), [stable_id]
                )
        log.info(
            "document_created",
            parent_stable_id=parent_stable_id,
            stable_id=stable_id,
            confirmed_into_cycle=confirmed,
        )
        return stable_id

    def delete_document(self, stable_id: int) -> int:
        """Delete a document and everything beneath it.

        Returns:
            Number of rows deleted
        """
        deleted = self._store.delete_subtree(stable_id)
        log.info("document_deleted", stable_id=stable_id, rows=deleted)
        return deleted

    def remove_rows_for_device(self, device_id: int) -> int:
        """
        Delete every row of a device, roots and children at any depth.

        Callers must make sure no cycle is active for the device's scopes.

        Returns:
            Number of rows deleted
        """
        deleted = self._store.delete_device_rows(device_id)
        log.info("device_rows_removed", device_id=device_id, rows=deleted)
        return deleted
