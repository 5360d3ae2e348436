"""Reconciliation of device listings against persisted catalog rows."""

from typing import Any, Sequence

import structlog

from mtp_catalog.errors import InvalidArgument, NotFound, StoreTransactionFailed
from mtp_catalog.models.entry import ObjectEntry, RootEntry
from mtp_catalog.models.row import UpsertResult
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.storage.constants import COLUMN_DISPLAY_NAME
from mtp_catalog.storage.row_store import RowStore
from mtp_catalog.sync.mapping_state import MappingStateTracker
from mtp_catalog.sync.models import MappingMode
from mtp_catalog.sync.values import child_document_values, root_document_values, root_extra_for

log = structlog.stdlib.get_logger()


class ReconciliationEngine:
    """Upserts device entries into a scope and prunes rows the device no longer reports.

    A cycle for a scope is::

        engine.start_cycle(scope)
        engine.reconcile_batch(scope, entries)   # any number of times
        engine.close_cycle(scope)

    Every entry of the scope must be fed before the cycle is closed; rows not
    confirmed by any batch are regarded as deleted on the device.
    """

    def __init__(self, store: RowStore, tracker: MappingStateTracker):
        """
        Initialize the engine.

        Args:
            store: Row store holding the catalog
            tracker: Tracker of active cycles shared with the catalog
        """
        self._store: RowStore = store
        self._tracker: MappingStateTracker = tracker

    def start_cycle(self, scope: SyncScope) -> MappingMode:
        """
        Begin a cycle and mark the scope's rows as unconfirmed.

        Raises:
            CycleAlreadyActive: If the scope already has a cycle in flight
            StoreTransactionFailed: If the rows cannot be marked; no cycle is left behind
        """
        with self._store.exclusive():
            mode = self._tracker.begin(scope)
            try:
                with self._store.transaction():
                    invalidated = self._store.mark_scope_invalidated(scope)
            except StoreTransactionFailed:
                self._tracker.end(scope)
                raise

        log.info(
            "reconciliation_cycle_started",
            scope=scope.key,
            mode=mode.value,
            existing_rows=invalidated,
        )
        return mode

    def reconcile_batch(self, scope: SyncScope, entries: Sequence[RootEntry | ObjectEntry]) -> bool:
        """
        Upsert one batch of entries into the scope in a single transaction.

        For each entry, in order: a row already confirmed this cycle with the
        same device identifier is updated (an entry without an identifier is
        instead looked up by name among rows confirmed by earlier batches);
        otherwise the first unconfirmed row (lowest stable ID) whose match
        column equals the entry's is updated; otherwise a new row is inserted.

        Args:
            scope: Scope with an active cycle
            entries: Entries reported by the device for the scope

        Returns:
            True if any row was inserted or had a column changed

        Raises:
            NoActiveCycle: If no cycle was started for the scope
            InvalidArgument: If an entry does not belong to the scope
            NotFound: If the parent of a child scope has no row
            StoreTransactionFailed: If the store fails; nothing is applied
        """
        identifier_column = scope.identifier_column
        entries = list(entries)
        touched: list[int] = []
        inserted = 0
        updated = 0

        # Batches of one scope are serialized so each sees the confirmations of the last.
        with self._store.exclusive():
            with self._store.transaction():
                cycle = self._tracker.cycle_of(scope)
                match_column = cycle.match_column
                confirmed: set[int] = set(cycle.confirmed)
                earlier: set[int] = set(cycle.confirmed)

                values_list = self._derive_values(scope, entries)
                for entry, values in zip(entries, values_list):
                    result = self._upsert(
                        scope, match_column, identifier_column, values, confirmed, earlier
                    )
                    if isinstance(entry, RootEntry):
                        self._store.put_root_extra(root_extra_for(result.stable_id, entry))
                    confirmed.add(result.stable_id)
                    earlier.discard(result.stable_id)
                    touched.append(result.stable_id)
                    if result.was_insert:
                        inserted += 1
                    elif result.was_changed:
                        updated += 1

            self._tracker.confirm(scope, touched)

        log.info(
            "batch_reconciled",
            scope=scope.key,
            mode=cycle.mode.value,
            entries=len(entries),
            inserted=inserted,
            updated=updated,
        )
        return inserted > 0 or updated > 0

    def close_cycle(self, scope: SyncScope) -> bool:
        """
        Delete rows not confirmed during the cycle and end it.

        The cycle record is only removed once the delete has committed, so a
        failed close can be retried.

        Returns:
            True if any row of the scope was deleted

        Raises:
            NoActiveCycle: If no cycle was started for the scope
            StoreTransactionFailed: If the store fails; nothing is deleted
        """
        with self._store.exclusive():
            with self._store.transaction():
                cycle = self._tracker.cycle_of(scope)
                match_column = cycle.match_column
                deleted = self._store.delete_rows_not_confirmed(scope, cycle.confirmed)

            self._tracker.end(scope)

        log.info(
            "reconciliation_cycle_closed",
            scope=scope.key,
            match_column=match_column,
            confirmed=len(cycle.confirmed),
            deleted=deleted,
        )
        return deleted > 0

    def _upsert(
        self,
        scope: SyncScope,
        match_column: str,
        identifier_column: str,
        values: dict[str, Any],
        confirmed: set[int],
        earlier: set[int],
    ) -> UpsertResult:
        # An entry fed twice in one cycle finds its own row by the fresh identifier,
        # or by name among rows of earlier batches when it has none.
        identifier = values[identifier_column]
        if identifier is not None:
            refed = self._store.find_row(scope, identifier_column, identifier, include_ids=confirmed)
        else:
            refed = self._store.find_row(
                scope, COLUMN_DISPLAY_NAME, values[COLUMN_DISPLAY_NAME], include_ids=earlier
            )
        if refed is not None:
            changed = self._store.update_row(refed, values)
            return UpsertResult(refed.stable_id, was_insert=False, was_changed=changed)

        return self._store.upsert_row(
            scope, match_column, values[match_column], values, exclude_ids=confirmed
        )

    def _derive_values(
        self, scope: SyncScope, entries: list[RootEntry | ObjectEntry]
    ) -> list[dict[str, Any]]:
        if scope.is_roots:
            values_list = []
            for entry in entries:
                if not isinstance(entry, RootEntry):
                    raise InvalidArgument(f"{scope.key} only accepts root entries")
                if entry.device_id != scope.device_id:
                    log.error(
                        "root_entry_device_mismatch",
                        scope=scope.key,
                        entry_device_id=entry.device_id,
                    )
                    raise InvalidArgument(
                        f"Root entry for device {entry.device_id} fed into {scope.key}"
                    )
                values_list.append(root_document_values(entry))
            return values_list

        parent = self._store.get_row(scope.parent_id)
        if parent is None:
            log.error("parent_document_not_found", scope=scope.key)
            raise NotFound(scope.parent_id, f"Parent document {scope.parent_id} does not exist")

        values_list = []
        for entry in entries:
            if not isinstance(entry, ObjectEntry):
                raise InvalidArgument(f"{scope.key} only accepts object entries")
            values_list.append(child_document_values(parent.device_id, parent.stable_id, entry))
        return values_list
