"""Tracking of in-flight synchronization cycles and their mapping modes."""

import threading
from typing import Iterable

import structlog

from mtp_catalog.errors import CycleAlreadyActive, NoActiveCycle
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.storage.row_store import RowStore
from mtp_catalog.sync.models import ActiveCycle, MappingMode

log = structlog.stdlib.get_logger()


class MappingStateTracker:
    """Process-wide map from scope to the mapping mode of its active cycle.

    The map starts empty, gains an entry on ``begin``, loses it on ``end`` and
    is wiped by ``clear_all``. A single lock guards it; the lock is never held
    while the store is queried.
    """

    def __init__(self, store: RowStore):
        """
        Initialize the tracker.

        Args:
            store: Row store queried to pick a cycle's mapping mode
        """
        self._store: RowStore = store
        self._lock = threading.Lock()
        self._cycles: dict[SyncScope, ActiveCycle] = {}

    def begin(self, scope: SyncScope) -> MappingMode:
        """
        Start tracking a cycle for ``scope``.

        Rows still carrying a device identifier can be matched by it; scopes
        without any (empty, or cleared by ``clear_all``) fall back to names.

        Args:
            scope: Scope whose cycle starts

        Returns:
            The mapping mode fixed for the cycle

        Raises:
            CycleAlreadyActive: If the scope already has a cycle in flight
        """
        with self._lock:
            if scope in self._cycles:
                raise CycleAlreadyActive(scope.key)

        if self._store.has_device_identifiers(scope):
            mode = MappingMode.MATCH_BY_IDENTIFIER
        else:
            mode = MappingMode.MATCH_BY_NAME

        with self._lock:
            if scope in self._cycles:
                raise CycleAlreadyActive(scope.key)
            self._cycles[scope] = ActiveCycle(scope=scope, mode=mode)

        log.info("mapping_cycle_started", scope=scope.key, mode=mode.value)
        return mode

    def mode_of(self, scope: SyncScope) -> MappingMode:
        return self.cycle_of(scope).mode

    def cycle_of(self, scope: SyncScope) -> ActiveCycle:
        """Return a copy of the scope's active cycle.

        Raises:
            NoActiveCycle: If the scope has no cycle in flight
        """
        with self._lock:
            cycle = self._cycles.get(scope)
            if cycle is None:
                raise NoActiveCycle(scope.key)
            return cycle.snapshot()

    def is_active(self, scope: SyncScope) -> bool:
        with self._lock:
            return scope in self._cycles

    def active_scopes(self) -> list[SyncScope]:
        with self._lock:
            return list(self._cycles)

    def confirm(self, scope: SyncScope, stable_ids: Iterable[int]) -> None:
        """Record rows as confirmed by the scope's current cycle."""
        with self._lock:
            cycle = self._cycles.get(scope)
            if cycle is None:
                raise NoActiveCycle(scope.key)
            cycle.confirmed.update(stable_ids)

    def confirm_if_active(self, scope: SyncScope, stable_ids: Iterable[int]) -> bool:
        """Confirm rows into the scope's cycle if one is running; False otherwise."""
        with self._lock:
            cycle = self._cycles.get(scope)
            if cycle is None:
                return False
            cycle.confirmed.update(stable_ids)
            return True

    def end(self, scope: SyncScope) -> ActiveCycle:
        """Stop tracking the scope's cycle and return its final state.

        Raises:
            NoActiveCycle: If the scope has no cycle in flight
        """
        with self._lock:
            cycle = self._cycles.pop(scope, None)
        if cycle is None:
            raise NoActiveCycle(scope.key)
        log.info("mapping_cycle_ended", scope=scope.key, confirmed=len(cycle.confirmed))
        return cycle

    def clear_all(self) -> None:
        """Forget every active cycle and every device identifier in the store.

        Used when the device session's identifier space is no longer valid,
        e.g. after a reconnect.
        """
        self._store.null_all_device_identifiers()
        with self._lock:
            dropped = len(self._cycles)
            self._cycles.clear()
        log.info("mapping_state_cleared", dropped_cycles=dropped)
