"""SQLite-backed row store for catalog documents and roots."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import structlog

from mtp_catalog.errors import InvalidArgument, StoreTransactionFailed
from mtp_catalog.models.row import DocumentRow, RootExtra, UpsertResult
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.storage.constants import (
    COLUMN_DEVICE_ID,
    COLUMN_OBJECT_HANDLE,
    COLUMN_ROW_STATE,
    COLUMN_STABLE_ID,
    COLUMN_STORAGE_ID,
    MATCHABLE_COLUMNS,
    ROW_STATE_INVALIDATED,
    ROW_STATE_VALID,
    TABLE_DOCUMENTS,
    TABLE_ID_SEQUENCE,
    TABLE_ROOT_EXTRAS,
    is_document_column,
    mutable_values,
)

log = structlog.stdlib.get_logger()

_SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_DOCUMENTS} (
    stable_id INTEGER PRIMARY KEY,
    device_id INTEGER NOT NULL,
    storage_id INTEGER,
    object_handle INTEGER,
    parent_stable_id INTEGER,
    row_state INTEGER NOT NULL,
    mime_type TEXT,
    display_name TEXT,
    summary TEXT,
    last_modified INTEGER,
    icon INTEGER,
    flags INTEGER NOT NULL DEFAULT 0,
    size INTEGER
);
CREATE INDEX IF NOT EXISTS idx_documents_parent ON {TABLE_DOCUMENTS}(parent_stable_id);
CREATE INDEX IF NOT EXISTS idx_documents_device ON {TABLE_DOCUMENTS}(device_id);

CREATE TABLE IF NOT EXISTS {TABLE_ROOT_EXTRAS} (
    stable_id INTEGER PRIMARY KEY,
    flags INTEGER NOT NULL DEFAULT 0,
    available_bytes INTEGER NOT NULL DEFAULT 0,
    capacity_bytes INTEGER NOT NULL DEFAULT 0,
    mime_types TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS {TABLE_ID_SEQUENCE} (
    name TEXT PRIMARY KEY,
    value INTEGER NOT NULL
);
INSERT OR IGNORE INTO {TABLE_ID_SEQUENCE} (name, value) VALUES ('{COLUMN_STABLE_ID}', 0);
"""

_SUBTREE_CTE = f"""
WITH RECURSIVE subtree(id) AS (
    SELECT ?
    UNION ALL
    SELECT d.stable_id FROM {TABLE_DOCUMENTS} d JOIN subtree s ON d.parent_stable_id = s.id
)
"""


class RowStore:
    """Transactional store holding one row per known document or root.

    A single connection is shared between threads and guarded by a reentrant
    lock that is held for the whole of a transaction.
    """

    def __init__(self, db_path: str | Path = ":memory:", timeout: float = 10.0):
        """
        Open (or create) the store.

        Args:
            db_path: Path to the SQLite database file or ':memory:'
            timeout: Seconds to wait when the database file is locked

        Raises:
            StoreTransactionFailed: If the database cannot be opened or initialized
        """
        self.is_memory_db = str(db_path) == ":memory:"
        self.db_path_str = ":memory:" if self.is_memory_db else str(Path(db_path).resolve())
        self._lock = threading.RLock()

        try:
            if not self.is_memory_db:
                Path(self.db_path_str).parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(
                self.db_path_str,
                timeout=timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            self._connection.row_factory = sqlite3.Row
            if not self.is_memory_db:
                self._connection.execute("PRAGMA journal_mode=WAL;")
            self._connection.executescript(_SCHEMA_SQL)
        except (sqlite3.Error, OSError) as e:
            log.error("row_store_initialization_failed", db_path=self.db_path_str, error=str(e))
            raise StoreTransactionFailed(f"Failed to open row store at {self.db_path_str}: {e}") from e

        log.info("row_store_initialized", db_path=self.db_path_str)

    def close(self) -> None:
        with self._lock:
            try:
                self._connection.close()
            except sqlite3.Error as e:
                log.warning("row_store_close_failed", error=str(e))
        log.info("row_store_closed", db_path=self.db_path_str)

    # Transactions

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside one transaction.

        Commits when the block exits normally and rolls back on any exception.
        Nested use joins the outer transaction.

        Raises:
            StoreTransactionFailed: If SQLite fails; the transaction is rolled back
        """
        with self._lock:
            conn = self._connection
            in_outer = conn.in_transaction
            try:
                if not in_outer:
                    conn.execute("BEGIN")
                yield conn
                if not in_outer:
                    conn.commit()
            except sqlite3.Error as e:
                if not in_outer:
                    self._rollback(e)
                raise StoreTransactionFailed(f"Transaction failed: {e}") from e
            except BaseException as e:
                if not in_outer:
                    self._rollback(e)
                raise

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store lock across several calls, transactions included."""
        with self._lock:
            yield

    def _rollback(self, cause: BaseException) -> None:
        log.warning(
            "transaction_rolled_back",
            error=str(cause),
            error_type=type(cause).__name__,
        )
        try:
            self._connection.rollback()
        except sqlite3.Error as rb_err:
            log.error("transaction_rollback_failed", error=str(rb_err))

    def _execute(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self._connection.execute(query, tuple(params))
            except sqlite3.Error as e:
                log.error("query_failed", query=query[:200], error=str(e))
                raise StoreTransactionFailed(f"Query execution failed: {e}") from e

    def _fetch_one(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._execute(query, params).fetchone()

    def _fetch_all(self, query: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._execute(query, params).fetchall()

    # Stable ID allocation

    def allocate_stable_id(self) -> int:
        """Allocate a stable ID that has never been handed out by this store."""
        with self.transaction():
            self._execute(
                f"UPDATE {TABLE_ID_SEQUENCE} SET value = value + 1 WHERE name = ?",
                (COLUMN_STABLE_ID,),
            )
            row = self._fetch_one(
                f"SELECT value FROM {TABLE_ID_SEQUENCE} WHERE name = ?", (COLUMN_STABLE_ID,)
            )
        return int(row["value"])

    def _check_allocated_id(self, stable_id: int) -> None:
        row = self._fetch_one(
            f"SELECT value FROM {TABLE_ID_SEQUENCE} WHERE name = ?", (COLUMN_STABLE_ID,)
        )
        if stable_id < 1 or stable_id > int(row["value"]):
            raise InvalidArgument(f"Stable ID {stable_id} was not allocated by this store")
        if self.get_row(stable_id) is not None:
            raise InvalidArgument(f"Stable ID {stable_id} is already in use")

    # Queries

    def get_row(self, stable_id: int) -> DocumentRow | None:
        row = self._fetch_one(
            f"SELECT * FROM {TABLE_DOCUMENTS} WHERE {COLUMN_STABLE_ID} = ?", (stable_id,)
        )
        return DocumentRow.from_mapping(row) if row is not None else None

    def select_rows(self, scope: SyncScope) -> list[DocumentRow]:
        """Return the rows of a scope in ascending stable ID order."""
        where, params = scope.where_clause()
        rows = self._fetch_all(
            f"SELECT * FROM {TABLE_DOCUMENTS} WHERE {where} ORDER BY {COLUMN_STABLE_ID}", params
        )
        return [DocumentRow.from_mapping(row) for row in rows]

    def count_rows(self, device_id: int | None = None) -> int:
        if device_id is None:
            row = self._fetch_one(f"SELECT COUNT(*) AS n FROM {TABLE_DOCUMENTS}")
        else:
            row = self._fetch_one(
                f"SELECT COUNT(*) AS n FROM {TABLE_DOCUMENTS} WHERE {COLUMN_DEVICE_ID} = ?",
                (device_id,),
            )
        return int(row["n"])

    def has_device_identifiers(self, scope: SyncScope) -> bool:
        """Return True if any row in the scope still carries a device identifier."""
        where, params = scope.where_clause()
        row = self._fetch_one(
            f"SELECT 1 FROM {TABLE_DOCUMENTS} "
            f"WHERE {where} AND {scope.identifier_column} IS NOT NULL LIMIT 1",
            params,
        )
        return row is not None

    def find_row(
        self,
        scope: SyncScope,
        column: str,
        value: Any,
        include_ids: Iterable[int] | None = None,
        exclude_ids: Iterable[int] = (),
    ) -> DocumentRow | None:
        """
        Find the first row in a scope whose ``column`` equals ``value``.

        Args:
            scope: Scope to search
            column: Match column (device identifier or display name)
            value: Value to match; None never matches
            include_ids: If given, only rows with these stable IDs are considered
            exclude_ids: Rows with these stable IDs are skipped

        Returns:
            The matching row with the lowest stable ID, or None
        """
        if column not in MATCHABLE_COLUMNS:
            raise InvalidArgument(f"Column {column!r} cannot be used for matching")
        if value is None:
            return None

        allowed = set(include_ids) if include_ids is not None else None
        excluded = set(exclude_ids)
        where, params = scope.where_clause()
        rows = self._fetch_all(
            f"SELECT * FROM {TABLE_DOCUMENTS} WHERE {where} AND {column} = ? "
            f"ORDER BY {COLUMN_STABLE_ID}",
            (*params, value),
        )
        for row in rows:
            stable_id = row[COLUMN_STABLE_ID]
            if stable_id in excluded:
                continue
            if allowed is not None and stable_id not in allowed:
                continue
            return DocumentRow.from_mapping(row)
        return None

    # Mutations

    def insert_row(self, values: dict[str, Any], stable_id: int | None = None) -> int:
        """
        Insert a document row.

        Args:
            values: Column values; unknown columns are rejected
            stable_id: Previously allocated stable ID to use, or None to allocate one

        Returns:
            Stable ID of the new row

        Raises:
            InvalidArgument: If ``stable_id`` was never allocated or is already in use
        """
        self._check_columns(values)
        with self.transaction():
            if stable_id is None:
                stable_id = self.allocate_stable_id()
            else:
                self._check_allocated_id(stable_id)
            row_values = {key: value for key, value in values.items() if key != COLUMN_STABLE_ID}
            row_values[COLUMN_STABLE_ID] = stable_id
            row_values.setdefault(COLUMN_ROW_STATE, ROW_STATE_VALID)
            columns = ", ".join(row_values)
            placeholders = ", ".join("?" for _ in row_values)
            self._execute(
                f"INSERT INTO {TABLE_DOCUMENTS} ({columns}) VALUES ({placeholders})",
                row_values.values(),
            )
        log.debug("document_row_inserted", stable_id=stable_id)
        return stable_id

    def update_row(self, existing: DocumentRow, values: dict[str, Any]) -> bool:
        """
        Overwrite the identifier and descriptive columns of an existing row.

        Scoping columns (device ID, parent) are never written.

        Returns:
            True if any column other than the row state changed
        """
        self._check_columns(values)
        updates = mutable_values(values)
        if not updates:
            return False
        current = existing.model_dump()
        changed = any(
            current.get(key) != value for key, value in updates.items() if key != COLUMN_ROW_STATE
        )
        assignments = ", ".join(f"{key} = ?" for key in updates)
        self._execute(
            f"UPDATE {TABLE_DOCUMENTS} SET {assignments} WHERE {COLUMN_STABLE_ID} = ?",
            (*updates.values(), existing.stable_id),
        )
        return changed

    def upsert_row(
        self,
        scope: SyncScope,
        match_column: str,
        match_value: Any,
        values: dict[str, Any],
        exclude_ids: Iterable[int] = (),
    ) -> UpsertResult:
        """
        Update the first unexcluded row matching ``match_value`` or insert a new one.

        Returns:
            UpsertResult with the row's stable ID and whether it was inserted or changed
        """
        with self.transaction():
            existing = self.find_row(scope, match_column, match_value, exclude_ids=exclude_ids)
            if existing is None:
                stable_id = self.insert_row(values)
                return UpsertResult(stable_id, was_insert=True, was_changed=True)
            changed = self.update_row(existing, values)
            return UpsertResult(existing.stable_id, was_insert=False, was_changed=changed)

    def mark_scope_invalidated(self, scope: SyncScope) -> int:
        """Mark every row of a scope as not yet confirmed by the current cycle."""
        where, params = scope.where_clause()
        cursor = self._execute(
            f"UPDATE {TABLE_DOCUMENTS} SET {COLUMN_ROW_STATE} = ? WHERE {where}",
            (ROW_STATE_INVALIDATED, *params),
        )
        return cursor.rowcount

    def delete_subtree(self, stable_id: int) -> int:
        """Delete a row, every row beneath it and their root extras.

        Returns:
            Number of document rows deleted
        """
        with self.transaction():
            self._execute(
                f"{_SUBTREE_CTE} DELETE FROM {TABLE_ROOT_EXTRAS} "
                f"WHERE stable_id IN (SELECT id FROM subtree)",
                (stable_id,),
            )
            self._execute(
                f"{_SUBTREE_CTE} DELETE FROM {TABLE_DOCUMENTS} "
                f"WHERE {COLUMN_STABLE_ID} IN (SELECT id FROM subtree)",
                (stable_id,),
            )
            # sqlite3 reports no rowcount for statements starting with WITH.
            row = self._fetch_one("SELECT changes() AS n")
        return int(row["n"])

    def delete_rows_not_confirmed(self, scope: SyncScope, confirmed_ids: Iterable[int]) -> int:
        """
        Delete every row of a scope that is not in ``confirmed_ids``.

        Descendants of deleted rows are removed with them.

        Returns:
            Number of rows of the scope itself that were deleted
        """
        confirmed = set(confirmed_ids)
        with self.transaction():
            stale_ids = [row.stable_id for row in self.select_rows(scope) if row.stable_id not in confirmed]
            for stable_id in stale_ids:
                self.delete_subtree(stable_id)
        if stale_ids:
            log.info("stale_rows_deleted", scope=scope.key, count=len(stale_ids))
        return len(stale_ids)

    def delete_device_rows(self, device_id: int) -> int:
        """Delete every row that belongs to a device, at any depth."""
        with self.transaction():
            self._execute(
                f"DELETE FROM {TABLE_ROOT_EXTRAS} WHERE stable_id IN "
                f"(SELECT {COLUMN_STABLE_ID} FROM {TABLE_DOCUMENTS} WHERE {COLUMN_DEVICE_ID} = ?)",
                (device_id,),
            )
            cursor = self._execute(
                f"DELETE FROM {TABLE_DOCUMENTS} WHERE {COLUMN_DEVICE_ID} = ?", (device_id,)
            )
        return cursor.rowcount

    def null_all_device_identifiers(self) -> int:
        """Clear the storage ID and object handle of every row."""
        cursor = self._execute(
            f"UPDATE {TABLE_DOCUMENTS} SET {COLUMN_STORAGE_ID} = NULL, {COLUMN_OBJECT_HANDLE} = NULL"
        )
        log.info("device_identifiers_cleared", rows=cursor.rowcount)
        return cursor.rowcount

    # Root extras

    def put_root_extra(self, extra: RootExtra) -> None:
        self._execute(
            f"INSERT OR REPLACE INTO {TABLE_ROOT_EXTRAS} "
            f"(stable_id, flags, available_bytes, capacity_bytes, mime_types) VALUES (?, ?, ?, ?, ?)",
            (
                extra.stable_id,
                extra.flags,
                extra.available_bytes,
                extra.capacity_bytes,
                extra.mime_types,
            ),
        )

    def get_root_extra(self, stable_id: int) -> RootExtra | None:
        row = self._fetch_one(
            f"SELECT * FROM {TABLE_ROOT_EXTRAS} WHERE stable_id = ?", (stable_id,)
        )
        if row is None:
            return None
        return RootExtra(**{key: row[key] for key in row.keys()})

    @staticmethod
    def _check_columns(values: dict[str, Any]) -> None:
        unknown = [key for key in values if not is_document_column(key)]
        if unknown:
            raise InvalidArgument(f"Unknown document columns: {unknown}")
