"""Tests for stable ID lookups, document creation and device removal."""

import pytest
import structlog
from hypothesis import given, settings
from hypothesis import strategies as st

from mtp_catalog.catalog import DocumentCatalog
from mtp_catalog.errors import InvalidArgument, NotFound
from mtp_catalog.models.entry import FORMAT_ASSOCIATION, ObjectEntry, RootEntry
from mtp_catalog.models.row import Identifier
from mtp_catalog.storage.row_store import RowStore

log = structlog.stdlib.get_logger()

STORAGE_ID = 0x10001


def make_catalog() -> DocumentCatalog:
    return DocumentCatalog(store=RowStore(":memory:"))


def make_root(catalog: DocumentCatalog, device_id: int) -> int:
    catalog.begin_root_cycle(device_id)
    catalog.reconcile_roots(
        device_id,
        [RootEntry(device_id=device_id, storage_id=STORAGE_ID, description="Internal")],
    )
    catalog.close_root_cycle(device_id)
    return catalog.list_roots(device_id)[0].stable_id


def add_children(catalog: DocumentCatalog, parent_id: int, entries: list[ObjectEntry]) -> list[int]:
    catalog.begin_child_cycle(parent_id)
    catalog.reconcile_children(parent_id, entries)
    catalog.close_child_cycle(parent_id)
    return [row.stable_id for row in catalog.list_children(parent_id)]


class TestNewChildId:
    """new_child_id hands out IDs never used before."""

    @given(count=st.integers(min_value=1, max_value=30))
    @settings(max_examples=20, deadline=None)
    def test_ids_are_unique(self, count: int) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        existing = {row.stable_id for row in catalog.list_roots(1)}

        allocated = [catalog.new_child_id(root_id) for _ in range(count)]

        assert len(set(allocated)) == count
        assert existing.isdisjoint(allocated)

    def test_ids_are_not_reused_after_delete(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        (child_id,) = add_children(catalog, root_id, [ObjectEntry(storage_id=STORAGE_ID, object_handle=1, name="a")])

        catalog.delete_document(child_id)

        assert catalog.new_child_id(root_id) > child_id

    def test_missing_parent(self) -> None:
        catalog = make_catalog()

        with pytest.raises(NotFound) as exc_info:
            catalog.new_child_id(12345)

        assert exc_info.value.stable_id == 12345


class TestLookups:
    """Stable IDs resolve to their parent and device identifiers."""

    def test_parent_of(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        (child_id,) = add_children(catalog, root_id, [ObjectEntry(storage_id=STORAGE_ID, object_handle=7, name="Music")])

        assert catalog.parent_of(child_id) == root_id
        assert catalog.parent_of(root_id) is None

    def test_identifier_of(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=3)
        (child_id,) = add_children(catalog, root_id, [ObjectEntry(storage_id=STORAGE_ID, object_handle=7, name="Music")])

        assert catalog.identifier_of(child_id) == Identifier(3, STORAGE_ID, 7, child_id)
        assert catalog.identifier_of(root_id) == Identifier(3, STORAGE_ID, None, root_id)

    def test_identifier_of_after_clear(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=3)

        catalog.clear_all_mappings()

        assert catalog.identifier_of(root_id) == Identifier(3, None, None, root_id)

    def test_unknown_stable_id(self) -> None:
        catalog = make_catalog()

        with pytest.raises(NotFound):
            catalog.parent_of(77)
        with pytest.raises(NotFound):
            catalog.identifier_of(77)


class TestPutNewDocument:
    """Documents created on the device are inserted without a cycle."""

    def test_preallocated_id_is_used(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        stable_id = catalog.new_child_id(root_id)

        created = catalog.put_new_document(
            root_id,
            ObjectEntry(storage_id=STORAGE_ID, object_handle=40, name="notes.txt", compressed_size=12),
            stable_id=stable_id,
        )

        assert created == stable_id
        row = catalog.get_document(stable_id)
        assert row.parent_stable_id == root_id
        assert row.device_id == 1
        assert row.mime_type == "text/plain"
        assert row.size == 12

    def test_created_document_survives_next_cycle(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        entry = ObjectEntry(storage_id=STORAGE_ID, object_handle=40, name="New folder", format=FORMAT_ASSOCIATION)
        stable_id = catalog.put_new_document(root_id, entry)

        assert add_children(catalog, root_id, [entry]) == [stable_id]

    def test_missing_parent(self) -> None:
        catalog = make_catalog()

        with pytest.raises(NotFound):
            catalog.put_new_document(5, ObjectEntry(storage_id=STORAGE_ID, object_handle=1, name="x"))

        assert catalog.store.count_rows() == 0

    def test_unallocated_id_is_rejected(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        entry = ObjectEntry(storage_id=STORAGE_ID, object_handle=40, name="notes.txt")

        with pytest.raises(InvalidArgument):
            catalog.put_new_document(root_id, entry, stable_id=root_id + 1)

        fresh = catalog.new_child_id(root_id)
        assert catalog.get_document(fresh) is None

    def test_id_in_use_is_rejected(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        entry = ObjectEntry(storage_id=STORAGE_ID, object_handle=40, name="notes.txt")
        stable_id = catalog.put_new_document(root_id, entry, stable_id=catalog.new_child_id(root_id))

        with pytest.raises(InvalidArgument):
            catalog.put_new_document(root_id, entry, stable_id=stable_id)
        with pytest.raises(InvalidArgument):
            catalog.put_new_document(root_id, entry, stable_id=root_id)

        assert len(catalog.list_children(root_id)) == 1

    def test_document_created_during_cycle_survives_close(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        existing = ObjectEntry(storage_id=STORAGE_ID, object_handle=1, name="DCIM", format=FORMAT_ASSOCIATION)
        add_children(catalog, root_id, [existing])

        catalog.begin_child_cycle(root_id)
        catalog.reconcile_children(root_id, [existing])
        created = catalog.put_new_document(
            root_id, ObjectEntry(storage_id=STORAGE_ID, object_handle=2, name="New folder", format=FORMAT_ASSOCIATION)
        )
        assert catalog.close_child_cycle(root_id) is False

        assert catalog.get_document(created) is not None
        assert len(catalog.list_children(root_id)) == 2


class TestRemoval:
    """Deleting documents and devices removes whole subtrees."""

    def test_delete_document_removes_subtree(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        (dir_id,) = add_children(
            catalog, root_id, [ObjectEntry(storage_id=STORAGE_ID, object_handle=1, name="DCIM", format=FORMAT_ASSOCIATION)]
        )
        add_children(
            catalog,
            dir_id,
            [ObjectEntry(storage_id=STORAGE_ID, object_handle=h, name=f"IMG_{h}.jpg") for h in (2, 3)],
        )

        assert catalog.delete_document(dir_id) == 3
        assert catalog.store.count_rows() == 1
        assert catalog.get_document(root_id) is not None

    def test_delete_root_removes_extra(self) -> None:
        catalog = make_catalog()
        root_id = make_root(catalog, device_id=1)
        assert catalog.get_root_extra(root_id) is not None

        catalog.delete_document(root_id)

        assert catalog.get_root_extra(root_id) is None

    @given(device_ids=st.lists(st.integers(min_value=1, max_value=50), min_size=2, max_size=5, unique=True))
    @settings(max_examples=15, deadline=None)
    def test_remove_device_only_touches_that_device(self, device_ids: list[int]) -> None:
        catalog = make_catalog()
        for device_id in device_ids:
            root_id = make_root(catalog, device_id)
            add_children(
                catalog,
                root_id,
                [ObjectEntry(storage_id=STORAGE_ID, object_handle=h, name=f"f{h}") for h in (1, 2)],
            )
        removed, *kept = device_ids

        assert catalog.remove_device(removed) == 3

        assert catalog.store.count_rows(removed) == 0
        assert catalog.list_roots(removed) == []
        for device_id in kept:
            assert catalog.store.count_rows(device_id) == 3
