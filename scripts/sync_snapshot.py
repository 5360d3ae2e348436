#!/usr/bin/env python3
"""
Synchronize the catalog against a recorded device listing.

The snapshot is a YAML file describing one device:

    device_id: 1
    device_name: Pixel
    roots:
      - storage_id: 65537
        description: Internal shared storage
        free_space: 1024
        max_capacity: 4096
        objects:
          - object_handle: 10
            name: DCIM
            format: 0x3001
            objects:
              - object_handle: 11
                name: IMG_0001.jpg
                format: 0x3801
                compressed_size: 123456

Every root is reconciled in one cycle, then one child cycle is run for each
directory, depth first.

Usage:
    python scripts/sync_snapshot.py SNAPSHOT [--config CONFIG_PATH] [--reconnect]
"""

import argparse
import sys
from datetime import datetime
from typing import Any

import structlog
import yaml

from mtp_catalog.catalog import DocumentCatalog
from mtp_catalog.errors import CatalogError
from mtp_catalog.models.config import SyncConfig
from mtp_catalog.models.entry import ObjectEntry, RootEntry
from mtp_catalog.utils.config_loader import ConfigLoader, ConfigurationError
from mtp_catalog.utils.logging_config import configure_logging_from_config
from mtp_catalog.utils.retry import retry_with_policy

log = structlog.stdlib.get_logger()

BATCH_SIZE = 100


def load_snapshot(snapshot_path: str) -> dict[str, Any]:
    with open(snapshot_path, "r") as f:
        snapshot = yaml.safe_load(f)
    if not isinstance(snapshot, dict) or "device_id" not in snapshot:
        raise ConfigurationError(f"Snapshot {snapshot_path} must be a mapping with a device_id")
    return snapshot


def _batches(items: list, size: int = BATCH_SIZE):
    for start in range(0, len(items), size):
        yield items[start : start + size]


def sync_children(
    catalog: DocumentCatalog,
    policy: SyncConfig,
    parent_id: int,
    storage_id: int,
    objects: list[dict[str, Any]],
    stats: dict[str, int],
) -> None:
    """Run a child cycle for ``parent_id`` and recurse into its directories."""
    entries = [
        ObjectEntry(storage_id=storage_id, **{k: v for k, v in obj.items() if k != "objects"})
        for obj in objects
    ]

    catalog.begin_child_cycle(parent_id)
    for batch in _batches(entries):
        if retry_with_policy(policy, catalog.reconcile_children, parent_id, batch):
            stats["changed_batches"] += 1
    if retry_with_policy(policy, catalog.close_child_cycle, parent_id):
        stats["pruned_scopes"] += 1
    stats["scopes"] += 1

    children = {row.display_name: row for row in catalog.list_children(parent_id)}
    for obj in objects:
        if not obj.get("objects"):
            continue
        row = children.get(obj["name"])
        if row is None:
            log.warning("directory_row_missing", parent_id=parent_id, name=obj["name"])
            continue
        sync_children(catalog, policy, row.stable_id, storage_id, obj["objects"], stats)


def perform_sync(
    snapshot_path: str, config_path: str | None = None, reconnect: bool = False
) -> dict:
    """
    Reconcile the catalog with a device snapshot.

    Args:
        snapshot_path: Path to the YAML snapshot
        config_path: Optional path to configuration file
        reconnect: If True, clear all device identifiers first, as after a reconnect

    Returns:
        Dictionary with sync statistics
    """
    start_time = datetime.now()

    try:
        config = ConfigLoader().load_config(config_path)
        configure_logging_from_config(config.logging)

        log.info(
            "snapshot_sync_started",
            snapshot=snapshot_path,
            reconnect=reconnect,
            timestamp=start_time.isoformat(),
        )

        snapshot = load_snapshot(snapshot_path)
        device_id = int(snapshot["device_id"])
        device_name = snapshot.get("device_name", "")

        catalog = DocumentCatalog(database_config=config.database)
        stats = {"scopes": 0, "changed_batches": 0, "pruned_scopes": 0}

        try:
            if reconnect:
                catalog.clear_all_mappings()

            roots = snapshot.get("roots", [])
            root_entries = [
                RootEntry(
                    device_id=device_id,
                    device_name=device_name,
                    **{k: v for k, v in root.items() if k != "objects"},
                )
                for root in roots
            ]

            mode = catalog.begin_root_cycle(device_id)
            roots_changed = retry_with_policy(
                config.sync, catalog.reconcile_roots, device_id, root_entries
            )
            roots_pruned = retry_with_policy(config.sync, catalog.close_root_cycle, device_id)
            stats["scopes"] += 1

            root_rows = {row.storage_id: row for row in catalog.list_roots(device_id)}
            for root in roots:
                row = root_rows.get(root["storage_id"])
                if row is None:
                    continue
                sync_children(
                    catalog, config.sync, row.stable_id, root["storage_id"],
                    root.get("objects", []), stats,
                )

            document_count = catalog.store.count_rows(device_id)
        finally:
            catalog.close()

        end_time = datetime.now()
        result = {
            "success": True,
            "device_id": device_id,
            "root_mapping_mode": mode.value,
            "roots_changed": roots_changed or roots_pruned,
            "documents": document_count,
            **stats,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": (end_time - start_time).total_seconds(),
        }

        log.info("snapshot_sync_completed", **result)
        return result

    except (CatalogError, ConfigurationError, OSError, yaml.YAMLError, ValueError) as e:
        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        log.error(
            "snapshot_sync_failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_seconds=duration,
        )

        return {
            "success": False,
            "error": str(e),
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": duration,
        }


def main():
    """Main entry point for the snapshot sync script."""
    parser = argparse.ArgumentParser(
        description="Synchronize the MTP document catalog with a device snapshot"
    )
    parser.add_argument("snapshot", type=str, help="Path to the device snapshot YAML")
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file",
        default=None,
    )
    parser.add_argument(
        "--reconnect",
        action="store_true",
        help="Clear device identifiers first and remap rows by name",
    )

    args = parser.parse_args()

    stats = perform_sync(args.snapshot, config_path=args.config, reconnect=args.reconnect)

    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)

    if stats.get("success"):
        print("Status: ✓ SUCCESS")
        print(f"Device: {stats.get('device_id')}")
        print(f"Root Mapping Mode: {stats.get('root_mapping_mode')}")
        print(f"Roots Changed: {stats.get('roots_changed')}")
        print(f"Scopes Synced: {stats.get('scopes', 0)}")
        print(f"Batches With Changes: {stats.get('changed_batches', 0)}")
        print(f"Scopes With Deletions: {stats.get('pruned_scopes', 0)}")
        print(f"Documents: {stats.get('documents', 0)}")
        print(f"Duration: {stats.get('duration_seconds', 0):.2f} seconds")
    else:
        print("Status: ✗ FAILED")
        print(f"Error: {stats.get('error', 'Unknown error')}")
        print(f"Duration: {stats.get('duration_seconds', 0):.2f} seconds")

    print("=" * 60)

    sys.exit(0 if stats.get("success") else 1)


if __name__ == "__main__":
    main()
