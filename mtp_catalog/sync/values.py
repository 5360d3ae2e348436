"""Translation of device-reported entries into document row values."""

import mimetypes
from typing import Any

from mtp_catalog.models.entry import ObjectEntry, RootEntry
from mtp_catalog.models.row import RootExtra
from mtp_catalog.storage.constants import (
    COLUMN_DEVICE_ID,
    COLUMN_DISPLAY_NAME,
    COLUMN_FLAGS,
    COLUMN_ICON,
    COLUMN_LAST_MODIFIED,
    COLUMN_MIME_TYPE,
    COLUMN_OBJECT_HANDLE,
    COLUMN_PARENT_STABLE_ID,
    COLUMN_ROW_STATE,
    COLUMN_SIZE,
    COLUMN_STORAGE_ID,
    COLUMN_SUMMARY,
    FLAG_DIR_SUPPORTS_CREATE,
    FLAG_SUPPORTS_DELETE,
    FLAG_SUPPORTS_THUMBNAIL,
    FLAG_SUPPORTS_WRITE,
    MIME_TYPE_DIR,
    ROOT_FLAG_SUPPORTS_CREATE,
    ROOT_FLAG_SUPPORTS_IS_CHILD,
    ROW_STATE_VALID,
)

# Sizes are exposed as 32-bit signed integers for roots.
MAX_ROOT_SIZE = 2**31 - 1

DEFAULT_MIME_TYPE = "application/octet-stream"

# Subset of MTP object format codes.
FORMAT_MIME_TYPES: dict[int, str] = {
    0x3004: "text/plain",
    0x3005: "text/html",
    0x3008: "audio/x-wav",
    0x3009: "audio/mpeg",
    0x300A: "video/x-msvideo",
    0x300B: "video/mpeg",
    0x3801: "image/jpeg",
    0x3807: "image/gif",
    0x3804: "image/bmp",
    0x380B: "image/png",
    0x380D: "image/tiff",
    0xB901: "audio/x-ms-wma",
    0xB902: "audio/ogg",
    0xB903: "audio/aac",
    0xB906: "audio/flac",
    0xB981: "video/x-ms-wmv",
    0xB982: "video/mp4",
    0xB984: "video/3gpp",
}


def mime_type_for(entry: ObjectEntry) -> str:
    """Classify an object by its format code, falling back to its file name."""
    if entry.is_directory:
        return MIME_TYPE_DIR
    mime_type = FORMAT_MIME_TYPES.get(entry.format)
    if mime_type is None:
        mime_type, _ = mimetypes.guess_type(entry.name)
    return mime_type or DEFAULT_MIME_TYPE


def document_flags_for(entry: ObjectEntry, mime_type: str) -> int:
    flags = 0
    if entry.protection_status == 0:
        flags |= FLAG_SUPPORTS_DELETE | FLAG_SUPPORTS_WRITE
        if mime_type == MIME_TYPE_DIR:
            flags |= FLAG_DIR_SUPPORTS_CREATE
    if entry.thumb_compressed_size > 0:
        flags |= FLAG_SUPPORTS_THUMBNAIL
    return flags


def root_document_values(root: RootEntry) -> dict[str, Any]:
    """
    Build document row values for a device root.

    Args:
        root: Root reported by the device

    Returns:
        Column values for the documents table
    """
    return {
        COLUMN_DEVICE_ID: root.device_id,
        COLUMN_STORAGE_ID: root.storage_id,
        COLUMN_OBJECT_HANDLE: None,
        COLUMN_PARENT_STABLE_ID: None,
        COLUMN_ROW_STATE: ROW_STATE_VALID,
        COLUMN_MIME_TYPE: MIME_TYPE_DIR,
        COLUMN_DISPLAY_NAME: root.root_name,
        COLUMN_SUMMARY: None,
        COLUMN_LAST_MODIFIED: None,
        COLUMN_ICON: None,
        COLUMN_FLAGS: 0,
        COLUMN_SIZE: min(max(root.max_capacity - root.free_space, 0), MAX_ROOT_SIZE),
    }


def root_extra_for(stable_id: int, root: RootEntry) -> RootExtra:
    return RootExtra(
        stable_id=stable_id,
        flags=ROOT_FLAG_SUPPORTS_IS_CHILD | ROOT_FLAG_SUPPORTS_CREATE,
        available_bytes=root.free_space,
        capacity_bytes=root.max_capacity,
        mime_types="",
    )


def child_document_values(device_id: int, parent_id: int, entry: ObjectEntry) -> dict[str, Any]:
    """
    Build document row values for an object under ``parent_id``.

    Args:
        device_id: Device owning the parent document
        parent_id: Stable ID of the parent document
        entry: Object reported by the device

    Returns:
        Column values for the documents table
    """
    mime_type = mime_type_for(entry)
    return {
        COLUMN_DEVICE_ID: device_id,
        COLUMN_STORAGE_ID: entry.storage_id,
        COLUMN_OBJECT_HANDLE: entry.object_handle,
        COLUMN_PARENT_STABLE_ID: parent_id,
        COLUMN_ROW_STATE: ROW_STATE_VALID,
        COLUMN_MIME_TYPE: mime_type,
        COLUMN_DISPLAY_NAME: entry.name,
        COLUMN_SUMMARY: None,
        COLUMN_LAST_MODIFIED: entry.date_modified if entry.date_modified != 0 else None,
        COLUMN_ICON: None,
        COLUMN_FLAGS: document_flags_for(entry, mime_type),
        COLUMN_SIZE: entry.compressed_size,
    }
