"""Column names, row states and flag values for the document store."""

TABLE_DOCUMENTS = "documents"
TABLE_ROOT_EXTRAS = "root_extras"
TABLE_ID_SEQUENCE = "id_sequence"

COLUMN_STABLE_ID = "stable_id"
COLUMN_DEVICE_ID = "device_id"
COLUMN_STORAGE_ID = "storage_id"
COLUMN_OBJECT_HANDLE = "object_handle"
COLUMN_PARENT_STABLE_ID = "parent_stable_id"
COLUMN_ROW_STATE = "row_state"
COLUMN_MIME_TYPE = "mime_type"
COLUMN_DISPLAY_NAME = "display_name"
COLUMN_SUMMARY = "summary"
COLUMN_LAST_MODIFIED = "last_modified"
COLUMN_ICON = "icon"
COLUMN_FLAGS = "flags"
COLUMN_SIZE = "size"

# root_extras
COLUMN_AVAILABLE_BYTES = "available_bytes"
COLUMN_CAPACITY_BYTES = "capacity_bytes"
COLUMN_MIME_TYPES = "mime_types"

DOCUMENT_COLUMNS: tuple[str, ...] = (
    COLUMN_STABLE_ID,
    COLUMN_DEVICE_ID,
    COLUMN_STORAGE_ID,
    COLUMN_OBJECT_HANDLE,
    COLUMN_PARENT_STABLE_ID,
    COLUMN_ROW_STATE,
    COLUMN_MIME_TYPE,
    COLUMN_DISPLAY_NAME,
    COLUMN_SUMMARY,
    COLUMN_LAST_MODIFIED,
    COLUMN_ICON,
    COLUMN_FLAGS,
    COLUMN_SIZE,
)

# Fixed for a row's lifetime; never written by an update.
SCOPE_COLUMNS: frozenset[str] = frozenset({COLUMN_DEVICE_ID, COLUMN_PARENT_STABLE_ID})

DEVICE_IDENTIFIER_COLUMNS: tuple[str, ...] = (COLUMN_STORAGE_ID, COLUMN_OBJECT_HANDLE)

# Columns that may be used to match an entry against an existing row.
MATCHABLE_COLUMNS: frozenset[str] = frozenset(
    {COLUMN_STORAGE_ID, COLUMN_OBJECT_HANDLE, COLUMN_DISPLAY_NAME}
)

ROW_STATE_VALID = 0
ROW_STATE_INVALIDATED = 1

MIME_TYPE_DIR = "vnd.android.document/directory"

# Document flags
FLAG_SUPPORTS_THUMBNAIL = 1
FLAG_SUPPORTS_WRITE = 1 << 1
FLAG_SUPPORTS_DELETE = 1 << 2
FLAG_DIR_SUPPORTS_CREATE = 1 << 3

# Root flags
ROOT_FLAG_SUPPORTS_CREATE = 1
ROOT_FLAG_SUPPORTS_IS_CHILD = 1 << 4


def is_document_column(column: str) -> bool:
    """Return True if ``column`` names a column of the documents table."""
    return column in DOCUMENT_COLUMNS


def mutable_values(values: dict) -> dict:
    """Drop scoping columns and the primary key from a set of row values."""
    return {
        key: value
        for key, value in values.items()
        if key not in SCOPE_COLUMNS and key != COLUMN_STABLE_ID
    }
