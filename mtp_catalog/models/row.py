"""Pydantic models for persisted catalog rows."""

from typing import Any, NamedTuple

from pydantic import BaseModel, Field

from mtp_catalog.storage.constants import ROW_STATE_VALID


class DocumentRow(BaseModel):
    """A document or root as persisted in the catalog."""

    stable_id: int = Field(default=..., ge=1, description="Process-assigned stable identifier")
    device_id: int = Field(default=..., description="Device the row belongs to")
    storage_id: int | None = Field(default=None, description="Device storage ID, if mapped")
    object_handle: int | None = Field(default=None, description="Device object handle, if mapped")
    parent_stable_id: int | None = Field(default=None, description="Parent stable ID, None for roots")
    row_state: int = Field(default=ROW_STATE_VALID, description="Mark used for pruning")
    mime_type: str | None = Field(default=None)
    display_name: str | None = Field(default=None)
    summary: str | None = Field(default=None)
    last_modified: int | None = Field(default=None)
    icon: int | None = Field(default=None)
    flags: int = Field(default=0)
    size: int | None = Field(default=None)

    @property
    def is_root(self) -> bool:
        return self.parent_stable_id is None

    @classmethod
    def from_mapping(cls, row: Any) -> "DocumentRow":
        """Build a DocumentRow from a sqlite3.Row or dict."""
        return cls(**{key: row[key] for key in row.keys()})


class RootExtra(BaseModel):
    """Root-level information stored alongside a root document."""

    stable_id: int = Field(default=..., ge=1)
    flags: int = Field(default=0)
    available_bytes: int = Field(default=0, ge=0)
    capacity_bytes: int = Field(default=0, ge=0)
    mime_types: str = Field(default="")


class Identifier(NamedTuple):
    """How a stable ID maps onto the device in the current session."""

    device_id: int
    storage_id: int | None
    object_handle: int | None
    stable_id: int


class UpsertResult(NamedTuple):
    stable_id: int
    was_insert: bool
    was_changed: bool
