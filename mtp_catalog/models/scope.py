"""Synchronization scopes: the set of rows governed by one cycle."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mtp_catalog.storage.constants import (
    COLUMN_DEVICE_ID,
    COLUMN_OBJECT_HANDLE,
    COLUMN_PARENT_STABLE_ID,
    COLUMN_STORAGE_ID,
)


class ScopeKind(str, Enum):
    ROOTS = "roots"
    CHILDREN = "children"


class SyncScope(BaseModel):
    """Either the roots of one device or the children of one parent document."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind = Field(default=..., description="Which family of rows the scope covers")
    device_id: int | None = Field(default=None, description="Device ID for root scopes")
    parent_id: int | None = Field(default=None, description="Parent stable ID for child scopes")

    @model_validator(mode="after")
    def _check_selector(self) -> "SyncScope":
        if self.kind is ScopeKind.ROOTS and self.device_id is None:
            raise ValueError("root scope requires device_id")
        if self.kind is ScopeKind.CHILDREN and self.parent_id is None:
            raise ValueError("child scope requires parent_id")
        return self

    @classmethod
    def roots(cls, device_id: int) -> "SyncScope":
        return cls(kind=ScopeKind.ROOTS, device_id=device_id)

    @classmethod
    def children(cls, parent_id: int) -> "SyncScope":
        return cls(kind=ScopeKind.CHILDREN, parent_id=parent_id)

    @property
    def is_roots(self) -> bool:
        return self.kind is ScopeKind.ROOTS

    @property
    def key(self) -> str:
        """Key used to track the scope's active cycle."""
        if self.is_roots:
            return f"RootDocuments/{self.device_id}"
        return f"ChildDocuments/{self.parent_id}"

    @property
    def identifier_column(self) -> str:
        """Column holding the device-assigned identifier for rows of this scope."""
        return COLUMN_STORAGE_ID if self.is_roots else COLUMN_OBJECT_HANDLE

    def where_clause(self) -> tuple[str, tuple]:
        """SQL predicate and parameters selecting the rows of this scope."""
        if self.is_roots:
            return (
                f"{COLUMN_DEVICE_ID} = ? AND {COLUMN_PARENT_STABLE_ID} IS NULL",
                (self.device_id,),
            )
        return f"{COLUMN_PARENT_STABLE_ID} = ?", (self.parent_id,)

    def __str__(self) -> str:
        return self.key
