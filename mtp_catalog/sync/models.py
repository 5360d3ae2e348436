"""Data models for synchronization cycles."""

from dataclasses import dataclass, field
from enum import Enum

from mtp_catalog.errors import UnknownMappingMode
from mtp_catalog.models.scope import SyncScope
from mtp_catalog.storage.constants import COLUMN_DISPLAY_NAME


class MappingMode(Enum):
    """How entries of a cycle are matched against existing rows."""

    MATCH_BY_IDENTIFIER = "identifier"
    MATCH_BY_NAME = "name"

    @property
    def heuristic(self) -> bool:
        return self is MappingMode.MATCH_BY_NAME

    def match_column(self, scope: SyncScope) -> str:
        """Column compared between entries and rows for this mode in ``scope``."""
        if self is MappingMode.MATCH_BY_IDENTIFIER:
            return scope.identifier_column
        if self is MappingMode.MATCH_BY_NAME:
            return COLUMN_DISPLAY_NAME
        raise UnknownMappingMode(f"Unexpected mapping mode: {self!r}")


@dataclass
class ActiveCycle:
    """State of one in-flight synchronization cycle."""

    scope: SyncScope
    mode: MappingMode
    confirmed: set[int] = field(default_factory=set)

    @property
    def match_column(self) -> str:
        if not isinstance(self.mode, MappingMode):
            raise UnknownMappingMode(f"Unexpected mapping mode for {self.scope.key}: {self.mode!r}")
        return self.mode.match_column(self.scope)

    def snapshot(self) -> "ActiveCycle":
        return ActiveCycle(scope=self.scope, mode=self.mode, confirmed=set(self.confirmed))
