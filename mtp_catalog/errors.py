"""Exceptions raised by the document catalog."""


class CatalogError(Exception):
    """Base class for all catalog errors."""

    pass


class CycleAlreadyActive(CatalogError):
    """Raised when a synchronization cycle is started on a scope that already has one."""

    def __init__(self, scope_key: str):
        self.scope_key = scope_key
        super().__init__(f"Mapping for {scope_key} has already started")


class NoActiveCycle(CatalogError):
    """Raised when a batch or close is issued for a scope without an active cycle."""

    def __init__(self, scope_key: str):
        self.scope_key = scope_key
        super().__init__(f"No synchronization cycle is active for {scope_key}")


class UnknownMappingMode(CatalogError):
    """Raised when tracker state holds a mapping mode the engine cannot dispatch on.

    This indicates corrupted tracker state and is not recoverable by the caller.
    """

    pass


class NotFound(CatalogError, LookupError):
    """Raised when a stable ID does not resolve to a row."""

    def __init__(self, stable_id: int | None, message: str | None = None):
        self.stable_id = stable_id
        super().__init__(message or f"No document row for stable ID {stable_id}")


class StoreTransactionFailed(CatalogError):
    """Raised when the row store fails; the transaction has been rolled back."""

    pass


class InvalidArgument(CatalogError, ValueError):
    """Raised when an entry does not belong to the scope it was fed into."""

    pass
