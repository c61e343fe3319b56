"""
Error taxonomy for catalog synchronization.

Only ConfigurationError is fatal to the process. Every other error is scoped
to a single scope, table or batch and is collected into the cycle summary
instead of propagating.
"""

from typing import Optional


class CatalogSyncError(Exception):
    """Base class for all catalog sync errors."""


class ConfigurationError(CatalogSyncError):
    """Invalid or incomplete configuration. Raised before any cycle starts."""


# =============================================================================
# CATALOG CLIENT CONDITIONS
# =============================================================================

class CatalogClientError(CatalogSyncError):
    """Raised by a catalog client when the external source cannot answer."""


class CatalogUnavailable(CatalogClientError):
    """The source could not be reached or refused the request."""


class TableNotFound(CatalogClientError):
    """The source reports the requested table does not exist."""

    def __init__(self, table_name: str, message: Optional[str] = None):
        self.table_name = table_name
        super().__init__(message or f"Table not found: {table_name}")


# =============================================================================
# CYCLE ERRORS
# =============================================================================

class ScopeListError(CatalogSyncError):
    """Listing the tables of a scope failed; the cycle for that scope aborts."""

    def __init__(self, scope: str, cause: Exception):
        self.scope = scope
        self.cause = cause
        super().__init__(f"Failed to list tables for scope '{scope}': {cause}")


class TableFetchError(CatalogSyncError):
    """
    Fetching a single table failed.

    The table is left out of the cycle and is never inferred as deleted.
    """

    def __init__(self, scope: str, table_name: str, cause: Optional[Exception] = None):
        self.scope = scope
        self.table_name = table_name
        self.cause = cause
        reason = str(cause) if cause else "not fetched"
        super().__init__(f"Failed to fetch table '{table_name}' in scope '{scope}': {reason}")

    @property
    def not_found(self) -> bool:
        """True if the source reported the table missing rather than unreachable."""
        return isinstance(self.cause, TableNotFound)


class EmitError(CatalogSyncError):
    """A batch could not be delivered after all retry attempts."""

    def __init__(self, batch_key: str, attempts: int, cause: Optional[Exception] = None, message: str = ""):
        self.batch_key = batch_key
        self.attempts = attempts
        self.cause = cause
        detail = message or (str(cause) if cause else "sink reported failure")
        super().__init__(f"Failed to emit batch '{batch_key}' after {attempts} attempt(s): {detail}")


class MalformedDescriptor(CatalogSyncError):
    """A source descriptor cannot be given an unambiguous qualified name."""

    def __init__(self, table_name: str, reason: str):
        self.table_name = table_name
        self.reason = reason
        super().__init__(f"Malformed descriptor for table '{table_name}': {reason}")


class SnapshotStoreError(CatalogSyncError):
    """A stored snapshot could not be read back; the scope's cycle aborts."""

    def __init__(self, scope: str, path: str, reason: str):
        self.scope = scope
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load snapshot for scope '{scope}' from {path}: {reason}")
