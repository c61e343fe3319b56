"""
catalogsync - Catalog metadata synchronization and change notification.

This library periodically polls an external tabular-metadata service,
normalizes what it finds into canonical entities with stable qualified
names, diffs them against the last committed snapshot, and emits the
changes as ordered batches.

Key Features:
- Stable identity: catalog.database.schema.table.column qualified names
- Minimal change sets with parent/child ordering guarantees
- Per-table and per-batch failure isolation; unreadable tables are never
  reported as deleted
- Bounded concurrent fetching and per-scope single-writer snapshots
- Tight integration with databricks-sdk (Unity Catalog client)

Quick Start:
    from catalogsync import LoggingSink, Scope, build_coordinator, load_settings

    settings = load_settings("catalogsync.yml")
    coordinator = build_coordinator(settings, sink=LoggingSink())

    for summary in coordinator.run_cycles(settings.scopes):
        print(summary)
"""

__version__ = "0.1.0"

from catalogsync.builder import CanonicalModelBuilder
from catalogsync.client import CatalogClient, UnityCatalogClient
from catalogsync.config import (
    EmitSettings,
    SyncSettings,
    build_coordinator,
    build_workspace_client,
    load_settings,
    run_polling,
    settings_from_env,
)
from catalogsync.coordinator import CycleSummary, SyncCoordinator
from catalogsync.diff import DiffEngine
from catalogsync.emitter import BatchEmitter, BatchResult, EmitResult
from catalogsync.errors import (
    CatalogClientError,
    CatalogSyncError,
    CatalogUnavailable,
    ConfigurationError,
    EmitError,
    MalformedDescriptor,
    ScopeListError,
    SnapshotStoreError,
    TableFetchError,
    TableNotFound,
)
from catalogsync.models import (
    SEPARATOR,
    Asset,
    BatchKind,
    CatalogEntity,
    ChangeBatch,
    ChangeRecord,
    ChangeType,
    Column,
    ColumnDescriptor,
    CycleState,
    EntityKind,
    Scope,
    SendOutcome,
    Snapshot,
    Table,
    TableDescriptor,
)
from catalogsync.sink import CollectingSink, LoggingSink, NotificationSink
from catalogsync.store import InMemorySnapshotStore, JsonFileSnapshotStore, SnapshotStore

__all__ = [
    # Version
    "__version__",
    # Models
    "SEPARATOR",
    "Scope",
    "CatalogEntity",
    "Asset",
    "Table",
    "Column",
    "TableDescriptor",
    "ColumnDescriptor",
    "Snapshot",
    "ChangeRecord",
    "ChangeBatch",
    "EntityKind",
    "ChangeType",
    "BatchKind",
    "SendOutcome",
    "CycleState",
    # Engine
    "CanonicalModelBuilder",
    "DiffEngine",
    "BatchEmitter",
    "BatchResult",
    "EmitResult",
    "SyncCoordinator",
    "CycleSummary",
    # Collaborators
    "CatalogClient",
    "UnityCatalogClient",
    "SnapshotStore",
    "InMemorySnapshotStore",
    "JsonFileSnapshotStore",
    "NotificationSink",
    "LoggingSink",
    "CollectingSink",
    # Configuration
    "SyncSettings",
    "EmitSettings",
    "load_settings",
    "settings_from_env",
    "build_workspace_client",
    "build_coordinator",
    "run_polling",
    # Errors
    "CatalogSyncError",
    "ConfigurationError",
    "CatalogClientError",
    "CatalogUnavailable",
    "TableNotFound",
    "ScopeListError",
    "SnapshotStoreError",
    "TableFetchError",
    "EmitError",
    "MalformedDescriptor",
]
