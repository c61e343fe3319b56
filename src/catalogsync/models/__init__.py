"""
Canonical catalog models.

This package provides the data model the sync engine operates on.

Module organization:
- enums: All enumerations (EntityKind, ChangeType, CycleState, etc.)
- base: Base configuration, Scope and qualified-name helpers
- entities: CatalogEntity, Asset, Table, Column, source descriptors, Snapshot
- changes: ChangeRecord and ChangeBatch
"""

from .base import (
    SCHEMA_SEGMENT,
    SEPARATOR,
    BaseCatalogModel,
    Scope,
    is_within,
    join_qualified_name,
    parent_of,
)
from .changes import ChangeBatch, ChangeRecord
from .entities import (
    Asset,
    CatalogEntity,
    Column,
    ColumnDescriptor,
    Snapshot,
    Table,
    TableDescriptor,
)
from .enums import (
    BatchKind,
    ChangeType,
    CycleState,
    EntityKind,
    SemanticType,
    SendOutcome,
)

__all__ = [
    # Base
    "SEPARATOR",
    "SCHEMA_SEGMENT",
    "BaseCatalogModel",
    "Scope",
    "join_qualified_name",
    "parent_of",
    "is_within",
    # Entities
    "CatalogEntity",
    "Asset",
    "Column",
    "Table",
    "ColumnDescriptor",
    "TableDescriptor",
    "Snapshot",
    # Changes
    "ChangeRecord",
    "ChangeBatch",
    # Enums
    "EntityKind",
    "ChangeType",
    "BatchKind",
    "SendOutcome",
    "CycleState",
    "SemanticType",
]
