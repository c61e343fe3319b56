"""
Change records and batches.

A ChangeRecord lives for one poll cycle only: the diff engine produces it,
the batch emitter groups and sends it, and nothing persists it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .entities import CatalogEntity
from .enums import BatchKind, ChangeType, EntityKind


@dataclass(frozen=True)
class ChangeRecord:
    """
    One created, updated or deleted entity.

    entity is the new state for CREATED and UPDATED, and the last known
    state for DELETED. changed_fields is only filled for UPDATED.
    """

    change_type: ChangeType
    qualified_name: str
    kind: EntityKind
    entity: CatalogEntity
    changed_fields: Tuple[str, ...] = ()

    @classmethod
    def created(cls, entity: CatalogEntity) -> ChangeRecord:
        return cls(ChangeType.CREATED, entity.qualified_name, entity.kind, entity)

    @classmethod
    def updated(cls, entity: CatalogEntity, changed_fields: Tuple[str, ...]) -> ChangeRecord:
        return cls(ChangeType.UPDATED, entity.qualified_name, entity.kind, entity, changed_fields)

    @classmethod
    def deleted(cls, entity: CatalogEntity) -> ChangeRecord:
        return cls(ChangeType.DELETED, entity.qualified_name, entity.kind, entity)

    @property
    def table_qualified_name(self) -> Optional[str]:
        """The table this record belongs to, or None for asset-level records."""
        if self.kind == EntityKind.TABLE:
            return self.qualified_name
        if self.kind == EntityKind.COLUMN:
            return self.entity.parent_qualified_name
        return None

    def __str__(self) -> str:
        suffix = f" {list(self.changed_fields)}" if self.changed_fields else ""
        return f"{self.change_type.value} {self.kind.value} {self.qualified_name}{suffix}"


@dataclass
class ChangeBatch:
    """
    Change records sent to the notification sink together.

    An ASSET batch carries one asset-level record. A TABLE batch carries a
    table's own record (if it changed) and every column record of that table
    from the same cycle, so consumers never observe a table without its
    columns or a column without its table.
    """

    kind: BatchKind
    key: str
    records: List[ChangeRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __str__(self) -> str:
        return f"{self.kind.value} batch {self.key} ({len(self.records)} record(s))"
