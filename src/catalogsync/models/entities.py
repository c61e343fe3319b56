"""
Canonical entity models.

This module contains:
- CatalogEntity: Common shape of every synchronized object
- Asset: The database-level entity of a scope
- Column: A table column
- Table: A table owning an ordered sequence of columns
- ColumnDescriptor / TableDescriptor: Raw shapes returned by a catalog client
- Snapshot: Last committed state of one scope, keyed by qualified name
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import Field

from .base import BaseCatalogModel, Scope, is_within, parent_of
from .enums import EntityKind, SemanticType

logger = logging.getLogger(__name__)


# =============================================================================
# CANONICAL ENTITIES
# =============================================================================

class CatalogEntity(BaseCatalogModel):
    """
    A synchronized catalog object with stable identity.

    qualified_name is the identity key across poll cycles. created_at is kept
    for consumers but never takes part in change detection, since sources do
    not resend it reliably.
    """

    qualified_name: str = Field(..., min_length=1, description="Separator-joined identity path")
    name: str = Field(..., description="Display name, not required to be unique")
    kind: EntityKind = Field(..., description="Entity variant")
    type_name: str = Field(..., description="Semantic type tag, e.g. RelationalTable")
    created_at: Optional[datetime] = Field(None, description="Creation time surfaced by the source")
    attributes: Dict[str, str] = Field(default_factory=dict, description="Attribute name to value")

    @property
    def parent_qualified_name(self) -> Optional[str]:
        """Qualified name of the containing entity."""
        return parent_of(self.qualified_name)

    def comparable_fields(self) -> Dict[str, object]:
        """Fields that take part in change detection."""
        return {
            "type": self.type_name,
            "name": self.name,
            "attributes": self.attributes,
        }

    def as_entity(self) -> CatalogEntity:
        """Plain CatalogEntity view of this object, as stored in a snapshot."""
        return CatalogEntity(
            qualified_name=self.qualified_name,
            name=self.name,
            kind=self.kind,
            type_name=self.type_name,
            created_at=self.created_at,
            attributes=dict(self.attributes),
        )


class Asset(CatalogEntity):
    """Database-level asset; its qualified name is the scope base name."""

    kind: EntityKind = EntityKind.ASSET
    type_name: str = SemanticType.DATABASE.value


class Column(CatalogEntity):
    """A table column. The data type string lives in attributes['data_type']."""

    kind: EntityKind = EntityKind.COLUMN
    type_name: str = SemanticType.RELATIONAL_COLUMN.value

    @property
    def data_type(self) -> Optional[str]:
        return self.attributes.get("data_type")


class Table(CatalogEntity):
    """
    A table owning an ordered sequence of columns.

    Column order follows the source and matters for display only; each
    column's qualified name is derived from the table's.
    """

    kind: EntityKind = EntityKind.TABLE
    type_name: str = SemanticType.RELATIONAL_TABLE.value
    columns: List[Column] = Field(default_factory=list, description="Columns in source order")

    def column(self, name: str) -> Optional[Column]:
        """Look up a column by display name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def entities(self) -> List[CatalogEntity]:
        """The table followed by its columns, as plain snapshot entities."""
        return [self.as_entity()] + [c.as_entity() for c in self.columns]


# =============================================================================
# SOURCE DESCRIPTORS
# =============================================================================

class ColumnDescriptor(BaseCatalogModel):
    """Column as reported by the external source."""

    name: str
    type_name: str = Field(..., alias='type')
    comment: Optional[str] = None


class TableDescriptor(BaseCatalogModel):
    """
    Table as reported by the external source.

    No validation beyond types happens here; the model builder decides
    whether the descriptor can be given a stable identity.
    """

    name: str
    table_type: Optional[str] = None
    created_at: Optional[datetime] = None
    columns: List[ColumnDescriptor] = Field(default_factory=list)
    owner: Optional[str] = None
    comment: Optional[str] = None

    @classmethod
    def from_pairs(
        cls,
        name: str,
        columns: Iterable[Tuple[str, str]],
        table_type: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> TableDescriptor:
        """Build a descriptor from ordered (column name, column type) pairs."""
        return cls(
            name=name,
            table_type=table_type,
            created_at=created_at,
            columns=[ColumnDescriptor(name=n, type=t) for n, t in columns],
        )


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass
class Snapshot:
    """
    Last successfully emitted state for one scope.

    Maps qualified name to entity. A snapshot is consistent when every column
    hangs off a table present in the same snapshot.
    """

    scope: Scope
    entries: Dict[str, CatalogEntity] = field(default_factory=dict)

    @classmethod
    def of(cls, scope: Scope, entities: Iterable[CatalogEntity]) -> Snapshot:
        return cls(scope=scope, entries={e.qualified_name: e for e in entities})

    def get(self, qualified_name: str) -> Optional[CatalogEntity]:
        return self.entries.get(qualified_name)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntity]:
        return iter(self.entries.values())

    def entities(self) -> List[CatalogEntity]:
        return list(self.entries.values())

    def subtree(self, qualified_name: str) -> List[CatalogEntity]:
        """The entity with this qualified name and everything beneath it."""
        return [e for qn, e in self.entries.items() if is_within(qn, qualified_name)]

    def orphans(self) -> List[CatalogEntity]:
        """Columns whose owning table is missing from the snapshot."""
        out: List[CatalogEntity] = []
        for entity in self.entries.values():
            if entity.kind != EntityKind.COLUMN:
                continue
            parent = self.entries.get(entity.parent_qualified_name or "")
            if parent is None or parent.kind != EntityKind.TABLE:
                out.append(entity)
        return out

    def is_consistent(self) -> bool:
        return not self.orphans()

    def copy(self) -> Snapshot:
        return Snapshot(scope=self.scope, entries=dict(self.entries))
