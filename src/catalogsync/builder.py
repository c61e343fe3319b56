"""
Canonical model builder.

Converts raw table descriptors from a catalog client into canonical Table
entities with stable qualified names. No I/O: the same descriptor and base
name always produce the same Table.
"""

import logging
from typing import Dict, List, Optional

from catalogsync.errors import MalformedDescriptor
from catalogsync.models import (
    SCHEMA_SEGMENT,
    SEPARATOR,
    Asset,
    Column,
    Scope,
    SemanticType,
    Table,
    TableDescriptor,
    join_qualified_name,
)

logger = logging.getLogger(__name__)

# Delimiter of the column-name summary kept on each table
COLUMN_LIST_DELIMITER = ","


class CanonicalModelBuilder:
    """
    Builds canonical entities from source descriptors.

    Qualified names follow the path catalog.database.schema.table.column.
    A name that is empty or contains the separator would make identity
    ambiguous, so such descriptors are rejected with MalformedDescriptor.
    """

    def build(self, descriptor: TableDescriptor, base_qualified_name: str) -> Table:
        """
        Build a Table and its ordered columns from a descriptor.

        Args:
            descriptor: Table as reported by the source
            base_qualified_name: Qualified name of the owning database asset

        Returns:
            Table with its columns materialized in source order

        Raises:
            MalformedDescriptor: If the table or a column cannot be named unambiguously
        """
        table_name = descriptor.name
        self._check_segment(table_name, table_name, "table name")

        table_qualified_name = join_qualified_name(base_qualified_name, SCHEMA_SEGMENT, table_name)

        columns: List[Column] = []
        seen = set()
        for col in descriptor.columns:
            self._check_segment(col.name, table_name, f"column name '{col.name}'")
            if COLUMN_LIST_DELIMITER in col.name:
                raise MalformedDescriptor(
                    table_name, f"column name '{col.name}' contains '{COLUMN_LIST_DELIMITER}'"
                )
            if col.name in seen:
                raise MalformedDescriptor(table_name, f"duplicate column name '{col.name}'")
            seen.add(col.name)
            attributes = {"data_type": col.type_name}
            if col.comment:
                attributes["comment"] = col.comment
            columns.append(Column(
                qualified_name=join_qualified_name(table_qualified_name, col.name),
                name=col.name,
                created_at=descriptor.created_at,
                attributes=attributes,
            ))

        return Table(
            qualified_name=table_qualified_name,
            name=table_name,
            type_name=self._table_type_name(descriptor.table_type),
            created_at=descriptor.created_at,
            attributes=self._table_attributes(descriptor, columns),
            columns=columns,
        )

    def build_asset(self, scope: Scope) -> Asset:
        """Build the database-level asset for a scope."""
        return Asset(
            qualified_name=scope.base_qualified_name,
            name=scope.database,
            attributes={"catalog": scope.catalog},
        )

    @staticmethod
    def _check_segment(value: Optional[str], table_name: str, what: str) -> None:
        if value is None or not value.strip():
            raise MalformedDescriptor(table_name or "", f"{what} is empty")
        if SEPARATOR in value:
            raise MalformedDescriptor(table_name, f"{what} contains the separator '{SEPARATOR}'")

    @staticmethod
    def _table_type_name(table_type: Optional[str]) -> str:
        if table_type and "VIEW" in table_type.upper():
            return SemanticType.RELATIONAL_VIEW.value
        return SemanticType.RELATIONAL_TABLE.value

    @staticmethod
    def _table_attributes(descriptor: TableDescriptor, columns: List[Column]) -> Dict[str, str]:
        # The column summary makes a change in the column set visible on the table itself
        attributes = {"columns": COLUMN_LIST_DELIMITER.join(c.name for c in columns)}
        if descriptor.table_type:
            attributes["table_type"] = descriptor.table_type
        if descriptor.owner:
            attributes["owner"] = descriptor.owner
        if descriptor.comment:
            attributes["comment"] = descriptor.comment
        return attributes
