"""
External catalog clients.

The sync coordinator talks to the external metadata service only through
the CatalogClient contract. Alternate sources are supplied by passing a
different client, never by subclassing the coordinator.

UnityCatalogClient adapts the Databricks SDK; Unity Catalog schemas play
the role of databases.
"""

import fnmatch
import logging
from datetime import datetime, timezone
from typing import List, Optional

from databricks.sdk import WorkspaceClient
from databricks.sdk.errors import DatabricksError, NotFound, ResourceDoesNotExist
from databricks.sdk.service.catalog import TableInfo
from typing_extensions import Protocol

from catalogsync.errors import CatalogUnavailable, TableNotFound
from catalogsync.models import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    """Read-only view of an external catalog."""

    def list_tables(self, catalog: str, database: str, pattern: str = "*") -> List[str]:
        """
        List table names in a database.

        Raises:
            CatalogUnavailable: If the source cannot be reached
        """
        ...

    def get_table(self, catalog: str, database: str, table_name: str) -> TableDescriptor:
        """
        Fetch one table's descriptor.

        Raises:
            TableNotFound: If the table does not exist
            CatalogUnavailable: If the source cannot be reached
        """
        ...


class UnityCatalogClient:
    """CatalogClient backed by the Databricks SDK Unity Catalog APIs."""

    def __init__(self, client: WorkspaceClient) -> None:
        self.client = client

    def list_tables(self, catalog: str, database: str, pattern: str = "*") -> List[str]:
        """List table names in catalog.database matching a glob pattern."""
        try:
            names = [
                t.name
                for t in self.client.tables.list(catalog_name=catalog, schema_name=database)
                if t.name
            ]
        except (DatabricksError, OSError) as e:
            raise CatalogUnavailable(f"Cannot list tables in {catalog}.{database}: {e}") from e

        if pattern and pattern != "*":
            names = [n for n in names if fnmatch.fnmatchcase(n, pattern)]
        logger.debug(f"Listed {len(names)} table(s) in {catalog}.{database}")
        return names

    def get_table(self, catalog: str, database: str, table_name: str) -> TableDescriptor:
        """Fetch a table by name and convert it to a TableDescriptor."""
        full_name = f"{catalog}.{database}.{table_name}"
        try:
            info = self.client.tables.get(full_name=full_name)
        except (ResourceDoesNotExist, NotFound) as e:
            raise TableNotFound(table_name, f"Table not found: {full_name}") from e
        except (DatabricksError, OSError) as e:
            raise CatalogUnavailable(f"Cannot read table {full_name}: {e}") from e
        return self._from_info(info, table_name)

    @staticmethod
    def _from_info(info: TableInfo, requested_name: str) -> TableDescriptor:
        """Convert SDK TableInfo to a TableDescriptor."""
        table_type = getattr(info, "table_type", None)
        if table_type is not None:
            table_type = getattr(table_type, "value", str(table_type))

        columns = list(info.columns or [])
        if all(c.position is not None for c in columns):
            columns.sort(key=lambda c: c.position)

        return TableDescriptor(
            name=info.name if info.name is not None else requested_name,
            table_type=table_type,
            created_at=_from_epoch_millis(info.created_at),
            columns=[
                ColumnDescriptor(
                    name=c.name or "",
                    type=c.type_text or (c.type_name.value if c.type_name else ""),
                    comment=c.comment,
                )
                for c in columns
            ],
            owner=info.owner,
            comment=info.comment,
        )


def _from_epoch_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
