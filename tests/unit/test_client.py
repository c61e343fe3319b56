"""
Unit tests for UnityCatalogClient.

The workspace client is replaced by a mock; SDK model objects are real.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from databricks.sdk.errors import DatabricksError, NotFound
from databricks.sdk.service.catalog import ColumnInfo, ColumnTypeName, TableInfo, TableType

from catalogsync.client import UnityCatalogClient
from catalogsync.errors import CatalogUnavailable, TableNotFound


@pytest.fixture
def workspace() -> MagicMock:
    return MagicMock()


@pytest.fixture
def uc_client(workspace: MagicMock) -> UnityCatalogClient:
    return UnityCatalogClient(workspace)


class TestListTables:
    """Tests for list_tables()."""

    def test_lists_names(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.list.return_value = [TableInfo(name="orders"), TableInfo(name="customers")]

        assert uc_client.list_tables("main", "sales") == ["orders", "customers"]
        workspace.tables.list.assert_called_once_with(catalog_name="main", schema_name="sales")

    def test_pattern_filters(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        """Names are filtered with a case-sensitive glob."""
        workspace.tables.list.return_value = [
            TableInfo(name="fact_orders"),
            TableInfo(name="dim_customer"),
            TableInfo(name="Fact_returns"),
        ]
        assert uc_client.list_tables("main", "sales", "fact_*") == ["fact_orders"]

    def test_sdk_error_is_unavailable(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.list.side_effect = DatabricksError("service unavailable")
        with pytest.raises(CatalogUnavailable) as exc_info:
            uc_client.list_tables("main", "sales")
        assert "main.sales" in str(exc_info.value)

    def test_network_error_is_unavailable(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.list.side_effect = ConnectionError("reset by peer")
        with pytest.raises(CatalogUnavailable):
            uc_client.list_tables("main", "sales")


class TestGetTable:
    """Tests for get_table()."""

    def test_converts_table_info(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        """TableInfo fields map onto the descriptor."""
        workspace.tables.get.return_value = TableInfo(
            name="orders",
            table_type=TableType.MANAGED,
            created_at=1706365800000,
            owner="data_team",
            comment="Orders fact",
            columns=[
                ColumnInfo(name="id", type_text="bigint", position=0),
                ColumnInfo(name="amount", type_text="decimal(10,2)", position=1, comment="Gross"),
            ],
        )

        descriptor = uc_client.get_table("main", "sales", "orders")

        workspace.tables.get.assert_called_once_with(full_name="main.sales.orders")
        assert descriptor.name == "orders"
        assert descriptor.table_type == "MANAGED"
        assert descriptor.created_at == datetime(2024, 1, 27, 14, 30, tzinfo=timezone.utc)
        assert descriptor.owner == "data_team"
        assert [(c.name, c.type_name) for c in descriptor.columns] == [
            ("id", "bigint"),
            ("amount", "decimal(10,2)"),
        ]
        assert descriptor.columns[1].comment == "Gross"

    def test_columns_sorted_by_position(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.get.return_value = TableInfo(
            name="t",
            columns=[
                ColumnInfo(name="b", type_text="int", position=1),
                ColumnInfo(name="a", type_text="int", position=0),
            ],
        )
        descriptor = uc_client.get_table("main", "sales", "t")
        assert [c.name for c in descriptor.columns] == ["a", "b"]

    def test_type_name_fallback(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        """Without type_text the SDK type name is used."""
        workspace.tables.get.return_value = TableInfo(
            name="t",
            columns=[ColumnInfo(name="a", type_name=ColumnTypeName.INT)],
        )
        descriptor = uc_client.get_table("main", "sales", "t")
        assert descriptor.columns[0].type_name == "INT"
        assert descriptor.created_at is None

    def test_not_found(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.get.side_effect = NotFound("TABLE_DOES_NOT_EXIST")
        with pytest.raises(TableNotFound) as exc_info:
            uc_client.get_table("main", "sales", "gone")
        assert exc_info.value.table_name == "gone"

    def test_other_error_is_unavailable(self, uc_client: UnityCatalogClient, workspace: MagicMock) -> None:
        workspace.tables.get.side_effect = DatabricksError("internal error")
        with pytest.raises(CatalogUnavailable):
            uc_client.get_table("main", "sales", "orders")
