"""
Abstract interfaces and base classes for the database migration system.

This module defines the contracts that the migration components implement so the
copy engine can run against live pyodbc connections in production and against
in-memory doubles in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from .models import MigrationConfig, MigrationReport, Row


class SchemaIntrospectorInterface(ABC):
    """Abstract interface for catalog introspection of one database."""

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """
        Check whether a table exists in the configured schema.

        Args:
            table: Table name

        Returns:
            True if the catalog lists the table
        """
        pass

    @abstractmethod
    def get_columns(self, table: str) -> List[str]:
        """
        List a table's columns in ordinal order.

        Args:
            table: Table name

        Returns:
            Column names, empty if the table has none or does not exist
        """
        pass

    @abstractmethod
    def get_primary_key(self, table: str) -> List[str]:
        """
        List a table's primary key columns in key order.

        Args:
            table: Table name

        Returns:
            Key column names, empty if the table has no primary key
        """
        pass

    @abstractmethod
    def is_primary_key_declared(self, table: str) -> bool:
        """
        Tell whether get_primary_key reports a key constraint from the catalog.

        Returns:
            False when the key is a fallback guess whose values may repeat
        """
        pass

    @abstractmethod
    def count_rows(self, table: str) -> int:
        """
        Count a table's rows.

        Args:
            table: Table name

        Returns:
            Row count, 0 if the table cannot be counted
        """
        pass

    @abstractmethod
    def get_foreign_keys(self) -> List[Tuple[str, str]]:
        """
        List foreign key edges in the schema.

        Returns:
            (child_table, parent_table) pairs; the child references the parent
        """
        pass

    @abstractmethod
    def get_identity_columns(self, table: str) -> List[str]:
        """
        List a table's auto-generated identity columns.

        Args:
            table: Table name

        Returns:
            Identity column names
        """
        pass


class RowStoreInterface(ABC):
    """Abstract interface for reading and writing table rows."""

    @abstractmethod
    def fetch_batch(self, table: str, columns: List[str], order_columns: List[str], batch_size: int,
                    after_key: Optional[Any] = None, offset: int = 0) -> List[Row]:
        """
        Fetch one batch of rows ordered by order_columns.

        Args:
            table: Table name
            columns: Columns to read
            order_columns: Stable ordering columns
            batch_size: Maximum rows to return
            after_key: Keyset position; only rows whose single order column is greater are returned
            offset: Rows to skip when after_key is None

        Returns:
            Rows as column name -> RowValue mappings
        """
        pass

    @abstractmethod
    def upsert_row(self, table: str, columns: List[str], key_columns: List[str], row: Row,
                   override_identity: bool = False) -> None:
        """
        Insert a row, overwriting non-key columns when the key already exists.

        Raises:
            pyodbc.Error: If the database rejects the row
        """
        pass

    @abstractmethod
    def delete_all(self, table: str) -> None:
        """Delete every row of a table."""
        pass

    @abstractmethod
    def set_identity_insert(self, table: str, enabled: bool) -> None:
        """Allow or disallow explicit values for a table's identity column."""
        pass

    @abstractmethod
    def suspend_constraints(self, tables: List[str]) -> None:
        """Stop enforcing referential integrity for the given tables."""
        pass

    @abstractmethod
    def restore_constraints(self, tables: List[str]) -> None:
        """Resume enforcing referential integrity for the given tables."""
        pass


class ReportSinkInterface(ABC):
    """Abstract interface for operator-facing run output."""

    @abstractmethod
    def emit_configuration(self, config: MigrationConfig) -> None:
        """Echo the run configuration with credentials masked."""
        pass

    @abstractmethod
    def emit_connection_status(self, name: str, success: bool, message: str) -> None:
        """Report the outcome of a connectivity test."""
        pass

    @abstractmethod
    def emit_report(self, report: MigrationReport, config: MigrationConfig) -> None:
        """Render the final migration report."""
        pass
