"""
Schema Introspector - catalog metadata for one side of the migration.

All lookups go to the catalog (INFORMATION_SCHEMA or the engine's system views), never
to the table's rows, so they stay cheap on very large tables. Row counting is the one
exception and is only used for progress and dry-run reporting.
"""

import logging
from typing import Dict, List, Tuple

import pyodbc

from .connection_manager import DatabaseSession
from ..exceptions import SchemaValidationError
from ..interfaces import SchemaIntrospectorInterface


class SchemaIntrospector(SchemaIntrospectorInterface):
    """Catalog queries against a DatabaseSession, cached per table for the run."""

    def __init__(self, session: DatabaseSession):
        self.logger = logging.getLogger(__name__)
        self.session = session
        self.dialect = session.dialect
        self.schema = session.schema
        self._columns_cache: Dict[str, List[str]] = {}
        self._primary_key_cache: Dict[str, Tuple[List[str], bool]] = {}

    def table_exists(self, table: str) -> bool:
        count = self._query_catalog(self.dialect.table_exists_sql(), [self.schema, table], scalar=True)
        return bool(count)

    def get_columns(self, table: str) -> List[str]:
        if table not in self._columns_cache:
            rows = self._query_catalog(self.dialect.columns_sql(), [self.schema, table])
            self._columns_cache[table] = [row[0] for row in rows]
        return list(self._columns_cache[table])

    def get_primary_key(self, table: str) -> List[str]:
        """
        Primary key columns in key order.

        Tables without a declared primary key fall back to a column named "id"
        when one exists, matching how the migrated schema names its keys.
        """
        key, _ = self._primary_key(table)
        return list(key)

    def is_primary_key_declared(self, table: str) -> bool:
        """False when get_primary_key returned the 'id' fallback."""
        _, declared = self._primary_key(table)
        return declared

    def _primary_key(self, table: str) -> Tuple[List[str], bool]:
        if table not in self._primary_key_cache:
            rows = self._query_catalog(self.dialect.primary_key_sql(), [self.schema, table])
            key = [row[0] for row in rows]
            declared = bool(key)
            if not key and 'id' in self.get_columns(table):
                self.logger.debug(f"No primary key declared on {table}; using 'id'")
                key = ['id']
            self._primary_key_cache[table] = (key, declared)
        return self._primary_key_cache[table]

    def count_rows(self, table: str) -> int:
        try:
            count = self.session.query_scalar(self.dialect.count_rows_sql(self.schema, table))
            return int(count or 0)
        except pyodbc.Error as e:
            self.logger.warning(f"Could not count rows in {self.session.name}.{table}: {e}")
            return 0

    def get_foreign_keys(self) -> List[Tuple[str, str]]:
        rows = self._query_catalog(self.dialect.foreign_keys_sql(), [self.schema])
        return [(row[0], row[1]) for row in rows]

    def get_identity_columns(self, table: str) -> List[str]:
        rows = self._query_catalog(self.dialect.identity_columns_sql(), [self.schema, table])
        return [row[0] for row in rows]

    @staticmethod
    def reconcile_columns(source_columns: List[str], target_columns: List[str]) -> List[str]:
        """
        Columns present on both sides, in source order.

        Args:
            source_columns: Source table columns in ordinal order
            target_columns: Target table columns

        Returns:
            The intersection, preserving source ordering
        """
        target_set = set(target_columns)
        return [col for col in source_columns if col in target_set]

    def _query_catalog(self, sql: str, params: List, scalar: bool = False):
        try:
            if scalar:
                return self.session.query_scalar(sql, params)
            return self.session.query_all(sql, params)
        except pyodbc.Error as e:
            raise SchemaValidationError(f"Catalog query failed on {self.session.name}: {e}")
