"""
Row store - batched reads and single-row writes over a DatabaseSession.

Reads return tagged rows (column -> RowValue) so values cross from source to target
without implicit coercion; writes bind RowValue.to_parameter() values positionally.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import pyodbc

from .connection_manager import DatabaseSession
from ..interfaces import RowStoreInterface
from ..models import Row, row_from_values


class SqlRowStore(RowStoreInterface):
    """RowStoreInterface implementation issuing dialect SQL through pyodbc."""

    def __init__(self, session: DatabaseSession):
        self.logger = logging.getLogger(__name__)
        self.session = session
        self.dialect = session.dialect
        self.schema = session.schema
        # Upsert statements are rebuilt only when the column set changes
        self._upsert_cache: Dict[Tuple, str] = {}

    def fetch_batch(self, table: str, columns: List[str], order_columns: List[str], batch_size: int,
                    after_key: Optional[Any] = None, offset: int = 0) -> List[Row]:
        keyset = after_key is not None
        sql = self.dialect.select_batch_sql(
            self.schema, table, columns, order_columns, batch_size, keyset=keyset, offset=offset
        )
        params = [after_key] if keyset else []
        rows = self.session.query_all(sql, params)
        return [row_from_values(columns, values) for values in rows]

    def upsert_row(self, table: str, columns: List[str], key_columns: List[str], row: Row,
                   override_identity: bool = False) -> None:
        cache_key = (table, tuple(columns), tuple(key_columns), override_identity)
        sql = self._upsert_cache.get(cache_key)
        if sql is None:
            sql = self.dialect.upsert_sql(self.schema, table, columns, key_columns, override_identity)
            self._upsert_cache[cache_key] = sql
        params = [row[col].to_parameter() for col in columns]
        cursor = self.session.execute(sql, params)
        cursor.close()

    def delete_all(self, table: str) -> None:
        cursor = self.session.execute(self.dialect.delete_all_sql(self.schema, table))
        cursor.close()

    def set_identity_insert(self, table: str, enabled: bool) -> None:
        sql = self.dialect.identity_insert_sql(self.schema, table, enabled)
        if sql:
            cursor = self.session.execute(sql)
            cursor.close()

    def suspend_constraints(self, tables: List[str]) -> None:
        for sql in self.dialect.suspend_constraints_sql(self.schema, tables):
            cursor = self.session.execute(sql)
            cursor.close()

    def restore_constraints(self, tables: List[str]) -> None:
        """Run every restore statement even if one fails, then raise the first failure."""
        first_error = None
        for sql in self.dialect.restore_constraints_sql(self.schema, tables):
            try:
                cursor = self.session.execute(sql)
                cursor.close()
            except pyodbc.Error as e:
                self.logger.error(f"Constraint restore statement failed: {sql}: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
