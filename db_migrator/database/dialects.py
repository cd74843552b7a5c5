"""
SQL dialects for the supported database engines.

Source and target always speak the same dialect; the dialect is chosen once per
connection string and owns every piece of SQL text the engine sends: identifier
quoting, catalog queries, paginated reads, upserts, clears and constraint
suspension. All statements use pyodbc '?' parameter markers.
"""

from typing import List, Optional
from urllib.parse import urlsplit, unquote, parse_qsl

from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import ConfigurationError


class SqlDialect:
    """Base dialect holding the INFORMATION_SCHEMA queries shared by all engines."""

    name = "generic"
    default_schema = "dbo"

    def quote(self, identifier: str) -> str:
        raise NotImplementedError

    def qualify(self, schema: str, table: str) -> str:
        return f"{self.quote(schema)}.{self.quote(table)}"

    def to_odbc_connection_string(self, connection_string: str) -> str:
        return connection_string

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    def base_table_count_sql(self) -> str:
        return ("SELECT COUNT(*) FROM information_schema.tables "
                "WHERE table_schema = ? AND table_type = 'BASE TABLE'")

    def table_exists_sql(self) -> str:
        return ("SELECT COUNT(*) FROM information_schema.tables "
                "WHERE table_schema = ? AND table_name = ?")

    def columns_sql(self) -> str:
        return ("SELECT column_name FROM information_schema.columns "
                "WHERE table_schema = ? AND table_name = ? "
                "ORDER BY ordinal_position")

    def primary_key_sql(self) -> str:
        return ("SELECT kcu.column_name "
                "FROM information_schema.table_constraints tc "
                "JOIN information_schema.key_column_usage kcu "
                "  ON tc.constraint_schema = kcu.constraint_schema "
                " AND tc.constraint_name = kcu.constraint_name "
                " AND tc.table_name = kcu.table_name "
                "WHERE tc.constraint_type = 'PRIMARY KEY' "
                "  AND tc.table_schema = ? AND tc.table_name = ? "
                "ORDER BY kcu.ordinal_position")

    def foreign_keys_sql(self) -> str:
        """Query returning (child_table, parent_table) rows for one schema parameter."""
        raise NotImplementedError

    def identity_columns_sql(self) -> str:
        """Query returning identity column names for (schema, table) parameters."""
        raise NotImplementedError

    def count_rows_sql(self, schema: str, table: str) -> str:
        return f"SELECT COUNT(*) FROM {self.qualify(schema, table)}"

    # ------------------------------------------------------------------
    # Data movement
    # ------------------------------------------------------------------

    def select_batch_sql(self, schema: str, table: str, columns: List[str], order_columns: List[str],
                         batch_size: int, keyset: bool = False, offset: int = 0) -> str:
        """
        Build the statement that reads one batch of source rows.

        Args:
            schema: Source schema
            table: Source table
            columns: Columns to read, in order
            order_columns: Stable ordering, normally the primary key
            batch_size: Maximum rows per batch
            keyset: Add a "key > ?" predicate on the single order column
            offset: Rows to skip when keyset is False
        """
        raise NotImplementedError

    def upsert_sql(self, schema: str, table: str, columns: List[str], key_columns: List[str],
                   override_identity: bool = False) -> str:
        raise NotImplementedError

    def delete_all_sql(self, schema: str, table: str) -> str:
        return f"DELETE FROM {self.qualify(schema, table)}"

    def suspend_constraints_sql(self, schema: str, tables: List[str]) -> List[str]:
        raise NotImplementedError

    def restore_constraints_sql(self, schema: str, tables: List[str]) -> List[str]:
        raise NotImplementedError

    def identity_insert_sql(self, schema: str, table: str, enabled: bool) -> Optional[str]:
        """Statement toggling explicit identity inserts, or None when the engine has no such switch."""
        return None

    def _column_list(self, columns: List[str]) -> str:
        return ', '.join(self.quote(c) for c in columns)

    def _order_by(self, order_columns: List[str]) -> str:
        return ', '.join(f"{self.quote(c)} ASC" for c in order_columns)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PostgresDialect(SqlDialect):
    """PostgreSQL through the psqlODBC driver."""

    name = "postgresql"
    default_schema = "public"

    _URL_QUERY_KEYS = {
        'sslmode': 'SSLmode',
        'application_name': 'ApplicationName',
        'connect_timeout': 'ConnectTimeout',
    }

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def to_odbc_connection_string(self, connection_string: str) -> str:
        """
        Convert a postgresql:// URL into an ODBC connection string.

        ODBC connection strings are returned unchanged.

        Raises:
            ConfigurationError: If the URL has no host or database name
        """
        if not connection_string.lower().startswith(('postgresql://', 'postgres://')):
            return connection_string

        parts = urlsplit(connection_string)
        database = unquote(parts.path.lstrip('/'))
        if not parts.hostname or not database:
            raise ConfigurationError("PostgreSQL URL must include a host and a database name")

        odbc = (f"DRIVER={{{ProcessingDefaults.POSTGRES_ODBC_DRIVER}}};"
                f"SERVER={parts.hostname};"
                f"PORT={parts.port or 5432};"
                f"DATABASE={database};")
        if parts.username:
            odbc += f"UID={unquote(parts.username)};"
        if parts.password:
            odbc += f"PWD={{{unquote(parts.password)}}};"
        for key, value in parse_qsl(parts.query):
            odbc_key = self._URL_QUERY_KEYS.get(key.lower())
            if odbc_key:
                odbc += f"{odbc_key}={value};"
        return odbc

    def foreign_keys_sql(self) -> str:
        return ("SELECT DISTINCT child.relname, parent.relname "
                "FROM pg_catalog.pg_constraint c "
                "JOIN pg_catalog.pg_class child ON c.conrelid = child.oid "
                "JOIN pg_catalog.pg_class parent ON c.confrelid = parent.oid "
                "JOIN pg_catalog.pg_namespace n ON child.relnamespace = n.oid "
                "WHERE c.contype = 'f' AND n.nspname = ?")

    def identity_columns_sql(self) -> str:
        return ("SELECT column_name FROM information_schema.columns "
                "WHERE table_schema = ? AND table_name = ? AND is_identity = 'YES'")

    def select_batch_sql(self, schema, table, columns, order_columns, batch_size, keyset=False, offset=0):
        sql = f"SELECT {self._column_list(columns)} FROM {self.qualify(schema, table)}"
        if keyset:
            sql += f" WHERE {self.quote(order_columns[0])} > ?"
        sql += f" ORDER BY {self._order_by(order_columns)} LIMIT {int(batch_size)}"
        if not keyset and offset:
            sql += f" OFFSET {int(offset)}"
        return sql

    def upsert_sql(self, schema, table, columns, key_columns, override_identity=False):
        placeholders = ', '.join('?' for _ in columns)
        sql = f"INSERT INTO {self.qualify(schema, table)} ({self._column_list(columns)})"
        if override_identity:
            sql += " OVERRIDING SYSTEM VALUE"
        sql += f" VALUES ({placeholders})"
        if not key_columns:
            return sql

        updates = [c for c in columns if c not in key_columns]
        sql += f" ON CONFLICT ({self._column_list(key_columns)})"
        if updates:
            assignments = ', '.join(f"{self.quote(c)} = EXCLUDED.{self.quote(c)}" for c in updates)
            sql += f" DO UPDATE SET {assignments}"
        else:
            sql += " DO NOTHING"
        return sql

    def suspend_constraints_sql(self, schema, tables):
        return ["SET session_replication_role = replica"]

    def restore_constraints_sql(self, schema, tables):
        return ["SET session_replication_role = DEFAULT"]


class SqlServerDialect(SqlDialect):
    """Microsoft SQL Server through the Microsoft ODBC driver."""

    name = "sqlserver"
    default_schema = "dbo"

    def quote(self, identifier: str) -> str:
        return '[' + identifier.replace(']', ']]') + ']'

    def foreign_keys_sql(self) -> str:
        return ("SELECT DISTINCT OBJECT_NAME(fk.parent_object_id), OBJECT_NAME(fk.referenced_object_id) "
                "FROM sys.foreign_keys fk "
                "WHERE OBJECT_SCHEMA_NAME(fk.parent_object_id) = ?")

    def identity_columns_sql(self) -> str:
        return ("SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
                "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? "
                "AND COLUMNPROPERTY(OBJECT_ID(QUOTENAME(TABLE_SCHEMA) + '.' + QUOTENAME(TABLE_NAME)), "
                "COLUMN_NAME, 'IsIdentity') = 1")

    def select_batch_sql(self, schema, table, columns, order_columns, batch_size, keyset=False, offset=0):
        qualified = self.qualify(schema, table)
        if keyset:
            return (f"SELECT TOP ({int(batch_size)}) {self._column_list(columns)} FROM {qualified} "
                    f"WHERE {self.quote(order_columns[0])} > ? "
                    f"ORDER BY {self._order_by(order_columns)}")
        return (f"SELECT {self._column_list(columns)} FROM {qualified} "
                f"ORDER BY {self._order_by(order_columns)} "
                f"OFFSET {int(offset)} ROWS FETCH NEXT {int(batch_size)} ROWS ONLY")

    def upsert_sql(self, schema, table, columns, key_columns, override_identity=False):
        qualified = self.qualify(schema, table)
        column_list = self._column_list(columns)
        if not key_columns:
            placeholders = ', '.join('?' for _ in columns)
            return f"INSERT INTO {qualified} ({column_list}) VALUES ({placeholders})"

        source_values = ', '.join(f"? AS {self.quote(c)}" for c in columns)
        match = ' AND '.join(f"tgt.{self.quote(c)} = src.{self.quote(c)}" for c in key_columns)
        sql = (f"MERGE INTO {qualified} AS tgt "
               f"USING (SELECT {source_values}) AS src "
               f"ON {match}")
        updates = [c for c in columns if c not in key_columns]
        if updates:
            assignments = ', '.join(f"tgt.{self.quote(c)} = src.{self.quote(c)}" for c in updates)
            sql += f" WHEN MATCHED THEN UPDATE SET {assignments}"
        inserted = ', '.join(f"src.{self.quote(c)}" for c in columns)
        sql += f" WHEN NOT MATCHED THEN INSERT ({column_list}) VALUES ({inserted});"
        return sql

    def suspend_constraints_sql(self, schema, tables):
        return [f"ALTER TABLE {self.qualify(schema, t)} NOCHECK CONSTRAINT ALL" for t in tables]

    def restore_constraints_sql(self, schema, tables):
        return [f"ALTER TABLE {self.qualify(schema, t)} CHECK CONSTRAINT ALL" for t in tables]

    def identity_insert_sql(self, schema, table, enabled):
        return f"SET IDENTITY_INSERT {self.qualify(schema, table)} {'ON' if enabled else 'OFF'}"


def dialect_for(connection_string: str) -> SqlDialect:
    """
    Pick the dialect for a connection string.

    postgresql:// URLs and ODBC strings naming a PostgreSQL driver select
    PostgresDialect; everything else is treated as SQL Server.
    """
    lowered = (connection_string or '').strip().lower()
    if lowered.startswith(('postgresql://', 'postgres://')):
        return PostgresDialect()
    for part in lowered.split(';'):
        key, _, value = part.partition('=')
        if key.strip() == 'driver' and ('postgres' in value or 'psql' in value):
            return PostgresDialect()
    return SqlServerDialect()
