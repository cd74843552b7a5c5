"""
Connection Manager - opens and verifies the source and target connections.

Each side of a migration gets exactly one DatabaseSession per run. Opening a session
establishes the pyodbc connection, issues a liveness query and counts the base tables
in the configured schema so the operator can see at a glance that the right database
was reached. Failures are returned as a ConnectionResult instead of raised, so the
caller decides whether the run can start.
"""

import logging

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import pyodbc

from .dialects import SqlDialect, SqlServerDialect, dialect_for
from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import ConfigurationError, DatabaseConnectionError
from ..models import ConnectionDescriptor


class DatabaseSession:
    """
    A live connection to one database together with its dialect and schema.

    The session is closed exactly once; further close() calls are no-ops.
    """

    def __init__(self, connection, dialect: SqlDialect, schema: str, name: str = "Database"):
        self.logger = logging.getLogger(__name__)
        self.connection = connection
        self.dialect = dialect
        self.schema = schema
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, sql: str, params: Sequence[Any] = ()):
        """Execute a statement and return the open cursor."""
        if self._closed:
            raise DatabaseConnectionError(f"{self.name} connection is already closed")
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"[{self.name}] SQL: {sql} params={list(params)}")
        cursor = self.connection.cursor()
        if params:
            cursor.execute(sql, list(params))
        else:
            cursor.execute(sql)
        return cursor

    def query_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        cursor = self.execute(sql, params)
        try:
            row = cursor.fetchone()
            return row[0] if row else None
        finally:
            cursor.close()

    def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        cursor = self.execute(sql, params)
        try:
            return [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.connection.close()
            self.logger.debug(f"{self.name} connection closed")
        except pyodbc.Error as e:
            self.logger.warning(f"Error closing {self.name} connection: {e}")

    def __enter__(self) -> 'DatabaseSession':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class ConnectionResult:
    """
    Outcome of opening a connection.

    Attributes:
        success: Whether the connection is live
        message: Human readable summary, or the raw driver error on failure
        session: The live session when success is True
    """
    success: bool
    message: str
    session: Optional[DatabaseSession] = None


class ConnectionManager:
    """Creates verified database sessions with bounded pool and timeout settings."""

    def __init__(self,
                 pool_max_size: int = ProcessingDefaults.CONNECTION_POOL_MAX,
                 idle_timeout_seconds: int = ProcessingDefaults.IDLE_TIMEOUT,
                 connect_timeout_seconds: int = ProcessingDefaults.CONNECTION_TIMEOUT):
        """
        Initialize the connection manager.

        Args:
            pool_max_size: Maximum pooled connections per connection string
            idle_timeout_seconds: How long an idle pooled connection is kept
            connect_timeout_seconds: Login timeout passed to the driver
        """
        self.logger = logging.getLogger(__name__)
        self.pool_max_size = pool_max_size
        self.idle_timeout_seconds = idle_timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        # Driver manager pooling must be decided before the first connect
        pyodbc.pooling = True

    def build_connection_string(self, descriptor: ConnectionDescriptor, dialect: SqlDialect) -> str:
        """
        Translate the descriptor into the ODBC connection string handed to pyodbc.

        SQL Server strings get pool bounds appended unless the caller set them.
        psqlODBC has no such keywords; its pooling is governed by the ODBC driver manager.
        """
        conn_string = dialect.to_odbc_connection_string(descriptor.connection_string.strip())
        if not isinstance(dialect, SqlServerDialect):
            self.logger.debug(f"{descriptor.name}: pool size and idle timeout come from the ODBC driver "
                              f"manager for {dialect.name}; pool_max_size={self.pool_max_size} "
                              f"and idle_timeout_seconds={self.idle_timeout_seconds} not applied")
        elif 'pool size' not in conn_string.lower():
            if not conn_string.endswith(';'):
                conn_string += ';'
            conn_string += (f"Pooling=True;"
                            f"Max Pool Size={self.pool_max_size};"
                            f"Connection Lifetime={self.idle_timeout_seconds};")
        return conn_string

    def open(self, descriptor: ConnectionDescriptor) -> ConnectionResult:
        """
        Open, verify and return a session for one side of the migration.

        Never raises for connection problems; the failure message is returned instead.
        """
        connection = None
        try:
            dialect = dialect_for(descriptor.connection_string)
            schema = descriptor.schema or dialect.default_schema
            conn_string = self.build_connection_string(descriptor, dialect)
            self.logger.info(f"Connecting to {descriptor.name} ({dialect.name}): {descriptor.masked()}")

            connection = pyodbc.connect(conn_string, autocommit=True, timeout=self.connect_timeout_seconds)
            connection.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
            connection.setdecoding(pyodbc.SQL_WCHAR, encoding='utf-8')
            connection.setencoding(encoding='utf-8')

            session = DatabaseSession(connection, dialect, schema, name=descriptor.name)
            session.query_scalar("SELECT 1")
            table_count = session.query_scalar(dialect.base_table_count_sql(), [schema])

            return ConnectionResult(
                success=True,
                message=f"Connected. Found {table_count} tables.",
                session=session,
            )
        except (pyodbc.Error, ConfigurationError) as e:
            if connection is not None:
                try:
                    connection.close()
                except pyodbc.Error:
                    pass  # Keep the original error
            self.logger.debug(f"{descriptor.name} connection failed: {e}")
            return ConnectionResult(success=False, message=str(e))

    @contextmanager
    def connected(self, descriptor: ConnectionDescriptor):
        """
        Context manager yielding a verified session that is always closed.

        Raises:
            DatabaseConnectionError: If the connection cannot be established
        """
        result = self.open(descriptor)
        if not result.success:
            raise DatabaseConnectionError(f"{descriptor.name} database connection failed: {result.message}")
        try:
            yield result.session
        finally:
            result.session.close()
