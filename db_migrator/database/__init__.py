"""
Database module for the migration system.

Connections, dialect SQL, catalog introspection, row reads/writes and the
target integrity guard.
"""

from .connection_manager import ConnectionManager, ConnectionResult, DatabaseSession
from .dialects import PostgresDialect, SqlDialect, SqlServerDialect, dialect_for
from .integrity_guard import IntegrityGuard
from .row_store import SqlRowStore
from .schema_introspector import SchemaIntrospector
from .upsert_strategy import UpsertOutcome, UpsertStrategy

__all__ = [
    'ConnectionManager',
    'ConnectionResult',
    'DatabaseSession',
    'SqlDialect',
    'PostgresDialect',
    'SqlServerDialect',
    'dialect_for',
    'IntegrityGuard',
    'SqlRowStore',
    'SchemaIntrospector',
    'UpsertOutcome',
    'UpsertStrategy',
]
