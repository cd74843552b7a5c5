"""
Database Migration System

Copies the complete contents of a source relational database into a target
database of the same engine, table by table in foreign key dependency order,
with idempotent upserts and per-row fault isolation.
"""

__version__ = "1.0.0"

# Import core models and interfaces for easy access
from .models import (
    ConnectionDescriptor,
    MigrationConfig,
    MigrationReport,
    RowError,
    RowValue,
    RunState,
    RunStatus,
    TableSpec,
    TableStats,
    ValueKind
)

from .interfaces import (
    SchemaIntrospectorInterface,
    RowStoreInterface,
    ReportSinkInterface
)

from .exceptions import (
    DBMigrationError,
    ConfigurationError,
    DatabaseConnectionError,
    SchemaValidationError,
    DependencyOrderError,
    BatchFetchError,
    RowMigrationError,
    ConstraintGuardError
)

__all__ = [
    # Core models
    "ConnectionDescriptor",
    "MigrationConfig",
    "MigrationReport",
    "RowError",
    "RowValue",
    "RunState",
    "RunStatus",
    "TableSpec",
    "TableStats",
    "ValueKind",

    # Interfaces
    "SchemaIntrospectorInterface",
    "RowStoreInterface",
    "ReportSinkInterface",

    # Exceptions
    "DBMigrationError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "SchemaValidationError",
    "DependencyOrderError",
    "BatchFetchError",
    "RowMigrationError",
    "ConstraintGuardError"
]
