"""
Core data models for the database migration system.

This module defines the primary data structures used throughout the system
for run configuration, table ordering, row values, statistics and reporting.
"""

import datetime as dt
import uuid

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Dict, Any, FrozenSet, Tuple

from .utils import ConnectionStringUtils


class ValueKind(Enum):
    """Supported kinds of column values moved between databases."""
    NULL = "null"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    BINARY = "binary"


@dataclass(frozen=True)
class RowValue:
    """
    A single column value tagged with its kind.

    Attributes:
        kind: Kind of the value
        value: Python value as returned by the driver (None for NULL)
    """
    kind: ValueKind
    value: Any = None

    @classmethod
    def from_python(cls, value: Any) -> 'RowValue':
        """Tag a raw driver value. bool is checked before int since bool subclasses int."""
        if value is None:
            return cls(ValueKind.NULL)
        if isinstance(value, bool):
            return cls(ValueKind.BOOLEAN, value)
        if isinstance(value, int):
            return cls(ValueKind.INTEGER, value)
        if isinstance(value, float):
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, Decimal):
            return cls(ValueKind.DECIMAL, value)
        if isinstance(value, (dt.datetime, dt.date, dt.time)):
            return cls(ValueKind.TIMESTAMP, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(ValueKind.BINARY, bytes(value))
        if isinstance(value, str):
            return cls(ValueKind.TEXT, value)
        if isinstance(value, uuid.UUID):
            return cls(ValueKind.TEXT, str(value))
        return cls(ValueKind.TEXT, str(value))

    def to_parameter(self) -> Any:
        """Return the value to bind as a query parameter."""
        if self.kind is ValueKind.NULL:
            return None
        return self.value

    def __str__(self) -> str:
        return "NULL" if self.kind is ValueKind.NULL else str(self.value)


Row = Dict[str, RowValue]


def row_from_values(columns: List[str], values) -> Row:
    """Build a tagged row from a sequence of raw values in column order."""
    return {col: RowValue.from_python(val) for col, val in zip(columns, values)}


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    Describes how to reach one side of the migration.

    Attributes:
        connection_string: postgresql:// URL or ODBC connection string
        name: Display name, "Source" or "Target"
        schema: Schema holding the migrated tables (dialect default when None)
    """
    connection_string: str
    name: str = "Database"
    schema: Optional[str] = None

    def masked(self) -> str:
        """Connection string with credentials hidden."""
        return ConnectionStringUtils.mask_credentials(self.connection_string)

    def __repr__(self) -> str:
        return f"ConnectionDescriptor(name={self.name!r}, connection_string={self.masked()!r}, schema={self.schema!r})"


@dataclass(frozen=True)
class MigrationConfig:
    """
    Immutable configuration for a single migration run.

    Attributes:
        source: Source database descriptor
        target: Target database descriptor
        dry_run: Only test connections and count rows
        batch_size: Rows fetched from the source per round-trip
        skip_clear: Keep existing target rows instead of clearing tables first
        verbose: Echo every row error and list error details in the report
        skip_tables: Table names excluded from clearing and copying
        validate_order: Check the table order against the target's foreign keys
        order_file: Optional JSON file overriding the bundled table order
        report_format: "text" or "json"
        max_error_details: Cap on error records kept per table and listed in the report
        pool_max_size: Maximum pooled connections per side
        idle_timeout_seconds: Idle timeout for pooled connections
        connect_timeout_seconds: Login timeout for new connections
    """
    source: ConnectionDescriptor
    target: ConnectionDescriptor
    dry_run: bool = False
    batch_size: int = 1000
    skip_clear: bool = False
    verbose: bool = False
    skip_tables: FrozenSet[str] = frozenset()
    validate_order: bool = True
    order_file: Optional[str] = None
    report_format: str = "text"
    max_error_details: int = 20
    pool_max_size: int = 20
    idle_timeout_seconds: int = 30
    connect_timeout_seconds: int = 10

    def __post_init__(self):
        """Validate run configuration."""
        if not self.source or not self.source.connection_string:
            raise ValueError("source connection string cannot be empty")
        if not self.target or not self.target.connection_string:
            raise ValueError("target connection string cannot be empty")
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ValueError("batch_size must be a positive integer")
        if self.report_format not in ("text", "json"):
            raise ValueError(f"report_format must be 'text' or 'json', got {self.report_format!r}")
        if self.max_error_details < 0:
            raise ValueError("max_error_details cannot be negative")
        # Accept any iterable of names but store an immutable set
        if not isinstance(self.skip_tables, frozenset):
            object.__setattr__(self, 'skip_tables', frozenset(self.skip_tables or ()))


@dataclass(frozen=True)
class TableSpec:
    """
    A table and its position in the dependency order.

    Attributes:
        name: Table name as it appears in the catalog
        rank: Dependency depth; lower ranks have fewer or no dependencies
    """
    name: str
    rank: int = 0

    def __post_init__(self):
        if not self.name:
            raise ValueError("table name cannot be empty")
        if self.rank < 0:
            raise ValueError("rank cannot be negative")


@dataclass(frozen=True)
class RowError:
    """A row that could not be migrated."""
    table: str
    row_id: str
    message: str


@dataclass
class TableStats:
    """
    Counters for one table's migration.

    Attributes:
        table: Table name
        total: Source row count when the table's migration started
        migrated: Rows upserted into the target
        skipped: Rows never attempted because the table was aborted
        errors: Rows whose upsert failed
        start_time: When the table's migration started
        end_time: When it completed or aborted
        error_details: First row errors, capped at max_error_details (errors keeps counting)
        skip_reason: Why the whole table was skipped, if it was
        aborted: Whether a batch fetch failure stopped the table early
    """
    table: str
    total: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    start_time: dt.datetime = field(default_factory=dt.datetime.now)
    end_time: Optional[dt.datetime] = None
    error_details: List[RowError] = field(default_factory=list)
    skip_reason: Optional[str] = None
    aborted: bool = False
    max_error_details: int = 20

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    @property
    def elapsed_seconds(self) -> Optional[float]:
        """Seconds between start and end, or None while the table is still open."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def processed(self) -> int:
        return self.migrated + self.errors

    def add_error(self, error: RowError) -> None:
        self.errors += 1
        if len(self.error_details) < self.max_error_details:
            self.error_details.append(error)


class RunStatus(Enum):
    """Overall outcome of a run."""
    SUCCEEDED = "succeeded"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    DRY_RUN = "dry_run"


class RunState(Enum):
    """Lifecycle states of a single run."""
    INITIALIZING = "initializing"
    CONNECTIONS_VERIFIED = "connections_verified"
    CLEARING_TARGET = "clearing_target"
    CONSTRAINTS_SUSPENDED = "constraints_suspended"
    COPYING_TABLES = "copying_tables"
    CONSTRAINTS_RESTORED = "constraints_restored"
    REPORTED = "reported"
    ABORTED = "aborted"


@dataclass
class MigrationReport:
    """
    Aggregate view over all table statistics of a run.

    Attributes:
        table_stats: Per-table statistics in processing order
        errors: Global row error log, oldest first
        dry_run: Whether the run was a dry run
        duration_seconds: Wall-clock duration of the copy phase
        peak_memory_mb: Highest resident memory observed during the run
        clear_failures: (table, reason) for target tables that could not be cleared
    """
    table_stats: List[TableStats] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    dry_run: bool = False
    duration_seconds: float = 0.0
    peak_memory_mb: float = 0.0
    clear_failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(s.total for s in self.table_stats)

    @property
    def total_migrated(self) -> int:
        return sum(s.migrated for s in self.table_stats)

    @property
    def total_skipped(self) -> int:
        return sum(s.skipped for s in self.table_stats)

    @property
    def total_errors(self) -> int:
        return sum(s.errors for s in self.table_stats)

    @property
    def success_rate(self) -> float:
        """Calculate the share of records migrated as a percentage."""
        if self.total_records == 0:
            return 0.0
        return (self.total_migrated / self.total_records) * 100.0

    @property
    def status(self) -> RunStatus:
        if self.dry_run:
            return RunStatus.DRY_RUN
        if self.total_errors > 0 or self.clear_failures:
            return RunStatus.COMPLETED_WITH_ERRORS
        return RunStatus.SUCCEEDED

    def stats_for(self, table: str) -> Optional[TableStats]:
        for stats in self.table_stats:
            if stats.table == table:
                return stats
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary suitable for JSON serialization."""
        return {
            'status': self.status.value,
            'dry_run': self.dry_run,
            'totals': {
                'records': self.total_records,
                'migrated': self.total_migrated,
                'skipped': self.total_skipped,
                'errors': self.total_errors,
                'success_rate_percent': round(self.success_rate, 1),
            },
            'duration_seconds': round(self.duration_seconds, 2),
            'peak_memory_mb': round(self.peak_memory_mb, 1),
            'tables': [
                {
                    'table': s.table,
                    'total': s.total,
                    'migrated': s.migrated,
                    'skipped': s.skipped,
                    'errors': s.errors,
                    'elapsed_seconds': None if s.elapsed_seconds is None else round(s.elapsed_seconds, 2),
                    'skip_reason': s.skip_reason,
                    'aborted': s.aborted,
                }
                for s in self.table_stats
            ],
            'errors': [
                {'table': e.table, 'id': e.row_id, 'message': e.message}
                for e in self.errors
            ],
            'clear_failures': [
                {'table': table, 'reason': reason}
                for table, reason in self.clear_failures
            ],
        }
