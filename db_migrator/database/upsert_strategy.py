"""
Upsert Strategy - idempotent row writes with per-row fault isolation.

Encapsulates how a batch of source rows is written to the target: every row is
upserted on its own so one bad row (constraint violation, type mismatch, oversized
value) is recorded and skipped without losing the rest of the batch. Re-running the
same batch converges to the same target state because key conflicts overwrite the
non-key columns instead of inserting duplicates.
"""

import logging

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import pyodbc

from ..exceptions import RowMigrationError
from ..interfaces import RowStoreInterface
from ..models import Row, ValueKind


@dataclass
class UpsertOutcome:
    """Result of applying one batch."""
    applied: int = 0
    failures: List[RowMigrationError] = field(default_factory=list)


class UpsertStrategy:
    """
    Strategy for writing rows into a target table one row at a time.

    Row failures are categorized the same way for every dialect so the report
    shows why a row was rejected, not just the raw driver text.
    """

    def __init__(self, logger: logging.Logger = None):
        """
        Initialize upsert strategy.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

    def apply(self,
              store: RowStoreInterface,
              table: str,
              columns: List[str],
              key_columns: List[str],
              rows: List[Row],
              override_identity: bool = False,
              on_error: Optional[Callable[[RowMigrationError], None]] = None) -> UpsertOutcome:
        """
        Upsert every row, isolating failures.

        Args:
            store: Target row store
            table: Target table name
            columns: Reconciled column list, in source order
            key_columns: Conflict key; empty means plain inserts
            rows: Rows from the source batch
            override_identity: Write explicit values into identity columns
            on_error: Called with each failure as soon as it happens

        Returns:
            UpsertOutcome with the applied count and every row failure
        """
        outcome = UpsertOutcome()

        for row in rows:
            try:
                store.upsert_row(table, columns, key_columns, row, override_identity=override_identity)
                outcome.applied += 1
            except pyodbc.Error as e:
                failure = self._categorize(e, table, self.row_identifier(row, key_columns))
                outcome.failures.append(failure)
                if on_error:
                    on_error(failure)
            except (ValueError, TypeError, OverflowError) as e:
                # Raised by the driver while binding a parameter
                failure = RowMigrationError(
                    f"Type conversion error in {table}: {e}",
                    table_name=table,
                    row_id=self.row_identifier(row, key_columns),
                    error_category="type_conversion",
                )
                outcome.failures.append(failure)
                if on_error:
                    on_error(failure)

        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"Upserted {outcome.applied}/{len(rows)} rows into {table} "
                              f"({len(outcome.failures)} failed)")
        return outcome

    @staticmethod
    def row_identifier(row: Row, key_columns: List[str]) -> str:
        """
        Identify a row by its key value(s) for error reporting.

        Returns:
            "42" for a single key, "a=1, b=2" for a composite key, "unknown" when no key value exists
        """
        present = [k for k in key_columns if k in row and row[k].kind is not ValueKind.NULL]
        if not present and 'id' in row and row['id'].kind is not ValueKind.NULL:
            present = ['id']
        if not present:
            return "unknown"
        if len(present) == 1:
            return str(row[present[0]])
        return ', '.join(f"{k}={row[k]}" for k in present)

    def _categorize(self, e: Exception, table: str, row_id: str) -> RowMigrationError:
        """
        Categorize a database error raised for a single row.

        Categories: primary_key_violation, foreign_key_violation, check_constraint_violation,
        not_null_violation, type_conversion, database_error.
        """
        error_str = str(e).lower()

        if 'primary key' in error_str or 'duplicate key' in error_str or 'unique constraint' in error_str:
            category, label = "primary_key_violation", "Primary key violation"
        elif 'foreign key' in error_str:
            category, label = "foreign_key_violation", "Foreign key violation"
        elif 'check constraint' in error_str:
            category, label = "check_constraint_violation", "Check constraint violation"
        elif ('cannot insert the value null' in error_str or 'not null constraint' in error_str
              or 'null value in column' in error_str):
            category, label = "not_null_violation", "NULL constraint violation"
        elif ('cast specification' in error_str or 'converting' in error_str
              or 'invalid input syntax' in error_str or 'out of range' in error_str
              or 'truncated' in error_str or 'too long' in error_str):
            category, label = "type_conversion", "Type conversion error"
        else:
            category, label = "database_error", "Database error"

        return RowMigrationError(f"{label} in {table}: {e}", table_name=table, row_id=row_id,
                                 error_category=category)
