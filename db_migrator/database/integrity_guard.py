"""
Integrity Guard - target-side clearing and constraint suspension.

Clearing walks the tables in reverse dependency order so dependent rows are deleted
before the rows they reference. Constraint suspension is a guarded resource: once
suspended, enforcement is restored when the guarded block exits, whatever the exit path.
"""

import logging

from contextlib import contextmanager
from typing import List, Tuple

import pyodbc

from ..exceptions import ConstraintGuardError
from ..interfaces import RowStoreInterface, SchemaIntrospectorInterface


class IntegrityGuard:
    """Owns every statement that changes the target's integrity state."""

    def __init__(self, store: RowStoreInterface, introspector: SchemaIntrospectorInterface,
                 verbose: bool = False):
        """
        Initialize the guard.

        Args:
            store: Target row store
            introspector: Target schema introspector
            verbose: Log each cleared table
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.introspector = introspector
        self.verbose = verbose
        self.clear_failures: List[Tuple[str, str]] = []
        self._suspended = False

    @property
    def constraints_suspended(self) -> bool:
        return self._suspended

    def clear_target_tables(self, tables_in_reverse_order: List[str]) -> List[str]:
        """
        Delete all rows from each target table, dependents first.

        Tables missing on the target are skipped silently. A table that cannot be
        cleared is logged, kept in clear_failures and left as is; clearing
        continues with the next table.

        Args:
            tables_in_reverse_order: Tables already in reverse dependency order, skip set removed

        Returns:
            Names of the tables that were cleared
        """
        cleared = []
        for table in tables_in_reverse_order:
            if not self.introspector.table_exists(table):
                continue
            try:
                self.store.delete_all(table)
                cleared.append(table)
                if self.verbose:
                    self.logger.info(f"✓ Cleared {table}")
            except pyodbc.Error as e:
                self.clear_failures.append((table, str(e)))
                self.logger.warning(f"⚠ Could not clear {table}: {e}")

        self.logger.info(f"✓ Target tables cleared ({len(cleared)} of {len(tables_in_reverse_order)})")
        return cleared

    @contextmanager
    def suspended_constraints(self, tables: List[str]):
        """
        Suspend referential integrity on the target for the duration of the block.

        Restoration runs in a finally clause. If restoring fails while another
        exception is already propagating, the restore failure is logged and the
        original exception wins.

        Raises:
            ConstraintGuardError: If suspension or restoration fails
        """
        try:
            self.store.suspend_constraints(tables)
        except pyodbc.Error as e:
            # Partial suspension on engines that suspend per table
            self._restore(tables, raise_errors=False)
            raise ConstraintGuardError(f"Could not suspend target constraints: {e}")

        self._suspended = True
        self.logger.info("Target constraint enforcement suspended")
        try:
            yield self
        except BaseException:
            self._restore(tables, raise_errors=False)
            raise
        else:
            self._restore(tables, raise_errors=True)

    def _restore(self, tables: List[str], raise_errors: bool) -> None:
        try:
            self.store.restore_constraints(tables)
            self._suspended = False
            self.logger.info("Target constraint enforcement restored")
        except pyodbc.Error as e:
            self.logger.critical(f"RESTORE FAILED - target constraints may still be suspended: {e}")
            if raise_errors:
                raise ConstraintGuardError(f"Could not restore target constraints: {e}")
