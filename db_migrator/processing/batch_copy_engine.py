"""
Batch Copy Engine - copies one table from source to target in bounded batches.

For each table the engine reconciles the column sets of both sides, reads the
source in primary key order one batch at a time and hands every batch to the
upsert strategy. Memory stays bounded by the batch size whatever the table size.

Failure scope:
    - A row that the target rejects is recorded and skipped; the batch continues
    - A batch that cannot be read aborts the rest of that table only
    - A table missing on either side, or without shared columns, is skipped with a warning
"""

import logging

from typing import Any, List, Optional, Tuple

import pyodbc

from ..config.processing_defaults import ProcessingDefaults
from ..database.schema_introspector import SchemaIntrospector
from ..database.upsert_strategy import UpsertStrategy
from ..exceptions import BatchFetchError, RowMigrationError, SchemaValidationError
from ..interfaces import RowStoreInterface, SchemaIntrospectorInterface
from ..models import MigrationConfig, Row, TableStats
from ..monitoring.stats_collector import StatsCollector


class BatchCopyEngine:
    """
    Copies tables one at a time using the configured batch size.

    The engine never decides table order and never touches tables it is not
    asked to copy.
    """

    def __init__(self,
                 source_introspector: SchemaIntrospectorInterface,
                 target_introspector: SchemaIntrospectorInterface,
                 source_store: RowStoreInterface,
                 target_store: RowStoreInterface,
                 config: MigrationConfig,
                 stats_collector: StatsCollector,
                 upsert_strategy: Optional[UpsertStrategy] = None):
        """
        Initialize the copy engine.

        Args:
            source_introspector: Catalog access for the source
            target_introspector: Catalog access for the target
            source_store: Batched reads from the source
            target_store: Row writes to the target
            config: Run configuration (batch size, dry run, verbose)
            stats_collector: Collector owning this run's statistics
            upsert_strategy: Row write strategy, defaults to UpsertStrategy
        """
        self.logger = logging.getLogger(__name__)
        self.source_introspector = source_introspector
        self.target_introspector = target_introspector
        self.source_store = source_store
        self.target_store = target_store
        self.config = config
        self.stats = stats_collector
        self.upsert_strategy = upsert_strategy or UpsertStrategy()

    def copy_table(self, table: str) -> TableStats:
        """
        Copy one table and return its closed statistics.

        In dry-run mode only catalog and count queries are issued.
        """
        self.logger.info(f"Migrating {table}...")

        try:
            columns = self._reconcile(table)
        except SchemaValidationError as e:
            return self._skip(table, f"Schema introspection failed: {e}")
        if isinstance(columns, str):
            return self._skip(table, columns)

        total = self.source_introspector.count_rows(table)
        stats = self.stats.start_table(table, total)

        if total == 0:
            self.logger.info(f"  No records to migrate in {table}")
            self.stats.finish_table(stats)
            return stats

        if self.config.dry_run:
            self.logger.info(f"  Would migrate {total} records from {table}")
            self.stats.finish_table(stats)
            return stats

        try:
            order_columns, keyset, key_columns, identity_columns = self._plan_keys(table, columns)
        except SchemaValidationError as e:
            self.stats.abort_table(stats, f"Schema introspection failed: {e}")
            self.logger.error(f"✗ {table} aborted: {e}")
            return stats

        override_identity = bool(identity_columns)
        if override_identity:
            try:
                self.target_store.set_identity_insert(table, True)
            except pyodbc.Error as e:
                self.stats.abort_table(stats, f"Could not enable identity insert: {e}")
                self.logger.error(f"✗ {table} aborted: could not enable identity insert: {e}")
                return stats

        try:
            self._copy_batches(stats, columns, order_columns, keyset, key_columns, override_identity)
        except BatchFetchError as e:
            self.stats.abort_table(stats, str(e))
            self.logger.error(f"✗ {table} aborted after {stats.processed} of {stats.total} records: {e}")
            return stats
        finally:
            if override_identity:
                self._disable_identity_insert(table)

        self.stats.finish_table(stats)
        if stats.errors:
            self.logger.warning(f"⚠ {table}: {stats.migrated}/{stats.total} migrated, {stats.errors} errors")
        else:
            self.logger.info(f"✓ {table}: {stats.migrated}/{stats.total} migrated")
        return stats

    def _reconcile(self, table: str):
        """Shared columns in source order, or the reason the table must be skipped."""
        if not self.source_introspector.table_exists(table):
            return "Table not found in source"
        if not self.target_introspector.table_exists(table):
            return "Table not found in target"

        source_columns = self.source_introspector.get_columns(table)
        target_columns = self.target_introspector.get_columns(table)
        columns = SchemaIntrospector.reconcile_columns(source_columns, target_columns)

        if not columns:
            return "No common columns between source and target"

        dropped = [c for c in source_columns if c not in set(target_columns)]
        if dropped:
            self.logger.warning(f"  {table}: source columns not in target, not copied: {', '.join(dropped)}")
        missing = [c for c in target_columns if c not in set(source_columns)]
        if missing:
            self.logger.debug(f"  {table}: target columns left to their defaults: {', '.join(missing)}")
        return columns

    def _skip(self, table: str, reason: str) -> TableStats:
        self.logger.warning(f"⚠ Skipping {table}: {reason}")
        stats = self.stats.start_table(table, 0)
        self.stats.record_skip(stats, reason)
        return stats

    def _plan_keys(self, table: str, columns: List[str]) -> Tuple[List[str], bool, List[str], List[str]]:
        """
        Work out ordering, conflict and identity columns.

        Returns:
            (order_columns, keyset, key_columns, identity_columns); keyset is only
            possible on a declared single-column primary key
        """
        column_set = set(columns)

        source_key = self.source_introspector.get_primary_key(table)
        if (source_key and self.source_introspector.is_primary_key_declared(table)
                and all(c in column_set for c in source_key)):
            order_columns = source_key
            keyset = len(source_key) == 1
        else:
            # Every shared column gives a stable, if slower, ordering
            order_columns = list(columns)
            keyset = False

        target_key = self.target_introspector.get_primary_key(table)
        if not self.target_introspector.is_primary_key_declared(table):
            # A guessed key has no unique constraint to upsert against
            key_columns = []
        elif target_key and all(c in column_set for c in target_key):
            key_columns = target_key
        else:
            if target_key:
                self.logger.warning(f"  {table}: primary key columns not all shared, using plain inserts")
            key_columns = []

        identity_columns = [c for c in self.target_introspector.get_identity_columns(table) if c in column_set]
        return order_columns, keyset, key_columns, identity_columns

    def _copy_batches(self, stats: TableStats, columns: List[str], order_columns: List[str], keyset: bool,
                      key_columns: List[str], override_identity: bool) -> None:
        table = stats.table
        batch_size = self.config.batch_size
        after_key: Any = None
        fetched = 0
        next_progress = 1

        def on_error(failure: RowMigrationError) -> None:
            self.stats.record_error(stats, failure.row_id, str(failure))
            if self.config.verbose:
                self.logger.error(f"  ✗ {table} [{failure.row_id}]: {failure}")

        while fetched < stats.total:
            rows = self._fetch(table, columns, order_columns, batch_size,
                               after_key=after_key if keyset else None, offset=fetched)
            if not rows:
                break
            fetched += len(rows)
            if keyset:
                after_key = rows[-1][order_columns[0]].to_parameter()

            outcome = self.upsert_strategy.apply(
                self.target_store, table, columns, key_columns, rows,
                override_identity=override_identity, on_error=on_error,
            )
            self.stats.record_migrated(stats, outcome.applied)

            next_progress = self._log_progress(stats, next_progress)

            if len(rows) < batch_size:
                break

    def _fetch(self, table: str, columns: List[str], order_columns: List[str], batch_size: int,
               after_key: Any = None, offset: int = 0) -> List[Row]:
        try:
            return self.source_store.fetch_batch(table, columns, order_columns, batch_size,
                                                 after_key=after_key, offset=offset)
        except pyodbc.Error as e:
            raise BatchFetchError(f"Batch fetch failed at offset {offset}: {e}", table_name=table)

    def _log_progress(self, stats: TableStats, next_progress: int) -> int:
        """Log each crossed 10% step once; returns the next step to report."""
        steps = ProcessingDefaults.PROGRESS_STEPS
        done = min(stats.processed, stats.total)
        reached = (done * steps) // stats.total if stats.total else steps
        if reached >= next_progress:
            percent = reached * 100 // steps
            self.logger.info(f"  Progress: {done}/{stats.total} ({percent}%)")
            return reached + 1
        return next_progress

    def _disable_identity_insert(self, table: str) -> None:
        try:
            self.target_store.set_identity_insert(table, False)
        except pyodbc.Error as e:
            self.logger.warning(f"Could not disable identity insert on {table}: {e}")
