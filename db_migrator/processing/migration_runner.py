"""
Migration Runner - drives a complete source to target migration.

Lifecycle of a run:

    INITIALIZING -> CONNECTIONS_VERIFIED -> [CLEARING_TARGET] -> CONSTRAINTS_SUSPENDED
        -> COPYING_TABLES -> CONSTRAINTS_RESTORED -> REPORTED

A connection failure or a table order that contradicts the target's foreign keys
moves the run to ABORTED before anything on the target is changed. Dry runs skip
the clearing and constraint phases and never write to the target.

Both connections are opened once and closed exactly once whatever the exit path.
"""

import logging
import time

from typing import Optional

from .batch_copy_engine import BatchCopyEngine
from ..database.connection_manager import ConnectionManager, ConnectionResult
from ..database.integrity_guard import IntegrityGuard
from ..database.row_store import SqlRowStore
from ..database.schema_introspector import SchemaIntrospector
from ..database.upsert_strategy import UpsertStrategy
from ..exceptions import ConfigurationError, DatabaseConnectionError, DependencyOrderError
from ..interfaces import ReportSinkInterface, RowStoreInterface, SchemaIntrospectorInterface
from ..models import ConnectionDescriptor, MigrationConfig, MigrationReport, RunState
from ..monitoring.stats_collector import StatsCollector
from ..planning.dependency_planner import DependencyOrderPlanner
from ..reporting.report_sinks import sink_for


class MigrationRunner:
    """Owns the run state machine and the lifetime of both connections."""

    def __init__(self,
                 config: MigrationConfig,
                 planner: Optional[DependencyOrderPlanner] = None,
                 connection_manager: Optional[ConnectionManager] = None,
                 sink: Optional[ReportSinkInterface] = None,
                 stats_collector: Optional[StatsCollector] = None):
        """
        Initialize the runner.

        Args:
            config: Run configuration
            planner: Table order, defaults to config.order_file or the bundled order
            connection_manager: Opens verified sessions, defaults to pool settings from config
            sink: Report output, defaults to the sink for config.report_format
            stats_collector: Collector for this run, created when omitted
        """
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.planner = planner
        self.connection_manager = connection_manager or ConnectionManager(
            pool_max_size=config.pool_max_size,
            idle_timeout_seconds=config.idle_timeout_seconds,
            connect_timeout_seconds=config.connect_timeout_seconds,
        )
        self.sink = sink or sink_for(config.report_format, max_error_details=config.max_error_details)
        self.stats_collector = stats_collector or StatsCollector(config.max_error_details)
        self.state = RunState.INITIALIZING

    def run(self) -> MigrationReport:
        """
        Run the migration against live databases.

        Raises:
            DatabaseConnectionError: If either database cannot be reached
            ConfigurationError: If source and target are different engines
            DependencyOrderError: If the table order violates the target's foreign keys
            ConstraintGuardError: If target constraints cannot be suspended or restored
        """
        self.state = RunState.INITIALIZING
        self.sink.emit_configuration(self.config)

        source = self._open(self.config.source)
        try:
            target = self._open(self.config.target)
            try:
                if source.session.dialect.name != target.session.dialect.name:
                    self.state = RunState.ABORTED
                    raise ConfigurationError(
                        f"Source ({source.session.dialect.name}) and target ({target.session.dialect.name}) "
                        f"must use the same database engine")

                return self.execute(
                    SchemaIntrospector(source.session), SqlRowStore(source.session),
                    SchemaIntrospector(target.session), SqlRowStore(target.session),
                )
            finally:
                target.session.close()
        finally:
            source.session.close()

    def _open(self, descriptor: ConnectionDescriptor) -> ConnectionResult:
        self.logger.info(f"Testing {descriptor.name.lower()} database connection...")
        result = self.connection_manager.open(descriptor)
        self.sink.emit_connection_status(descriptor.name, result.success, result.message)
        if not result.success:
            self.state = RunState.ABORTED
            raise DatabaseConnectionError(f"{descriptor.name} database connection failed: {result.message}")
        return result

    def resolve_planner(self) -> DependencyOrderPlanner:
        if self.planner is None:
            if self.config.order_file:
                self.planner = DependencyOrderPlanner.from_file(self.config.order_file)
            else:
                self.planner = DependencyOrderPlanner.default()
        return self.planner

    def execute(self,
                source_introspector: SchemaIntrospectorInterface,
                source_store: RowStoreInterface,
                target_introspector: SchemaIntrospectorInterface,
                target_store: RowStoreInterface) -> MigrationReport:
        """
        Run every phase after connectivity has been verified.

        Separated from run() so the phases can be driven against any
        implementation of the introspector and row store interfaces.
        """
        self.state = RunState.CONNECTIONS_VERIFIED
        planner = self.resolve_planner()

        if self.config.validate_order:
            try:
                planner.validate_against(target_introspector.get_foreign_keys())
            except DependencyOrderError:
                self.state = RunState.ABORTED
                raise
        else:
            self.logger.warning("Table order validation skipped")

        unknown = sorted(t for t in self.config.skip_tables if t not in planner)
        if unknown:
            self.logger.warning(f"Skip list names tables outside the table order: {', '.join(unknown)}")

        tables = planner.execution_order(self.config.skip_tables)
        guard = IntegrityGuard(target_store, target_introspector, verbose=self.config.verbose)
        engine = BatchCopyEngine(
            source_introspector, target_introspector, source_store, target_store,
            self.config, self.stats_collector, UpsertStrategy(),
        )

        started = time.time()

        if self.config.dry_run:
            self.logger.info("Dry run: counting source rows without writing to the target")
            self._copy_all(engine, tables)
        else:
            if not self.config.skip_clear:
                self.state = RunState.CLEARING_TARGET
                self.logger.info("Clearing target tables...")
                guard.clear_target_tables(list(reversed(tables)))
                for table, reason in guard.clear_failures:
                    self.stats_collector.record_clear_failure(table, reason)

            present = [t for t in tables if target_introspector.table_exists(t)]
            with guard.suspended_constraints(present):
                self.state = RunState.CONSTRAINTS_SUSPENDED
                self._copy_all(engine, tables)
            self.state = RunState.CONSTRAINTS_RESTORED

        report = self.stats_collector.build_report(
            dry_run=self.config.dry_run,
            duration_seconds=time.time() - started,
        )
        self.sink.emit_report(report, self.config)
        self.state = RunState.REPORTED
        return report

    def _copy_all(self, engine: BatchCopyEngine, tables) -> None:
        self.state = RunState.COPYING_TABLES
        for index, table in enumerate(tables, start=1):
            self.logger.debug(f"Table {index}/{len(tables)}: {table}")
            engine.copy_table(table)
