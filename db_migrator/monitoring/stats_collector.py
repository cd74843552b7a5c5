"""
Statistics collection for migration runs.

One StatsCollector belongs to one run and is handed to the components that need
it; there is no module-level state. Per-table counters live in TableStats, row
errors are also appended to a run-wide log in the order they happened.
"""

import logging
import psutil

from datetime import datetime
from typing import List, Optional, Tuple

from ..config.processing_defaults import ProcessingDefaults
from ..models import MigrationReport, RowError, TableStats


class StatsCollector:
    """
    Collects table statistics, row errors and memory usage for a run.

    Invariants:
        - A table's stats are closed (end_time set) exactly once
        - migrated + errors + skipped never exceeds total for a table started with an accurate count
    """

    def __init__(self, max_error_details: int = ProcessingDefaults.MAX_ERROR_DETAILS):
        """
        Initialize the collector.

        Args:
            max_error_details: Error records kept per table (counters are never capped)
        """
        self.logger = logging.getLogger(__name__)
        self.max_error_details = max_error_details
        self._table_stats: List[TableStats] = []
        self._errors: List[RowError] = []
        self._clear_failures: List[Tuple[str, str]] = []
        self._peak_memory_mb = 0.0
        self.sample_memory()

    @property
    def table_stats(self) -> List[TableStats]:
        return list(self._table_stats)

    @property
    def errors(self) -> List[RowError]:
        """Global row error log, oldest first."""
        return list(self._errors)

    @property
    def peak_memory_mb(self) -> float:
        return self._peak_memory_mb

    def start_table(self, table: str, total: int = 0) -> TableStats:
        """Open statistics for a table about to be processed."""
        stats = TableStats(table=table, total=total, max_error_details=self.max_error_details)
        self._table_stats.append(stats)
        return stats

    def record_migrated(self, stats: TableStats, count: int = 1) -> None:
        stats.migrated += count

    def record_error(self, stats: TableStats, row_id: str, message: str) -> RowError:
        """Record a failed row on the table and in the run-wide log."""
        error = RowError(table=stats.table, row_id=str(row_id), message=message)
        stats.add_error(error)
        self._errors.append(error)
        return error

    def record_skip(self, stats: TableStats, reason: str) -> None:
        """Mark a whole table as skipped and close it."""
        stats.skip_reason = reason
        self.finish_table(stats)

    def abort_table(self, stats: TableStats, reason: str) -> None:
        """
        Stop a table early; rows not yet attempted are counted as skipped.
        """
        stats.aborted = True
        stats.skip_reason = reason
        stats.skipped = max(stats.total - stats.processed, 0)
        self.finish_table(stats)

    def record_clear_failure(self, table: str, reason: str) -> None:
        """Remember a target table whose existing rows could not be deleted."""
        self._clear_failures.append((table, reason))

    def finish_table(self, stats: TableStats) -> None:
        if stats.is_closed:
            return
        stats.end_time = datetime.now()
        self.sample_memory()

    def sample_memory(self) -> float:
        """Sample resident memory and keep the peak."""
        try:
            current = psutil.Process().memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            self.logger.debug(f"Could not sample memory usage: {e}")
            return self._peak_memory_mb
        self._peak_memory_mb = max(self._peak_memory_mb, current)
        return current

    def stats_for(self, table: str) -> Optional[TableStats]:
        for stats in self._table_stats:
            if stats.table == table:
                return stats
        return None

    def build_report(self, dry_run: bool = False, duration_seconds: float = 0.0) -> MigrationReport:
        """Snapshot everything collected so far into a MigrationReport."""
        self.sample_memory()
        return MigrationReport(
            table_stats=self.table_stats,
            errors=self.errors,
            dry_run=dry_run,
            duration_seconds=duration_seconds,
            peak_memory_mb=self._peak_memory_mb,
            clear_failures=list(self._clear_failures),
        )
