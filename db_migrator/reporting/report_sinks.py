"""
Report sinks - operator-facing output for a migration run.

The text sink draws the boxed overview and table details meant for a terminal.
The JSON sink writes a single document for pipelines that parse the result.
Sinks only render; all numbers come from the MigrationReport.
"""

import json
import sys

from typing import List, Optional, TextIO, Tuple

from ..config.processing_defaults import ProcessingDefaults
from ..interfaces import ReportSinkInterface
from ..models import MigrationConfig, MigrationReport, RunStatus


BOX_WIDTH = 58
DETAIL_WIDTH = 77


def _yes_no(value: bool) -> str:
    return 'Yes' if value else 'No'


class TextReportSink(ReportSinkInterface):
    """Human readable report written to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None,
                 max_error_details: int = ProcessingDefaults.MAX_ERROR_DETAILS):
        self.stream = stream or sys.stdout
        self.max_error_details = max_error_details

    def _print(self, line: str = '') -> None:
        print(line, file=self.stream)

    def _section(self, title: str) -> None:
        self._print()
        self._print('=' * 60)
        self._print(title)
        self._print('=' * 60)

    def _box_line(self, text: str, width: int = BOX_WIDTH) -> str:
        return f"║{text.ljust(width)[:width]}║"

    def emit_configuration(self, config: MigrationConfig) -> None:
        self._section('Database Migration')
        self._print()
        self._print('Configuration:')
        self._print(f"  Source: {config.source.masked()}")
        self._print(f"  Target: {config.target.masked()}")
        self._print(f"  Dry Run: {_yes_no(config.dry_run)}")
        self._print(f"  Batch Size: {config.batch_size}")
        self._print(f"  Skip Clear: {_yes_no(config.skip_clear)}")
        self._print(f"  Verbose: {_yes_no(config.verbose)}")
        if config.skip_tables:
            self._print(f"  Skip Tables: {', '.join(sorted(config.skip_tables))}")

    def emit_connection_status(self, name: str, success: bool, message: str) -> None:
        if success:
            self._print(f"✓ {name} database: {message}")
        else:
            self._print(f"✗ {name} database connection failed: {message}")

    def emit_report(self, report: MigrationReport, config: MigrationConfig) -> None:
        self._section('MIGRATION REPORT')

        if report.dry_run:
            self._print('⚠ DRY RUN MODE - No data was actually migrated')
            self._print()

        self._render_overview(report)
        self._print()
        self._render_table_details(report)
        self._render_errors(report, config.verbose)
        self._print()
        self._render_status(report)

    def _render_overview(self, report: MigrationReport) -> None:
        rows: List[Tuple[str, str]] = [
            ('Total Records:', f"{report.total_records:>10}"),
            ('Migrated:', f"{report.total_migrated:>10}  ({report.success_rate:.1f}%)"),
            ('Skipped:', f"{report.total_skipped:>10}"),
            ('Errors:', f"{report.total_errors:>10}"),
            ('Duration:', f"{report.duration_seconds:.2f}s".rjust(10)),
            ('Peak Memory:', f"{report.peak_memory_mb:.1f}MB".rjust(10)),
        ]
        self._print('╔' + '═' * BOX_WIDTH + '╗')
        self._print(self._box_line('MIGRATION OVERVIEW'.center(BOX_WIDTH)))
        self._print('╠' + '═' * BOX_WIDTH + '╣')
        for label, value in rows:
            self._print(self._box_line(f"  {label:<18}{value}"))
        self._print('╚' + '═' * BOX_WIDTH + '╝')

    def _render_table_details(self, report: MigrationReport) -> None:
        self._print('┌' + '─' * DETAIL_WIDTH + '┐')
        self._print('│' + 'TABLE DETAILS'.center(DETAIL_WIDTH) + '│')
        self._print('├──────────────────────────┬────────┬──────────┬─────────┬─────────┬──────────┤')
        self._print('│ Table                    │  Total │ Migrated │ Skipped │  Errors │  Time(s) │')
        self._print('├──────────────────────────┼────────┼──────────┼─────────┼─────────┼──────────┤')
        for stats in report.table_stats:
            elapsed = '-' if stats.elapsed_seconds is None else f"{stats.elapsed_seconds:.2f}"
            self._print(f"│ {stats.table[:24]:<24} │ {stats.total:>6} │ {stats.migrated:>8} │ "
                        f"{stats.skipped:>7} │ {stats.errors:>7} │ {elapsed:>8} │")
        self._print('└──────────────────────────┴────────┴──────────┴─────────┴─────────┴──────────┘')

        skipped = [s for s in report.table_stats if s.skip_reason]
        for stats in skipped:
            self._print(f"  ⚠ {stats.table}: {stats.skip_reason}")
        for table, reason in report.clear_failures:
            self._print(f"  ⚠ {table}: not cleared, existing target rows kept - {reason}")

    def _render_errors(self, report: MigrationReport, verbose: bool) -> None:
        errors = report.errors
        if not errors:
            return

        self._print()
        if not verbose:
            self._print(f"⚠ {len(errors)} errors occurred. Use --verbose to see details.")
            return

        self._print('┌' + '─' * DETAIL_WIDTH + '┐')
        self._print('│' + 'ERROR DETAILS'.center(DETAIL_WIDTH) + '│')
        self._print('├' + '─' * DETAIL_WIDTH + '┤')
        # Most recent errors; earlier ones are summarized by count
        shown = errors[-self.max_error_details:] if self.max_error_details else []
        for error in shown:
            message = f"{error.table}: {error.row_id} - {error.message}"[:DETAIL_WIDTH - 2]
            self._print(f"│ {message:<{DETAIL_WIDTH - 1}}│")
        hidden = len(errors) - len(shown)
        if hidden > 0:
            self._print(f"│ ... and {hidden} more errors".ljust(DETAIL_WIDTH + 1) + '│')
        self._print('└' + '─' * DETAIL_WIDTH + '┘')

    def _render_status(self, report: MigrationReport) -> None:
        status = report.status
        if status is RunStatus.DRY_RUN:
            self._print('Dry run complete. Re-run without --dry-run to migrate.')
            return
        if status is RunStatus.SUCCEEDED:
            banner = '✓ MIGRATION COMPLETED SUCCESSFULLY'
        else:
            banner = '⚠ MIGRATION COMPLETED WITH ERRORS'
        self._print('╔' + '═' * BOX_WIDTH + '╗')
        self._print(self._box_line(banner.center(BOX_WIDTH)))
        self._print('╚' + '═' * BOX_WIDTH + '╝')


class JsonReportSink(ReportSinkInterface):
    """Machine readable report; configuration and connection lines go to stderr."""

    def __init__(self, stream: Optional[TextIO] = None, status_stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.status_stream = status_stream or sys.stderr

    def emit_configuration(self, config: MigrationConfig) -> None:
        pass

    def emit_connection_status(self, name: str, success: bool, message: str) -> None:
        mark = '✓' if success else '✗'
        print(f"{mark} {name} database: {message}", file=self.status_stream)

    def emit_report(self, report: MigrationReport, config: MigrationConfig) -> None:
        document = report.to_dict()
        document['source'] = config.source.masked()
        document['target'] = config.target.masked()
        self.stream.write(json.dumps(document, indent=2, default=str))
        self.stream.write('\n')


class CollectingReportSink(ReportSinkInterface):
    """Keeps everything emitted in memory."""

    def __init__(self):
        self.configurations: List[MigrationConfig] = []
        self.connection_statuses: List[Tuple[str, bool, str]] = []
        self.reports: List[MigrationReport] = []

    def emit_configuration(self, config: MigrationConfig) -> None:
        self.configurations.append(config)

    def emit_connection_status(self, name: str, success: bool, message: str) -> None:
        self.connection_statuses.append((name, success, message))

    def emit_report(self, report: MigrationReport, config: MigrationConfig) -> None:
        self.reports.append(report)

    @property
    def last_report(self) -> Optional[MigrationReport]:
        return self.reports[-1] if self.reports else None


def sink_for(report_format: str, stream: Optional[TextIO] = None,
             max_error_details: int = ProcessingDefaults.MAX_ERROR_DETAILS) -> ReportSinkInterface:
    """Report sink for a --report-format value."""
    if report_format == 'json':
        return JsonReportSink(stream=stream)
    return TextReportSink(stream=stream, max_error_details=max_error_details)
