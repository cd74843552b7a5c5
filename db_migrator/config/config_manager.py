"""
Centralized configuration management for the database migration system.

This module provides the ConfigManager class that turns command line arguments and
environment variables into the immutable MigrationConfig used by a run, and resolves
the table order artifact that drives the dependency order planner.
"""

import os
import logging

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from .processing_defaults import ProcessingDefaults
from ..models import ConnectionDescriptor, MigrationConfig
from ..exceptions import ConfigurationError
from ..utils import ValidationUtils


DEFAULT_TABLE_ORDER_PATH = Path(__file__).parent / "table_order.json"


class ConfigManager:
    """
    Builds run configuration from CLI arguments with environment fallbacks.

    Precedence for every setting: explicit argument, then environment variable,
    then ProcessingDefaults.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the configuration manager.

        Args:
            environ: Environment mapping, defaults to os.environ
        """
        self.logger = logging.getLogger(__name__)
        self.environ = os.environ if environ is None else environ

    def build_config(self,
                     source_url: Optional[str] = None,
                     target_url: Optional[str] = None,
                     dry_run: bool = False,
                     batch_size: Optional[int] = None,
                     skip_clear: bool = False,
                     verbose: bool = False,
                     skip_tables: Optional[Iterable[str]] = None,
                     source_schema: Optional[str] = None,
                     target_schema: Optional[str] = None,
                     validate_order: bool = True,
                     order_file: Optional[str] = None,
                     report_format: str = ProcessingDefaults.REPORT_FORMAT) -> MigrationConfig:
        """
        Create a validated MigrationConfig.

        Raises:
            ConfigurationError: If a connection string is missing or a value is invalid
        """
        source_url = source_url or self.environ.get(ProcessingDefaults.SOURCE_URL_ENV, '')
        target_url = target_url or self.environ.get(ProcessingDefaults.TARGET_URL_ENV, '')

        if not source_url:
            raise ConfigurationError(
                f"Source database URL is required. Use --source or set {ProcessingDefaults.SOURCE_URL_ENV}")
        if not target_url:
            raise ConfigurationError(
                f"Target database URL is required. Use --target or set {ProcessingDefaults.TARGET_URL_ENV}")

        resolved_batch_size = self._resolve_batch_size(batch_size)

        if order_file and not Path(order_file).is_file():
            raise ConfigurationError(f"Table order file not found: {order_file}")

        try:
            config = MigrationConfig(
                source=ConnectionDescriptor(source_url, name="Source", schema=source_schema),
                target=ConnectionDescriptor(target_url, name="Target", schema=target_schema),
                dry_run=dry_run,
                batch_size=resolved_batch_size,
                skip_clear=skip_clear,
                verbose=verbose,
                skip_tables=frozenset(t.strip() for t in (skip_tables or []) if t and t.strip()),
                validate_order=validate_order,
                order_file=order_file,
                report_format=report_format,
                max_error_details=ProcessingDefaults.MAX_ERROR_DETAILS,
                pool_max_size=ProcessingDefaults.CONNECTION_POOL_MAX,
                idle_timeout_seconds=ProcessingDefaults.IDLE_TIMEOUT,
                connect_timeout_seconds=ProcessingDefaults.CONNECTION_TIMEOUT,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

        self.logger.debug(f"Built configuration: {config}")
        return config

    def _resolve_batch_size(self, batch_size: Optional[int]) -> int:
        if batch_size is None:
            raw = self.environ.get(ProcessingDefaults.BATCH_SIZE_ENV)
            if raw is None:
                return ProcessingDefaults.BATCH_SIZE
            batch_size = ValidationUtils.safe_int_conversion(raw)
            if batch_size is None:
                raise ConfigurationError(f"{ProcessingDefaults.BATCH_SIZE_ENV} must be an integer, got {raw!r}")
        if batch_size <= 0:
            raise ConfigurationError(f"Batch size must be a positive integer, got {batch_size}")
        return batch_size

    def resolve_log_level(self, log_level: Optional[str] = None) -> str:
        """Return the log level name from argument, environment or default."""
        level = (log_level or self.environ.get(ProcessingDefaults.LOG_LEVEL_ENV) or ProcessingDefaults.LOG_LEVEL).upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ConfigurationError(f"Unknown log level: {level}")
        return level

    def table_order_path(self, config: MigrationConfig) -> Path:
        """Path of the table order artifact for a run."""
        return Path(config.order_file) if config.order_file else DEFAULT_TABLE_ORDER_PATH

    def get_configuration_summary(self, config: MigrationConfig) -> Dict[str, Any]:
        """Summary of a run's configuration with credentials masked."""
        return {
            'source': config.source.masked(),
            'target': config.target.masked(),
            'dry_run': config.dry_run,
            'batch_size': config.batch_size,
            'skip_clear': config.skip_clear,
            'verbose': config.verbose,
            'skip_tables': sorted(config.skip_tables),
            'validate_order': config.validate_order,
            'table_order': str(self.table_order_path(config)),
        }


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Return the process-wide ConfigManager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def reset_config_manager() -> None:
    """Drop the cached ConfigManager (used by tests that patch the environment)."""
    global _config_manager
    _config_manager = None
