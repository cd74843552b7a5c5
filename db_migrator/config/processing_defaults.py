"""
Centralized configuration defaults for migration runs.

This module defines operational configuration constants used throughout the system.
CLI arguments and environment variables can override these defaults at runtime.

Single Source of Truth: Change these values once; all modules automatically use updated defaults.
"""


class ProcessingDefaults:
    """
    Centralized operational configuration for migration runs.

    All values are defaults that can be overridden via CLI arguments:
    - db_migrator --batch-size 5000
    - db_migrator --log-level DEBUG
    """

    # Batch processing
    BATCH_SIZE = 1000  # Source rows fetched per round-trip

    # Database connections (one pool per side)
    CONNECTION_POOL_MAX = 20  # Maximum connections to allow in pool
    IDLE_TIMEOUT = 30  # Seconds an idle pooled connection is kept
    CONNECTION_TIMEOUT = 10  # Login timeout in seconds
    POSTGRES_ODBC_DRIVER = "PostgreSQL Unicode"  # Driver used for postgresql:// URLs

    # Reporting
    PROGRESS_STEPS = 10  # Progress lines per table (every 10%)
    MAX_ERROR_DETAILS = 20  # Error records listed in verbose reports
    REPORT_FORMAT = "text"

    # Environment variables
    SOURCE_URL_ENV = "SOURCE_DATABASE_URL"
    TARGET_URL_ENV = "TARGET_DATABASE_URL"
    BATCH_SIZE_ENV = "DB_MIGRATOR_BATCH_SIZE"
    LOG_LEVEL_ENV = "DB_MIGRATOR_LOG_LEVEL"

    # Logging
    LOG_LEVEL = "INFO"  # Default logging level (CRITICAL, ERROR, WARNING, INFO, DEBUG)
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    @classmethod
    def to_dict(cls) -> dict:
        """
        Export all defaults as a dictionary.

        Returns:
            Dictionary of all ProcessingDefaults class attributes.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if not key.startswith('_') and key.isupper()
        }

    @classmethod
    def log_summary(cls, logger=None):
        """
        Log a summary of all operational defaults.

        Args:
            logger: Optional logger instance. If None, prints to stdout.
        """
        config_dict = cls.to_dict()
        summary = "\n".join([f"  {key}: {value}" for key, value in sorted(config_dict.items())])
        message = f"Migration Configuration Defaults:\n{summary}"

        if logger:
            logger.info(message)
        else:
            print(message)
