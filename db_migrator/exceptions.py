"""
Custom exceptions for the database migration system.

This module defines specific exception types for the different error conditions
that can occur while copying a source database into a target database.
"""

from typing import List, Tuple


class DBMigrationError(Exception):
    """Base exception for all migration related errors."""

    def __init__(self, message: str, table_name: str = None):
        """
        Initialize migration error.

        Args:
            message: Error description
            table_name: Optional name of the table being processed when the error occurred
        """
        super().__init__(message)
        self.table_name = table_name


class ConfigurationError(DBMigrationError):
    """Exception raised when configuration is invalid or missing."""
    pass


class DatabaseConnectionError(DBMigrationError):
    """Exception raised when a database connection cannot be established."""
    pass


class SchemaValidationError(DBMigrationError):
    """Exception raised when catalog introspection fails or returns unusable metadata."""
    pass


class DependencyOrderError(DBMigrationError):
    """Exception raised when the table order contradicts the foreign key graph."""

    def __init__(self, message: str, violations: List[Tuple[str, str]] = None):
        """
        Initialize dependency order error.

        Args:
            message: Error description
            violations: (child_table, parent_table) edges the order violates
        """
        super().__init__(message)
        self.violations = violations or []


class BatchFetchError(DBMigrationError):
    """Exception raised when a batch of source rows cannot be fetched."""
    pass


class RowMigrationError(DBMigrationError):
    """Exception raised when a single row cannot be written to the target."""

    def __init__(self, message: str, table_name: str = None, row_id: str = "unknown",
                 error_category: str = "database_error"):
        """
        Initialize row migration error.

        Args:
            message: Error description
            table_name: Table the row belongs to
            row_id: Primary key of the offending row, or "unknown"
            error_category: Category such as primary_key_violation or type_conversion
        """
        super().__init__(message, table_name)
        self.row_id = row_id
        self.error_category = error_category


class ConstraintGuardError(DBMigrationError):
    """Exception raised when constraint enforcement cannot be suspended or restored."""
    pass
