"""
Utility functions for common patterns across the migration system.
"""

import re
from typing import Any, Optional


class ConnectionStringUtils:
    """Utility methods for handling connection strings safely."""

    # Cached regex patterns
    _regex_cache = {
        'url_credentials': re.compile(r'//[^:/@]+:[^@]+@'),
        'odbc_secret': re.compile(r'((?:PWD|Password)\s*=\s*)(\{[^}]*\}|[^;]*)', re.IGNORECASE),
        'odbc_user': re.compile(r'((?:UID|User ID|User)\s*=\s*)(\{[^}]*\}|[^;]*)', re.IGNORECASE),
    }

    @staticmethod
    def mask_credentials(connection_string: Optional[str]) -> str:
        """
        Hide user names and passwords in a connection string for display.

        Examples:
            'postgresql://app:secret@db:5432/cms' -> 'postgresql://***:***@db:5432/cms'
            'DRIVER={x};SERVER=db;UID=app;PWD=secret;' -> 'DRIVER={x};SERVER=db;UID=***;PWD=***;'

        Args:
            connection_string: URL or ODBC style connection string

        Returns:
            Connection string safe to print or log
        """
        if not connection_string:
            return ''
        cache = ConnectionStringUtils._regex_cache
        masked = cache['url_credentials'].sub('//***:***@', connection_string)
        masked = cache['odbc_secret'].sub(r'\g<1>***', masked)
        masked = cache['odbc_user'].sub(r'\g<1>***', masked)
        return masked


class ValidationUtils:
    """Utility methods for validation patterns."""

    @staticmethod
    def safe_int_conversion(value: Any, default: Optional[int] = None) -> Optional[int]:
        """
        Safely convert value to integer.

        Args:
            value: Value to convert
            default: Default value if conversion fails

        Returns:
            Integer value or default
        """
        if value is None:
            return default

        try:
            if isinstance(value, (int, float)):
                return int(value)
            return int(str(value).strip())
        except (ValueError, TypeError):
            return default
