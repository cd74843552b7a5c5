"""Shared pytest configuration: make the project and the test helpers importable."""
import logging
import sys
from pathlib import Path

import pytest


tests_dir = Path(__file__).parent
project_root = tests_dir.parent
for path in (str(project_root), str(tests_dir)):
    if path not in sys.path:
        sys.path.insert(0, path)

from db_migrator.config.config_manager import reset_config_manager  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_config_manager():
    """Every test starts without a cached ConfigManager."""
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture(autouse=True)
def reset_package_log_level():
    """CLI tests set the package log level; later tests expect it unset."""
    package_logger = logging.getLogger('db_migrator')
    connection_logger = logging.getLogger('db_migrator.database.connection_manager')
    yield
    package_logger.setLevel(logging.NOTSET)
    connection_logger.setLevel(logging.NOTSET)
