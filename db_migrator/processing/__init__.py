"""
Processing module for the migration system.

BatchCopyEngine copies single tables; MigrationRunner drives a whole run.
"""

from .batch_copy_engine import BatchCopyEngine
from .migration_runner import MigrationRunner

__all__ = [
    'BatchCopyEngine',
    'MigrationRunner'
]
