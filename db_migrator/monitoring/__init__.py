"""
Monitoring module for the migration system.

Per-table statistics, the global row error log and peak memory tracking.
"""

from .stats_collector import StatsCollector

__all__ = [
    'StatsCollector'
]
