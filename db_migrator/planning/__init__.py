"""Table dependency ordering."""

from .dependency_planner import DependencyOrderPlanner

__all__ = ['DependencyOrderPlanner']
