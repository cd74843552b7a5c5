"""
Dependency Order Planner - the load order of tables.

The order is configuration data, not something computed from the live catalog on
every run: it is declared in a JSON artifact and checked against the target's foreign
keys at startup, failing fast if any table would be loaded before a table it references.
A topological order can also be derived from foreign key edges, which is how a new
order artifact is bootstrapped.
"""

import json
import logging

from collections import defaultdict
from itertools import groupby
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple, Union

from ..config.config_manager import DEFAULT_TABLE_ORDER_PATH
from ..exceptions import ConfigurationError, DependencyOrderError
from ..models import TableSpec


logger = logging.getLogger(__name__)


class DependencyOrderPlanner:
    """
    Holds the forward (load) order and its exact reverse (clear) order.

    Invariants:
        - Table names are unique
        - Ranks never decrease along the forward order
    """

    def __init__(self, table_specs: Iterable[TableSpec]):
        self.table_specs: List[TableSpec] = list(table_specs)

        seen: Set[str] = set()
        duplicates = []
        for spec in self.table_specs:
            if spec.name in seen:
                duplicates.append(spec.name)
            seen.add(spec.name)
        if duplicates:
            raise ConfigurationError(f"Duplicate tables in dependency order: {', '.join(duplicates)}")

        for previous, current in zip(self.table_specs, self.table_specs[1:]):
            if current.rank < previous.rank:
                raise ConfigurationError(
                    f"Rank of {current.name} ({current.rank}) is lower than the rank of "
                    f"{previous.name} ({previous.rank}) which precedes it")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_names(cls, names: Iterable[str]) -> 'DependencyOrderPlanner':
        """Treat every table as depending on all tables before it."""
        return cls(TableSpec(name, rank) for rank, name in enumerate(names))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'DependencyOrderPlanner':
        """
        Load an order artifact.

        Accepted layouts:
            {"tables": [{"name": "users", "rank": 0}, ...]}
            {"tables": ["users", "orders", ...]}
            ["users", "orders", ...]

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Table order file not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in table order file {path}: {e}")

        entries = data.get('tables') if isinstance(data, dict) else data
        if not isinstance(entries, list) or not entries:
            raise ConfigurationError(f"Table order file {path} must list at least one table")

        if all(isinstance(e, str) for e in entries):
            return cls.from_names(entries)

        try:
            specs = [TableSpec(e['name'], int(e.get('rank', 0))) for e in entries]
        except (TypeError, KeyError, ValueError) as e:
            raise ConfigurationError(f"Invalid table entry in {path}: {e}")
        return cls(specs)

    @classmethod
    def default(cls) -> 'DependencyOrderPlanner':
        """The order bundled with the package."""
        return cls.from_file(DEFAULT_TABLE_ORDER_PATH)

    @classmethod
    def from_foreign_keys(cls, tables: Iterable[str], edges: Iterable[Tuple[str, str]]) -> 'DependencyOrderPlanner':
        """
        Derive a topological order from (child, parent) foreign key edges.

        Kahn's algorithm, stable on the given table order. A table's rank is the
        length of the longest dependency chain beneath it.

        Raises:
            DependencyOrderError: If the edges contain a cycle
        """
        tables = list(dict.fromkeys(tables))
        known = set(tables)
        parents: Dict[str, Set[str]] = defaultdict(set)
        children: Dict[str, Set[str]] = defaultdict(set)
        for child, parent in edges:
            if child == parent or child not in known or parent not in known:
                continue
            parents[child].add(parent)
            children[parent].add(child)

        remaining = {t: len(parents[t]) for t in tables}
        rank = {t: 0 for t in tables}
        ordered: List[str] = []
        ready = [t for t in tables if remaining[t] == 0]

        while ready:
            table = ready.pop(0)
            ordered.append(table)
            for child in sorted(children[table], key=tables.index):
                rank[child] = max(rank[child], rank[table] + 1)
                remaining[child] -= 1
                if remaining[child] == 0:
                    ready.append(child)

        if len(ordered) != len(tables):
            cyclic = [t for t in tables if t not in ordered]
            raise DependencyOrderError(
                f"Foreign key cycle between tables: {', '.join(cyclic)}",
                violations=[(c, p) for c in cyclic for p in sorted(parents[c]) if p in cyclic],
            )

        ordered.sort(key=lambda t: rank[t])
        return cls(TableSpec(t, rank[t]) for t in ordered)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def forward_order(self) -> List[str]:
        return [spec.name for spec in self.table_specs]

    def reverse_order(self) -> List[str]:
        return list(reversed(self.forward_order()))

    def execution_order(self, skip_tables: Iterable[str] = (), reverse: bool = False) -> List[str]:
        """
        The order a run actually processes, with skipped tables bypassed.

        Each bypassed table gets a logged notice; the static order is unchanged.
        """
        skip = set(skip_tables)
        order = self.reverse_order() if reverse else self.forward_order()
        result = []
        for table in order:
            if table in skip:
                logger.warning(f"⚠ Skipping {table} (user requested)")
                continue
            result.append(table)
        return result

    def rank_groups(self) -> List[List[str]]:
        """Tables grouped by rank, in forward order."""
        return [[spec.name for spec in group]
                for _, group in groupby(self.table_specs, key=lambda s: s.rank)]

    def validate_against(self, foreign_keys: Iterable[Tuple[str, str]]) -> None:
        """
        Check the order against live foreign key edges.

        Self references are ignored; edges touching tables outside the order are
        logged at debug level since those tables are never migrated.

        Raises:
            DependencyOrderError: Listing every (child, parent) edge the order violates
        """
        position = {spec.name: i for i, spec in enumerate(self.table_specs)}
        rank = {spec.name: spec.rank for spec in self.table_specs}
        violations = []

        for child, parent in foreign_keys:
            if child == parent:
                continue
            if child not in position or parent not in position:
                logger.debug(f"Foreign key {child} -> {parent} involves a table outside the order")
                continue
            if position[child] < position[parent] or rank[child] <= rank[parent]:
                violations.append((child, parent))

        if violations:
            details = '; '.join(f"{c} references {p}" for c, p in violations)
            raise DependencyOrderError(f"Table order violates foreign keys: {details}", violations=violations)

        logger.info(f"Table order verified against {len(position)} tables")

    def __len__(self) -> int:
        return len(self.table_specs)

    def __contains__(self, table: str) -> bool:
        return any(spec.name == table for spec in self.table_specs)
