"""Test helpers: an in-memory database that plays either side of a migration.

InMemoryDatabase implements both SchemaIntrospectorInterface and
RowStoreInterface so the copy engine and the runner can be driven without a
server. It keeps raw Python values, records every call that would read or
mutate a table, and can be told to fail specific rows, fetches or restores
with pyodbc.Error the way a real driver would.
"""
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pyodbc

from db_migrator.interfaces import RowStoreInterface, SchemaIntrospectorInterface
from db_migrator.models import Row, row_from_values


class FakeTable:
    def __init__(self, name: str, columns: Sequence[str], primary_key: Sequence[str] = ("id",),
                 identity: Sequence[str] = (), key_declared: bool = True):
        self.name = name
        self.columns = list(columns)
        self.primary_key = list(primary_key)
        # False models an undeclared key reported through the "id" fallback
        self.key_declared = key_declared and bool(self.primary_key)
        self.identity = list(identity)
        self.rows: List[Dict[str, Any]] = []

    def sort_key(self, row: Dict[str, Any]) -> Tuple:
        order = self.primary_key or self.columns
        return tuple(row.get(c) for c in order)


class InMemoryDatabase(SchemaIntrospectorInterface, RowStoreInterface):
    """One side of a migration, held in dictionaries."""

    def __init__(self, name: str = "db", enforce_foreign_keys: bool = True):
        self.name = name
        self.tables: Dict[str, FakeTable] = {}
        self.foreign_keys: List[Tuple[str, str]] = []
        self.enforce_foreign_keys = enforce_foreign_keys
        self.constraints_enforced = True

        # Call logs
        self.fetch_calls: Dict[str, int] = defaultdict(int)
        self.fetch_sizes: Dict[str, List[int]] = defaultdict(list)
        self.touched: List[Tuple[str, str]] = []
        self.deleted: List[str] = []
        self.identity_insert_log: List[Tuple[str, bool]] = []
        self.writes = 0

        # Failure injection
        self.fail_rows: Dict[str, Dict[Any, str]] = defaultdict(dict)
        self.fail_fetch_on_call: Dict[str, int] = {}
        self.fail_restore = False
        self.fail_suspend = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_table(self, name: str, columns: Sequence[str], primary_key: Sequence[str] = ("id",),
                     identity: Sequence[str] = (), rows: Iterable[Dict[str, Any]] = (),
                     key_declared: bool = True) -> FakeTable:
        table = FakeTable(name, columns, primary_key, identity, key_declared)
        table.rows = [dict(r) for r in rows]
        self.tables[name] = table
        return table

    def add_foreign_key(self, child: str, parent: str) -> None:
        self.foreign_keys.append((child, parent))

    def fail_row(self, table: str, key: Any, message: str = "Conversion failed when converting the value") -> None:
        """Make the upsert of the row whose first key column equals key raise."""
        self.fail_rows[table][key] = message

    def rows_of(self, table: str) -> List[Dict[str, Any]]:
        t = self.tables[table]
        return sorted((dict(r) for r in t.rows), key=t.sort_key)

    def row_counts(self) -> Dict[str, int]:
        return {name: len(t.rows) for name, t in self.tables.items()}

    def touched_tables(self) -> set:
        return {table for _, table in self.touched}

    # ------------------------------------------------------------------
    # SchemaIntrospectorInterface
    # ------------------------------------------------------------------

    def table_exists(self, table: str) -> bool:
        self.touched.append(("exists", table))
        return table in self.tables

    def get_columns(self, table: str) -> List[str]:
        self.touched.append(("columns", table))
        return list(self.tables[table].columns) if table in self.tables else []

    def get_primary_key(self, table: str) -> List[str]:
        self.touched.append(("primary_key", table))
        return list(self.tables[table].primary_key) if table in self.tables else []

    def is_primary_key_declared(self, table: str) -> bool:
        return table in self.tables and self.tables[table].key_declared

    def count_rows(self, table: str) -> int:
        self.touched.append(("count", table))
        return len(self.tables[table].rows) if table in self.tables else 0

    def get_foreign_keys(self) -> List[Tuple[str, str]]:
        return list(self.foreign_keys)

    def get_identity_columns(self, table: str) -> List[str]:
        self.touched.append(("identity", table))
        return list(self.tables[table].identity) if table in self.tables else []

    # ------------------------------------------------------------------
    # RowStoreInterface
    # ------------------------------------------------------------------

    def fetch_batch(self, table: str, columns: List[str], order_columns: List[str], batch_size: int,
                    after_key: Optional[Any] = None, offset: int = 0) -> List[Row]:
        self.touched.append(("fetch", table))
        self.fetch_calls[table] += 1
        if self.fail_fetch_on_call.get(table) == self.fetch_calls[table]:
            raise pyodbc.Error("08S01", "[08S01] Communication link failure")

        ordered = sorted(self.tables[table].rows, key=lambda r: tuple(r.get(c) for c in order_columns))
        if after_key is not None:
            ordered = [r for r in ordered if r.get(order_columns[0]) > after_key]
        else:
            ordered = ordered[offset:]
        batch = ordered[:batch_size]
        self.fetch_sizes[table].append(len(batch))
        return [row_from_values(columns, [r.get(c) for c in columns]) for r in batch]

    def upsert_row(self, table: str, columns: List[str], key_columns: List[str], row: Row,
                   override_identity: bool = False) -> None:
        self.touched.append(("upsert", table))
        self.writes += 1
        t = self.tables[table]
        values = {c: row[c].to_parameter() for c in columns}

        unknown = [c for c in columns if c not in t.columns]
        if unknown:
            raise pyodbc.Error("42703", f"column \"{unknown[0]}\" does not exist")

        match_column = key_columns[0] if key_columns else (t.primary_key[0] if t.primary_key else None)
        if match_column is not None and values.get(match_column) in self.fail_rows.get(table, {}):
            raise pyodbc.Error("22018", self.fail_rows[table][values[match_column]])

        if key_columns:
            for existing in t.rows:
                if all(existing.get(k) == values[k] for k in key_columns):
                    existing.update(values)
                    return
        elif t.key_declared and all(c in values for c in t.primary_key):
            for existing in t.rows:
                if all(existing.get(k) == values[k] for k in t.primary_key):
                    raise pyodbc.IntegrityError("23505", "duplicate key value violates unique constraint")
        t.rows.append(values)

    def delete_all(self, table: str) -> None:
        self.touched.append(("delete", table))
        self.writes += 1
        if self.enforce_foreign_keys and self.constraints_enforced:
            for child, parent in self.foreign_keys:
                if parent == table and child != table and child in self.tables and self.tables[child].rows:
                    raise pyodbc.IntegrityError(
                        "23503", f"update or delete on table \"{table}\" violates foreign key constraint "
                                 f"on table \"{child}\"")
        self.tables[table].rows = []
        self.deleted.append(table)

    def set_identity_insert(self, table: str, enabled: bool) -> None:
        self.touched.append(("identity_insert", table))
        self.identity_insert_log.append((table, enabled))

    def suspend_constraints(self, tables: List[str]) -> None:
        self.writes += 1
        for table in tables:
            self.touched.append(("suspend", table))
        if self.fail_suspend:
            raise pyodbc.Error("42501", "permission denied to set parameter \"session_replication_role\"")
        self.constraints_enforced = False

    def restore_constraints(self, tables: List[str]) -> None:
        for table in tables:
            self.touched.append(("restore", table))
        if self.fail_restore:
            raise pyodbc.Error("08003", "connection does not exist")
        self.constraints_enforced = True


def make_rows(count: int, start: int = 1, **extra) -> List[Dict[str, Any]]:
    """Rows with id and name columns plus any constant extra columns."""
    rows = []
    for i in range(start, start + count):
        row = {'id': i, 'name': f"row-{i}"}
        row.update(extra)
        rows.append(row)
    return rows
