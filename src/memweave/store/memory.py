import copy
from typing import Any, Dict, List, Optional

from sqlmodel import SQLModel

from memweave.errors import StoreError, StoreUnavailableError
from memweave.models import TABLES
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore, recency_column


class _Table:
    def __init__(self, columns: List[str], autoincrement: bool = False):
        self.columns = list(columns)
        self.autoincrement = autoincrement
        self.rows: List[Dict[str, Any]] = []
        self.next_id = 1


class InMemoryStore(GraphStore):
    """
    Dict-backed GraphStore used in tests.

    Tables mirror the canonical schema by default; ``drop_table`` and
    ``create_table`` let tests reproduce missing or legacy tables, and
    ``available = False`` simulates a store that cannot be reached.
    """

    def __init__(self, tables: Optional[Dict[str, List[str]]] = None):
        self.available = True
        self.tables: Dict[str, _Table] = {}
        if tables is None:
            for name in TABLES:
                sa_table = SQLModel.metadata.tables[name]
                pk = list(sa_table.primary_key.columns)
                auto = len(pk) == 1 and pk[0].type.python_type is int
                self.tables[name] = _Table(list(sa_table.columns.keys()), autoincrement=auto)
        else:
            for name, columns in tables.items():
                self.tables[name] = _Table(columns)

    def create_table(self, name: str, columns: List[str], autoincrement: bool = False):
        self.tables[name] = _Table(columns, autoincrement=autoincrement)

    def drop_table(self, name: str):
        self.tables.pop(name, None)

    def _t(self, name: str) -> _Table:
        if not self.available:
            raise StoreUnavailableError("Store is offline")
        if name not in self.tables:
            raise StoreUnavailableError(f"Table '{name}' does not exist", table=name)
        return self.tables[name]

    @staticmethod
    def _matches(row: Dict[str, Any], key: Dict[str, Any]) -> bool:
        return all(row.get(k) == v for k, v in key.items())

    def _find(self, t: _Table, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        missing = [k for k in key if k not in t.columns]
        if missing:
            raise StoreError(f"Table '{table}' has no key column(s) {missing}")
        for row in t.rows:
            if self._matches(row, key):
                return row
        return None

    def _new_row(self, t: _Table, fields: Dict[str, Any]) -> Dict[str, Any]:
        row = {c: None for c in t.columns}
        row.update({k: v for k, v in fields.items() if k in t.columns})
        if t.autoincrement and row.get("id") is None:
            row["id"] = t.next_id
            t.next_id += 1
        return row

    def _check_unique(self, table: str, row: Dict[str, Any]):
        # Mirrors the unique constraints of the canonical schema.
        unique = {"edges": ("source", "target"), "agents": ("name",), "compressed_patterns": ("layer",)}
        cols = unique.get(table)
        if not cols or not all(c in row for c in cols):
            return
        for other in self.tables[table].rows:
            if all(other.get(c) == row[c] for c in cols):
                raise StoreError(f"Integrity error on '{table}': duplicate {cols}")

    def ping(self) -> None:
        if not self.available:
            raise StoreUnavailableError("Store is offline")

    def count(self, table: str) -> int:
        return len(self._t(table).rows)

    def list_columns(self, table: str) -> List[str]:
        return list(self._t(table).columns)

    def select_recent(self, table: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        t = self._t(table)
        rows = list(reversed(t.rows))
        order_col = recency_column(t.columns)
        if order_col:
            rows.sort(key=lambda r: r.get(order_col) or 0, reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._find(self._t(table), table, key)
        return copy.deepcopy(row) if row is not None else None

    def upsert_by_key(self, table: str, key: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        t = self._t(table)
        row = self._find(t, table, key)
        if row is not None:
            row.update({k: v for k, v in fields.items() if k in t.columns})
            return False
        new = self._new_row(t, {**fields, **key})
        self._check_unique(table, new)
        t.rows.append(new)
        return True

    def insert(self, table: str, fields: Dict[str, Any]) -> None:
        t = self._t(table)
        new = self._new_row(t, fields)
        self._check_unique(table, new)
        t.rows.append(new)

    def set_many(self, values: Dict[str, Any]) -> None:
        t = self._t("stats")
        now = now_epoch()
        staged = copy.deepcopy(t.rows)
        for key, value in values.items():
            row = next((r for r in staged if r.get("key") == key), None)
            if row is None:
                row = {c: None for c in t.columns}
                row["key"] = key
                staged.append(row)
            row["value"] = str(value)
            if "updated_at" in t.columns:
                row["updated_at"] = now
        t.rows = staged

    def get_stat(self, key: str) -> Optional[str]:
        row = self.get("stats", {"key": key})
        return None if row is None else row.get("value")
