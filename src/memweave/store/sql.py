from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, NoSuchTableError, SQLAlchemyError

from memweave.db import make_engine
from memweave.errors import StoreError, StoreUnavailableError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore, recency_column


class SQLStore(GraphStore):
    """GraphStore over a relational database, using reflected tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, db_url: str | None = None) -> "SQLStore":
        return cls(make_engine(db_url))

    @contextmanager
    def _guard(self, table: str):
        try:
            yield
        except NoSuchTableError as e:
            raise StoreUnavailableError(f"Table '{table}' does not exist", table=table) from e
        except IntegrityError as e:
            raise StoreError(f"Integrity error on '{table}': {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Store error on '{table}': {e}", table=table) from e

    def _table(self, name: str) -> sa.Table:
        with self._guard(name):
            return sa.Table(name, sa.MetaData(), autoload_with=self.engine)

    @staticmethod
    def _known(table: sa.Table, fields: Dict[str, Any]) -> Dict[str, Any]:
        known = {k: v for k, v in fields.items() if k in table.c}
        dropped = set(fields) - set(known)
        if dropped:
            logger.debug(f"Table '{table.name}' has no column(s) {sorted(dropped)}; skipped")
        return known

    @staticmethod
    def _where(table: sa.Table, key: Dict[str, Any]):
        missing = [k for k in key if k not in table.c]
        if missing:
            raise StoreError(f"Table '{table.name}' has no key column(s) {missing}")
        return sa.and_(*[table.c[k] == v for k, v in key.items()])

    def ping(self) -> None:
        url = self.engine.url
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            if not Path(url.database).exists():
                raise StoreUnavailableError(f"Database not found at {url.database}")
        try:
            with self.engine.connect() as conn:
                conn.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Cannot connect to database: {e}") from e

    def count(self, table: str) -> int:
        t = self._table(table)
        with self._guard(table), self.engine.connect() as conn:
            return int(conn.execute(sa.select(sa.func.count()).select_from(t)).scalar() or 0)

    def list_columns(self, table: str) -> List[str]:
        with self._guard(table):
            return [c["name"] for c in sa.inspect(self.engine).get_columns(table)]

    def select_recent(self, table: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        t = self._table(table)
        stmt = sa.select(t)
        order_col = recency_column(t.c.keys())
        if order_col:
            stmt = stmt.order_by(t.c[order_col].desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._guard(table), self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings().all()]

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        t = self._table(table)
        stmt = sa.select(t).where(self._where(t, key)).limit(1)
        with self._guard(table), self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def upsert_by_key(self, table: str, key: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        t = self._table(table)
        cond = self._where(t, key)
        with self._guard(table), self.engine.begin() as conn:
            exists = conn.execute(sa.select(sa.func.count()).select_from(t).where(cond)).scalar()
            if exists:
                values = self._known(t, fields)
                if values:
                    conn.execute(sa.update(t).where(cond).values(values))
                return False
            conn.execute(sa.insert(t).values(self._known(t, {**fields, **key})))
            return True

    def insert(self, table: str, fields: Dict[str, Any]) -> None:
        t = self._table(table)
        with self._guard(table), self.engine.begin() as conn:
            conn.execute(sa.insert(t).values(self._known(t, fields)))

    def set_many(self, values: Dict[str, Any]) -> None:
        t = self._table("stats")
        now = now_epoch()
        has_updated_at = "updated_at" in t.c
        with self._guard("stats"), self.engine.begin() as conn:
            for key, value in values.items():
                row = {"value": str(value)}
                if has_updated_at:
                    row["updated_at"] = now
                cond = t.c.key == key
                exists = conn.execute(sa.select(sa.func.count()).select_from(t).where(cond)).scalar()
                if exists:
                    conn.execute(sa.update(t).where(cond).values(row))
                else:
                    conn.execute(sa.insert(t).values({"key": key, **row}))

    def get_stat(self, key: str) -> Optional[str]:
        row = self.get("stats", {"key": key})
        return None if row is None else row.get("value")
