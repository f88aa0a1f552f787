"""
Narrow store interface consumed by every component.

Rows travel as plain dicts keyed by column name. Implementations must be
schema tolerant: reads return whatever columns a table actually has, and
writes silently skip fields the table does not know.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

# First column found wins when ordering a table by recency.
RECENCY_COLUMNS = ("timestamp", "updated_at", "last_seen", "created_at")


def recency_column(columns: Iterable[str]) -> Optional[str]:
    cols = set(columns)
    for name in RECENCY_COLUMNS:
        if name in cols:
            return name
    return None


class GraphStore(ABC):

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be reached at all."""

    @abstractmethod
    def count(self, table: str) -> int: ...

    @abstractmethod
    def list_columns(self, table: str) -> List[str]: ...

    @abstractmethod
    def select_recent(self, table: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Rows ordered newest first. ``limit=None`` returns the whole table."""

    @abstractmethod
    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def upsert_by_key(self, table: str, key: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        """Update the row matching ``key`` or insert ``key | fields``. Returns True on insert."""

    @abstractmethod
    def insert(self, table: str, fields: Dict[str, Any]) -> None: ...

    @abstractmethod
    def set_many(self, values: Dict[str, Any]) -> None:
        """Write stats key/value pairs in a single transaction."""

    @abstractmethod
    def get_stat(self, key: str) -> Optional[str]: ...

    def has_table(self, table: str) -> bool:
        from memweave.errors import StoreUnavailableError
        try:
            self.list_columns(table)
            return True
        except StoreUnavailableError:
            return False
