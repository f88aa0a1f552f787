from memweave.store.base import GraphStore, recency_column
from memweave.store.sql import SQLStore
from memweave.store.memory import InMemoryStore

__all__ = ["GraphStore", "recency_column", "SQLStore", "InMemoryStore"]
