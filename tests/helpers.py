import json
import math
from typing import Optional

import numpy as np

from memweave.embeddings.codec import serialize
from memweave.embeddings.providers import Embedder
from memweave.errors import MalformedInputError

DIM = 8


def axis(i: int, dim: int = DIM) -> np.ndarray:
    v = np.zeros(dim, dtype=np.float32)
    v[i] = 1.0
    return v


def toward(sim: float, to: int = 1, base: int = 0, dim: int = DIM) -> np.ndarray:
    """Unit vector whose cosine with axis(base) is exactly ``sim``."""
    v = np.zeros(dim, dtype=np.float32)
    v[base] = sim
    v[to] = math.sqrt(1.0 - sim ** 2)
    return v


def add_memory(
    store,
    mem_id: str,
    content: str = "",
    memory_type: str = "edit",
    vector: Optional[np.ndarray] = None,
    timestamp: int = 1000,
    embedding=None,
):
    if vector is not None:
        embedding = serialize(vector)
    store.insert("memories", {
        "id": mem_id,
        "memory_type": memory_type,
        "content": content,
        "embedding": embedding,
        "metadata": "{}",
        "timestamp": timestamp,
    })


def add_pattern(
    store,
    pattern_id: str,
    category: str = "filetype",
    content: str = "",
    vector: Optional[np.ndarray] = None,
    confidence: float = 0.5,
    usage: int = 1,
    timestamp: int = 1000,
):
    store.insert("neural_patterns", {
        "id": pattern_id,
        "content": content or pattern_id,
        "category": category,
        "confidence": confidence,
        "usage": usage,
        "embedding": serialize(vector) if vector is not None else None,
        "created_at": timestamp,
        "updated_at": timestamp,
        "metadata": "{}",
    })


def edge_between(store, a: str, b: str):
    for row in store.select_recent("edges"):
        if {row["source"], row["target"]} == {a, b}:
            return row
    return None


def edge_data(row) -> dict:
    return json.loads(row["data"])


def edge_snapshot(store):
    return sorted(
        (r["source"], r["target"], r["type"], round(r["weight"], 6))
        for r in store.select_recent("edges")
    )


class AxisEmbedder(Embedder):
    """Every text maps to the last axis, orthogonal to the vectors tests seed."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.calls = 0

    def embed(self, text: str) -> np.ndarray:
        self.calls += 1
        return self._checked(axis(self.dimension - 1, self.dimension))


class FailingEmbedder(Embedder):

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension

    def embed(self, text: str) -> np.ndarray:
        raise MalformedInputError("embedding backend unavailable")
