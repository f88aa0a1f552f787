"""
Bundled compressor: int8 scalar quantization of pattern vectors.

Each layer is stored as a float32 scale followed by one signed byte per
dimension, roughly a quarter of the raw float32 size. force_learn folds the
layers of each category into a single centroid layer.
"""
import json
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List

import numpy as np

from memweave.errors import CompressorError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore

SCALE_BYTES = 4
CENTROID_PREFIX = "centroid-"


def quantize(vector: np.ndarray) -> bytes:
    v = np.asarray(vector, dtype=np.float32).ravel()
    peak = float(np.max(np.abs(v))) if v.size else 0.0
    scale = peak / 127.0 if peak > 0 else 1.0
    q = np.clip(np.rint(v / scale), -127, 127).astype(np.int8)
    return np.float32(scale).tobytes() + q.tobytes()


def dequantize(data: bytes) -> np.ndarray:
    if data is None or len(data) <= SCALE_BYTES:
        raise CompressorError("quantized payload is empty")
    scale = np.frombuffer(data[:SCALE_BYTES], dtype=np.float32)[0]
    return np.frombuffer(data[SCALE_BYTES:], dtype=np.int8).astype(np.float32) * scale


class Compressor(ABC):
    """Interface the compression bridge drives."""

    @abstractmethod
    def store_pattern(self, layer: str, vector: np.ndarray, metadata: Dict[str, Any]) -> None: ...

    @abstractmethod
    def force_learn(self) -> None: ...

    def get_stats(self) -> Dict[str, Any]:
        return {}

    def close(self) -> None:
        pass


class QuantizingCompressor(Compressor):

    def __init__(self, store: GraphStore, dimensions: int = 384):
        if dimensions <= 0:
            raise CompressorError(f"invalid dimensions: {dimensions}")
        self.store = store
        self.dimensions = dimensions
        self.stats = {"patterns_stored": 0, "calls_store": 0, "centroids": 0}

    def store_pattern(self, layer: str, vector: np.ndarray, metadata: Dict[str, Any]) -> None:
        self.stats["calls_store"] += 1
        v = np.asarray(vector, dtype=np.float32).ravel()
        if v.size != self.dimensions:
            raise CompressorError(f"{layer}: expected {self.dimensions} dims, got {v.size}")
        data = quantize(v)
        self.store.upsert_by_key("compressed_patterns", {"layer": layer}, {
            "id": f"cp-{layer}",
            "data": data,
            "compression_ratio": (self.dimensions * 4) / len(data),
            "created_at": now_epoch(),
            "metadata": json.dumps({**metadata, "method": "int8"}, sort_keys=True),
        })
        self.stats["patterns_stored"] += 1

    def force_learn(self) -> None:
        """Write one centroid layer per category from every quantized pattern layer."""
        groups: Dict[str, List[np.ndarray]] = defaultdict(list)
        members: Dict[str, List[str]] = defaultdict(list)
        for row in self.store.select_recent("compressed_patterns"):
            layer = row.get("layer") or ""
            if layer.startswith(CENTROID_PREFIX):
                continue
            meta = json.loads(row.get("metadata") or "{}")
            if meta.get("method") != "int8":
                continue
            category = meta.get("category") or "unknown"
            groups[category].append(dequantize(row["data"]))
            members[category].append(layer)

        for category, vectors in groups.items():
            centroid = np.mean(np.stack(vectors), axis=0)
            data = quantize(centroid)
            layer = f"{CENTROID_PREFIX}{category}"
            self.store.upsert_by_key("compressed_patterns", {"layer": layer}, {
                "id": f"cp-{layer}",
                "data": data,
                "compression_ratio": (self.dimensions * 4 * len(vectors)) / len(data),
                "created_at": now_epoch(),
                "metadata": json.dumps({
                    "category": category,
                    "members": sorted(members[category]),
                    "method": "int8-centroid",
                }, sort_keys=True),
            })
            self.stats["centroids"] += 1
        logger.debug(f"force_learn wrote {len(groups)} centroid layer(s)")

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
