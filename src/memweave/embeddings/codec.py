"""
Embedding codec.

Historical rows hold vectors in several encodings: packed float32 BLOBs,
plain numeric arrays and JSON array strings. Everything is decoded once
here; downstream code only ever sees a fixed-length float32 vector or None.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np

from memweave.config import settings

FLOAT32_BYTES = 4


class EmbeddingKind(str, Enum):
    BYTES = "bytes"
    ARRAY = "array"
    JSON = "json"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass
class DecodedEmbedding:
    kind: EmbeddingKind
    vector: Optional[np.ndarray] = None
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.vector is not None


@dataclass
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


def validate(vector: Any, dimension: int | None = None) -> ValidationResult:
    """Check shape, length and finiteness; reports the first non-finite index."""
    dim = dimension or settings.EMBEDDING_DIM
    if vector is None:
        return ValidationResult(False, "null embedding")
    try:
        arr = np.asarray(vector, dtype=np.float64)
    except (ValueError, TypeError) as e:
        return ValidationResult(False, f"non-numeric embedding: {e}")
    if arr.ndim != 1:
        return ValidationResult(False, f"expected a flat vector, got {arr.ndim}-d shape {arr.shape}")
    if arr.shape[0] != dim:
        return ValidationResult(False, f"wrong dimension: {arr.shape[0]} (expected {dim})")
    bad = np.flatnonzero(~np.isfinite(arr))
    if bad.size:
        idx = int(bad[0])
        kind = "NaN" if np.isnan(arr[idx]) else "Inf"
        return ValidationResult(False, f"{kind} at index {idx}")
    return ValidationResult(True)


def _from_bytes(raw: bytes) -> np.ndarray:
    stripped = raw.lstrip()
    # Some writers stored JSON text in the BLOB column.
    if stripped[:1] == b"[":
        return _from_json(stripped.decode("utf-8"))
    if len(raw) % FLOAT32_BYTES:
        raise ValueError(f"byte length {len(raw)} is not a multiple of {FLOAT32_BYTES}")
    return np.frombuffer(raw, dtype="<f4").copy()


def _from_json(raw: str) -> np.ndarray:
    values = json.loads(raw)
    if not isinstance(values, list):
        raise ValueError(f"JSON embedding is a {type(values).__name__}, not a list")
    return np.asarray(values, dtype=np.float32)


def decode(raw: Any, dimension: int | None = None) -> DecodedEmbedding:
    """Decode any supported encoding into a tagged result. Never raises."""
    dim = dimension or settings.EMBEDDING_DIM
    if raw is None:
        return DecodedEmbedding(EmbeddingKind.ABSENT, reason="null embedding")

    if isinstance(raw, (bytes, bytearray, memoryview)):
        kind = EmbeddingKind.BYTES
        raw = bytes(raw)
        if not raw:
            return DecodedEmbedding(EmbeddingKind.ABSENT, reason="empty buffer")
        decoder = _from_bytes
    elif isinstance(raw, str):
        kind = EmbeddingKind.JSON
        if not raw.strip():
            return DecodedEmbedding(EmbeddingKind.ABSENT, reason="empty string")
        decoder = _from_json
    elif isinstance(raw, (list, tuple, np.ndarray)):
        kind = EmbeddingKind.ARRAY
        decoder = lambda v: np.asarray(v, dtype=np.float32)  # noqa: E731
    else:
        return DecodedEmbedding(
            EmbeddingKind.MALFORMED, reason=f"unsupported type {type(raw).__name__}"
        )

    try:
        vector = decoder(raw)
    except (ValueError, TypeError, UnicodeDecodeError) as e:
        return DecodedEmbedding(EmbeddingKind.MALFORMED, reason=str(e))

    check = validate(vector, dim)
    if not check.valid:
        return DecodedEmbedding(EmbeddingKind.MALFORMED, reason=check.reason)
    return DecodedEmbedding(kind, vector.astype(np.float32, copy=False))


def parse(raw: Any, dimension: int | None = None) -> Optional[np.ndarray]:
    """Return a valid fixed-length vector, or None for anything else."""
    return decode(raw, dimension).vector


def serialize(vector: Any) -> bytes:
    """Pack a vector as little-endian float32 bytes (dimension * 4 bytes)."""
    return np.asarray(vector, dtype="<f4").ravel().tobytes()
