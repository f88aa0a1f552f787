"""
Compression bridge ("dream cycle").

Mirrors every neural pattern into compressed_patterns under the layer
"neural-<pattern id>". Patterns go through an external compressor when one
can be built; otherwise, or when it fails for a pattern, the raw vector is
stored directly with compression_ratio 1.0 and method "direct". Direct
inserts are never rolled back by a later compressor failure.
"""
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from memweave.compression.quantizer import Compressor
from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.embeddings.codec import parse, serialize
from memweave.embeddings.migrate import pattern_embedding_text
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.errors import CompressionBusyError, MalformedInputError, StoreUnavailableError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.stats import iso_timestamp
from memweave.store.base import GraphStore

LAYER_PREFIX = "neural-"

CompressorFactory = Callable[..., Compressor]

_active_lock = threading.Lock()
_active_stores: set = set()


@dataclass
class CompressionResult:
    compressed: int = 0
    direct: int = 0
    skipped: int = 0
    embeddings_generated: int = 0
    used_compressor: bool = False
    compressor_stats: Dict[str, Any] = field(default_factory=dict)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def stored(self) -> int:
        return self.compressed + self.direct


def layer_for(pattern_id: str) -> str:
    return f"{LAYER_PREFIX}{pattern_id}"


def build_compressor(
    factory: Optional[CompressorFactory],
    store: GraphStore,
    cfg: Settings,
    diagnostics: Diagnostics,
) -> Optional[Compressor]:
    """Keyword signature first, then positional; two failures mean no compressor."""
    if factory is None:
        return None
    try:
        return factory(store=store, dimensions=cfg.EMBEDDING_DIM)
    except Exception as first:
        logger.debug(f"Compressor keyword construction failed: {first}")
        try:
            return factory(store, cfg.EMBEDDING_DIM)
        except Exception as second:
            diagnostics.record(
                "compression", DiagnosticKind.COMPRESSOR_FAILURE,
                "compressor unavailable, falling back to direct storage",
                first_error=str(first), second_error=str(second),
            )
            return None


def _store_direct(store: GraphStore, layer: str, vector, pattern: Dict[str, Any], now: int):
    metadata = {
        "category": pattern.get("category") or "unknown",
        "pattern_type": pattern.get("pattern_type") or pattern.get("category") or "unknown",
        "confidence": pattern.get("confidence"),
        "original_id": pattern["id"],
        "compressed_at": iso_timestamp(now),
        "method": "direct",
    }
    store.upsert_by_key("compressed_patterns", {"layer": layer}, {
        "id": f"cp-{layer}",
        "data": serialize(vector),
        "compression_ratio": 1.0,
        "created_at": now,
        "metadata": json.dumps(metadata, sort_keys=True),
    })


def _count(store: GraphStore, table: str) -> int:
    try:
        return store.count(table)
    except StoreUnavailableError:
        return 0


def compress_patterns(
    store: GraphStore,
    compressor_factory: Optional[CompressorFactory] = None,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
) -> CompressionResult:
    """Run one dream cycle. Refuses to run twice at once for the same store."""
    with _active_lock:
        if id(store) in _active_stores:
            raise CompressionBusyError("a compression run is already active for this store")
        _active_stores.add(id(store))
    try:
        return _compress(store, compressor_factory, cfg or default_settings, embedder)
    finally:
        with _active_lock:
            _active_stores.discard(id(store))


def _compress(
    store: GraphStore,
    factory: Optional[CompressorFactory],
    cfg: Settings,
    embedder: Optional[Embedder],
) -> CompressionResult:
    store.ping()
    embedder = embedder or get_embedder(cfg)
    result = CompressionResult()
    diags = result.diagnostics
    now = now_epoch()

    patterns = store.select_recent("neural_patterns")
    existing = {row.get("layer") for row in store.select_recent("compressed_patterns")}

    pending = []
    for pat in patterns:
        layer = layer_for(pat["id"])
        if layer in existing:
            result.skipped += 1
            continue
        vector = parse(pat.get("embedding"), cfg.EMBEDDING_DIM)
        if vector is None:
            try:
                vector = embedder.embed(pattern_embedding_text(pat))
            except MalformedInputError as e:
                diags.record(
                    "compression", DiagnosticKind.EMBEDDING_FAILURE,
                    f"Failed to generate embedding for pattern {pat['id']}",
                    pattern_id=pat["id"], error=str(e),
                )
                continue
            store.upsert_by_key("neural_patterns", {"id": pat["id"]}, {"embedding": serialize(vector)})
            result.embeddings_generated += 1
        pending.append((pat, layer, vector))

    pending = pending[: cfg.COMPRESSOR_MAX_PATTERNS]
    compressor = build_compressor(factory, store, cfg, diags) if pending else None
    result.used_compressor = compressor is not None

    for pat, layer, vector in pending:
        if compressor is not None:
            try:
                compressor.store_pattern(layer, vector, {
                    "category": pat.get("category") or "unknown",
                    "content": pat.get("content"),
                    "confidence": pat.get("confidence"),
                    "original_id": pat["id"],
                })
                result.compressed += 1
                continue
            except Exception as e:
                diags.record(
                    "compression", DiagnosticKind.COMPRESSOR_FAILURE,
                    f"store_pattern failed for {layer}, stored directly", error=str(e),
                )
        _store_direct(store, layer, vector, pat, now)
        result.direct += 1

    if compressor is not None:
        if result.compressed:
            try:
                compressor.force_learn()
            except Exception as e:
                diags.record("compression", DiagnosticKind.COMPRESSOR_FAILURE, f"force_learn failed: {e}")
        try:
            result.compressor_stats = compressor.get_stats()
            compressor.close()
        except Exception as e:
            diags.record("compression", DiagnosticKind.COMPRESSOR_FAILURE, f"compressor shutdown failed: {e}")

    stamp = iso_timestamp(now)
    store.set_many({
        "sona_last_dream_cycle": stamp,
        "sona_patterns_compressed": _count(store, "compressed_patterns"),
        "last_consolidate": stamp,
        "total_neural_patterns": _count(store, "neural_patterns"),
        "total_edges": _count(store, "edges"),
    })
    logger.info(
        f"Dream cycle complete: {result.compressed} compressed, {result.direct} direct, "
        f"{result.skipped} already mirrored"
    )
    return result
