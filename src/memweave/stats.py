from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from memweave.agents import count_agents
from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.embeddings.codec import decode, EmbeddingKind, FLOAT32_BYTES
from memweave.errors import StoreUnavailableError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore

COUNTED_TABLES = {
    "total_memories": "memories",
    "total_neural_patterns": "neural_patterns",
    "total_edges": "edges",
    "total_trajectories": "trajectories",
    "sona_patterns_compressed": "compressed_patterns",
}


@dataclass
class StatsSnapshot:
    memories: int = 0
    neural_patterns: int = 0
    edges: int = 0
    trajectories: int = 0
    agents: int = 0
    compressed_patterns: int = 0
    embedding_dimension: int = 0
    consolidation_count: int = 0
    last_consolidation: int = 0


def iso_timestamp(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def read_int_stat(store: GraphStore, key: str) -> int:
    raw = store.get_stat(key)
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


def _safe_count(store: GraphStore, table: str, diagnostics: Optional[Diagnostics]) -> int:
    try:
        return store.count(table)
    except StoreUnavailableError as e:
        if diagnostics is not None:
            diagnostics.record("stats", DiagnosticKind.STORE_UNAVAILABLE, str(e), table=table)
        return 0


def infer_embedding_dimension(store: GraphStore, default: int) -> int:
    """Dimension of the newest memory that carries an embedding."""
    for row in store.select_recent("memories", 50):
        raw = row.get("embedding")
        if raw is None:
            continue
        if isinstance(raw, (bytes, bytearray, memoryview)) and not bytes(raw).lstrip().startswith(b"["):
            if len(raw) and len(raw) % FLOAT32_BYTES == 0:
                return len(raw) // FLOAT32_BYTES
            continue
        decoded = decode(raw, dimension=default)
        if decoded.kind != EmbeddingKind.MALFORMED and decoded.vector is not None:
            return int(decoded.vector.size)
    return default


def sync_stats(
    store: GraphStore,
    cfg: Settings | None = None,
    diagnostics: Optional[Diagnostics] = None,
) -> StatsSnapshot:
    """Recompute every counter from current table contents and persist them in one transaction."""
    cfg = cfg or default_settings
    now = now_epoch()
    counts: Dict[str, int] = {
        key: _safe_count(store, table, diagnostics) for key, table in COUNTED_TABLES.items()
    }
    try:
        counts["total_agents"] = count_agents(store)
    except StoreUnavailableError as e:
        if diagnostics is not None:
            diagnostics.record("stats", DiagnosticKind.STORE_UNAVAILABLE, str(e), table="agents")
        counts["total_agents"] = 0

    try:
        dimension = infer_embedding_dimension(store, cfg.EMBEDDING_DIM)
    except StoreUnavailableError:
        dimension = cfg.EMBEDDING_DIM

    consolidation_count = read_int_stat(store, "consolidation_count") + 1
    values = {
        **counts,
        "total_patterns": counts["total_neural_patterns"],
        "embedding_dimension": dimension,
        "last_consolidation": now,
        "last_consolidate": iso_timestamp(now),
        "consolidation_count": consolidation_count,
    }
    store.set_many(values)
    logger.info(
        f"Stats synced: memories={counts['total_memories']} "
        f"neural_patterns={counts['total_neural_patterns']} edges={counts['total_edges']} "
        f"compressed={counts['sona_patterns_compressed']} dim={dimension}"
    )
    return StatsSnapshot(
        memories=counts["total_memories"],
        neural_patterns=counts["total_neural_patterns"],
        edges=counts["total_edges"],
        trajectories=counts["total_trajectories"],
        agents=counts["total_agents"],
        compressed_patterns=counts["sona_patterns_compressed"],
        embedding_dimension=dimension,
        consolidation_count=consolidation_count,
        last_consolidation=now,
    )


def record_session_start(store: GraphStore, agent: str, session_id: str) -> int:
    """Session bookkeeping on start; returns the new session_count."""
    now = now_epoch()
    session_count = read_int_stat(store, "session_count") + 1
    store.set_many({
        "last_session": session_id,
        "last_session_timestamp": now,
        "session_count": session_count,
        "last_agent": agent,
    })
    return session_count


def record_session_end(store: GraphStore) -> int:
    """Session bookkeeping on end; returns the new total_sessions."""
    total = read_int_stat(store, "total_sessions") + 1
    store.set_many({"last_session_end": now_epoch(), "total_sessions": total})
    return total
