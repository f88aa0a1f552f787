"""
Similarity-based edges between memories, and between patterns and memories.

Two thresholds gate each pass: a stricter one for pairs of the same
memory_type and a looser one for cross-type "bridges". A pass over a
non-trivial window that yields nothing is reported as an anomaly, since it
usually means the thresholds do not fit the embedding model in use.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.edges.deterministic import EdgeTally
from memweave.edges.writer import mem_node, pattern_node, upsert_edge
from memweave.embeddings.codec import parse, serialize
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.errors import MalformedInputError
from memweave.logging import logger
from memweave.similarity import PairRanking, VectorNode, rank_pairs
from memweave.store.base import GraphStore

PATTERN_KIND = "__pattern__"


@dataclass
class SemanticProfile:
    """Thresholds and bounds for one call site."""
    same_type_threshold: float
    cross_type_threshold: float
    max_per_node: int
    window: int
    pattern_threshold: Optional[float] = None
    pattern_window: int = 0

    @classmethod
    def event(cls, cfg: Settings | None = None) -> "SemanticProfile":
        cfg = cfg or default_settings
        return cls(
            same_type_threshold=cfg.EVENT_SAME_TYPE_THRESHOLD,
            cross_type_threshold=cfg.EVENT_CROSS_TYPE_THRESHOLD,
            max_per_node=cfg.EVENT_MAX_EDGES_PER_NODE,
            window=cfg.EVENT_WINDOW,
        )

    @classmethod
    def sweep(cls, cfg: Settings | None = None) -> "SemanticProfile":
        cfg = cfg or default_settings
        return cls(
            same_type_threshold=cfg.SWEEP_SAME_TYPE_THRESHOLD,
            cross_type_threshold=cfg.SWEEP_CROSS_TYPE_THRESHOLD,
            max_per_node=cfg.SWEEP_MAX_EDGES_PER_NODE,
            window=cfg.SWEEP_WINDOW,
            pattern_threshold=cfg.PATTERN_MEMORY_THRESHOLD,
            pattern_window=cfg.PATTERN_SEMANTIC_WINDOW,
        )

    def memory_threshold(self, kind_a: str, kind_b: str) -> Optional[float]:
        return self.same_type_threshold if kind_a == kind_b else self.cross_type_threshold

    def pattern_memory_threshold(self, kind_a: str, kind_b: str) -> Optional[float]:
        # Only pattern <-> memory pairs are scored in the pattern pass.
        if (kind_a == PATTERN_KIND) == (kind_b == PATTERN_KIND):
            return None
        return self.pattern_threshold


@dataclass
class VectorResolution:
    parsed: int = 0
    generated: int = 0
    failed: int = 0


@dataclass
class SemanticResult:
    tally: EdgeTally = field(default_factory=EdgeTally)
    memory_pass: Optional[PairRanking] = None
    pattern_pass: Optional[PairRanking] = None
    vectors: VectorResolution = field(default_factory=VectorResolution)


def resolve_vector(
    row: Dict[str, Any],
    text: str,
    embedder: Embedder,
    dimension: int,
    counts: VectorResolution,
    diagnostics: Optional[Diagnostics] = None,
    label: str = "record",
) -> Optional[np.ndarray]:
    """Stored vector if valid, otherwise one generated from text, otherwise None."""
    vector = parse(row.get("embedding"), dimension)
    if vector is not None:
        counts.parsed += 1
        return vector
    if not text:
        counts.failed += 1
        return None
    try:
        vector = embedder.embed(text)
    except MalformedInputError as e:
        counts.failed += 1
        if diagnostics is not None:
            diagnostics.record(
                "semantic", DiagnosticKind.EMBEDDING_FAILURE,
                f"Failed to generate embedding for {label} {row.get('id')}", error=str(e),
            )
        return None
    counts.generated += 1
    return vector


def _memory_nodes(
    store: GraphStore,
    memories: List[Dict[str, Any]],
    embedder: Embedder,
    cfg: Settings,
    counts: VectorResolution,
    diagnostics: Optional[Diagnostics],
) -> List[VectorNode]:
    nodes = []
    for mem in memories:
        had_vector = parse(mem.get("embedding"), cfg.EMBEDDING_DIM) is not None
        vector = resolve_vector(
            mem, mem.get("content") or "", embedder, cfg.EMBEDDING_DIM, counts, diagnostics, "memory",
        )
        if vector is None:
            continue
        if cfg.BACKFILL_MEMORY_EMBEDDINGS and not had_vector:
            store.upsert_by_key("memories", {"id": mem["id"]}, {"embedding": serialize(vector)})
        nodes.append(VectorNode(mem_node(mem["id"]), mem.get("memory_type") or "general", vector))
    return nodes


def _report_empty_pass(
    name: str,
    ranking: PairRanking,
    window: int,
    thresholds: Dict[str, Optional[float]],
    cfg: Settings,
    diagnostics: Optional[Diagnostics],
):
    logger.info(
        f"[SEMANTIC:{name}] vectors={window} pairs={ranking.pairs_checked} "
        f"maxSim={ranking.max_similarity:.3f} edges={len(ranking.pairs)}"
    )
    if ranking.pairs or ranking.pairs_checked == 0 or window < cfg.SEMANTIC_ANOMALY_MIN_WINDOW:
        return
    if diagnostics is not None:
        diagnostics.record(
            "semantic", DiagnosticKind.ANOMALY,
            f"{name} pass produced no edges from {window} vectors; thresholds are probably miscalibrated",
            pairs_checked=ranking.pairs_checked,
            max_similarity=round(ranking.max_similarity, 4),
            **thresholds,
        )


def derive_semantic_edges(
    store: GraphStore,
    profile: SemanticProfile | None = None,
    event: str = "consolidate",
    embedder: Embedder | None = None,
    cfg: Settings | None = None,
    diagnostics: Optional[Diagnostics] = None,
) -> SemanticResult:
    cfg = cfg or default_settings
    profile = profile or SemanticProfile.sweep(cfg)
    embedder = embedder or get_embedder(cfg)
    result = SemanticResult()

    memories = store.select_recent("memories", profile.window)
    nodes = _memory_nodes(store, memories, embedder, cfg, result.vectors, diagnostics)

    ranking = rank_pairs(nodes, profile.memory_threshold, profile.max_per_node)
    for pair in ranking.pairs:
        result.tally.add(upsert_edge(
            store, pair.a.id, pair.b.id,
            "semantic" if pair.same_kind else "semantic_bridge",
            pair.similarity,
            {
                "similarity": round(pair.similarity, 6),
                "from_type": pair.a.kind,
                "to_type": pair.b.kind,
                "event": event,
            },
        ))
    result.memory_pass = ranking
    _report_empty_pass(
        "memory", ranking, len(nodes),
        {"same_type_threshold": profile.same_type_threshold,
         "cross_type_threshold": profile.cross_type_threshold},
        cfg, diagnostics,
    )

    if profile.pattern_threshold is not None:
        result.pattern_pass = _pattern_pass(
            store, profile, nodes[: profile.pattern_window], embedder, cfg, result, event, diagnostics,
        )

    logger.info(
        f"Semantic edges ({event}): {result.tally.created} new, {result.tally.updated} refreshed "
        f"(parsed={result.vectors.parsed} generated={result.vectors.generated} failed={result.vectors.failed})"
    )
    return result


def _pattern_pass(
    store: GraphStore,
    profile: SemanticProfile,
    memory_nodes: List[VectorNode],
    embedder: Embedder,
    cfg: Settings,
    result: SemanticResult,
    event: str,
    diagnostics: Optional[Diagnostics],
) -> PairRanking:
    patterns = store.select_recent("neural_patterns", profile.pattern_window)
    pattern_nodes = []
    for pat in patterns:
        text = f"{pat.get('content') or ''} {pat.get('category') or ''}".strip()
        vector = resolve_vector(
            pat, text, embedder, cfg.EMBEDDING_DIM, result.vectors, diagnostics, "pattern",
        )
        if vector is not None:
            pattern_nodes.append(VectorNode(pattern_node(pat["id"]), PATTERN_KIND, vector))

    ranking = rank_pairs(pattern_nodes + memory_nodes, profile.pattern_memory_threshold, profile.max_per_node)
    for pair in ranking.pairs:
        pat, mem = (pair.a, pair.b) if pair.a.kind == PATTERN_KIND else (pair.b, pair.a)
        result.tally.add(upsert_edge(
            store, pat.id, mem.id, "semantic_bridge", pair.similarity,
            {
                "similarity": round(pair.similarity, 6),
                "from_type": "pattern",
                "to_type": mem.kind,
                "event": event,
            },
        ))
    _report_empty_pass(
        "pattern", ranking, len(pattern_nodes) + len(memory_nodes),
        {"pattern_threshold": profile.pattern_threshold},
        cfg, diagnostics,
    )
    return ranking
