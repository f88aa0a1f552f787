from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

# (kind_a, kind_b) -> minimum similarity, or None to skip the pair
ThresholdFn = Callable[[str, str], Optional[float]]


@dataclass
class VectorNode:
    id: str
    kind: str
    vector: np.ndarray


@dataclass
class ScoredPair:
    a: VectorNode
    b: VectorNode
    similarity: float

    @property
    def same_kind(self) -> bool:
        return self.a.kind == self.b.kind


@dataclass
class PairRanking:
    pairs: List[ScoredPair] = field(default_factory=list)
    pairs_checked: int = 0
    max_similarity: float = 0.0


def cosine_similarity(a, b) -> float:
    """Cosine similarity in [-1, 1]; 0 for absent, mismatched or zero vectors."""
    if a is None or b is None:
        return 0.0
    v1 = np.asarray(a, dtype=np.float64).ravel()
    v2 = np.asarray(b, dtype=np.float64).ravel()
    if v1.shape != v2.shape or v1.size == 0:
        return 0.0
    denom = np.linalg.norm(v1) * np.linalg.norm(v2)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(v1, v2) / denom, -1.0, 1.0))


def similarity_matrix(vectors: Sequence[np.ndarray]) -> np.ndarray:
    """
    Pairwise cosine similarities for equal-length vectors.
    Rows with zero norm get similarity 0 with everything.
    """
    matrix = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0, 1.0, norms)
    unit = matrix / safe[:, None]
    unit[norms == 0] = 0.0
    return np.clip(unit @ unit.T, -1.0, 1.0)


def rank_pairs(
    nodes: Sequence[VectorNode],
    threshold_fn: ThresholdFn,
    max_per_node: int,
) -> PairRanking:
    """
    Scan unordered pairs (i < j) in input order and accept those at or above
    their threshold. A node stops taking part once it holds max_per_node
    accepted pairs; the scan is O(n^2), so callers keep the input window small.
    """
    ranking = PairRanking()
    if len(nodes) < 2:
        return ranking

    # Only vectors of equal length are compared.
    by_dim: Dict[int, List[int]] = {}
    for idx, node in enumerate(nodes):
        by_dim.setdefault(int(np.asarray(node.vector).size), []).append(idx)
    sims = np.zeros((len(nodes), len(nodes)))
    comparable = np.zeros((len(nodes), len(nodes)), dtype=bool)
    for members in by_dim.values():
        if len(members) < 2:
            continue
        sub = similarity_matrix([nodes[i].vector for i in members])
        ix = np.ix_(members, members)
        sims[ix] = sub
        comparable[ix] = True

    accepted: Dict[str, int] = {}
    for i in range(len(nodes)):
        a = nodes[i]
        if accepted.get(a.id, 0) >= max_per_node:
            continue
        for j in range(i + 1, len(nodes)):
            if accepted.get(a.id, 0) >= max_per_node:
                break
            b = nodes[j]
            if accepted.get(b.id, 0) >= max_per_node:
                continue
            threshold = threshold_fn(a.kind, b.kind)
            if threshold is None:
                continue
            ranking.pairs_checked += 1
            sim = float(sims[i, j]) if comparable[i, j] else 0.0
            ranking.max_similarity = max(ranking.max_similarity, sim)
            if sim >= threshold:
                ranking.pairs.append(ScoredPair(a, b, sim))
                accepted[a.id] = accepted.get(a.id, 0) + 1
                accepted[b.id] = accepted.get(b.id, 0) + 1
    return ranking
