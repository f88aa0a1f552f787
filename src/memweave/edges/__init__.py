from memweave.edges.writer import upsert_edge
from memweave.edges.deterministic import (
    EdgeTally,
    derive_deterministic_edges,
    derive_file_edges,
    derive_pattern_edges,
    derive_sequence_edges,
    derive_temporal_edges,
    derive_trajectory_edges,
    file_node,
    safe_number,
)
from memweave.edges.semantic import SemanticProfile, SemanticResult, derive_semantic_edges

__all__ = [
    "upsert_edge",
    "EdgeTally",
    "derive_deterministic_edges",
    "derive_file_edges",
    "derive_pattern_edges",
    "derive_sequence_edges",
    "derive_temporal_edges",
    "derive_trajectory_edges",
    "file_node",
    "safe_number",
    "SemanticProfile",
    "SemanticResult",
    "derive_semantic_edges",
]
