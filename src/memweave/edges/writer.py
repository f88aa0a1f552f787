import json
from typing import Any, Dict, Optional

from memweave.store.base import GraphStore
from memweave.logging import logger


def upsert_edge(
    store: GraphStore,
    source: str,
    target: str,
    edge_type: str,
    weight: float,
    metadata: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Write an edge keyed by (source, target).

    A repeat derivation replaces weight, type and metadata, whichever rule
    produced the earlier edge. Weights never accumulate.
    Returns True when the edge is new.
    """
    data = dict(metadata or {})
    data["type"] = edge_type
    created = store.upsert_by_key(
        "edges",
        {"source": source, "target": target},
        {"type": edge_type, "weight": float(weight), "data": json.dumps(data, sort_keys=True)},
    )
    logger.debug(f"{'Inserted' if created else 'Updated'} edge {source} -> {target} ({edge_type}, weight={weight:.3f})")
    return created


def mem_node(memory_id: Any) -> str:
    return f"mem:{memory_id}"


def traj_node(trajectory_id: Any) -> str:
    return f"traj:{trajectory_id}"


def pattern_node(pattern_id: str) -> str:
    return f"pattern:{pattern_id}"


def action_node(action: str) -> str:
    return f"action:{action}"
