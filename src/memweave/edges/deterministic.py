"""
Rule-based edges from co-occurrence.

Each rule is independent and writes through upsert_edge, so re-running a
rule over the same records converges on the same weights.
"""
import json
import math
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.errors import StoreUnavailableError
from memweave.edges.writer import action_node, mem_node, pattern_node, traj_node, upsert_edge
from memweave.logging import logger
from memweave.store.base import GraphStore


@dataclass
class EdgeTally:
    created: int = 0
    updated: int = 0

    @property
    def written(self) -> int:
        return self.created + self.updated

    def add(self, created: bool):
        if created:
            self.created += 1
        else:
            self.updated += 1

    def merge(self, other: "EdgeTally") -> "EdgeTally":
        self.created += other.created
        self.updated += other.updated
        return self


def safe_number(
    value: Any,
    default: float,
    diagnostics: Optional[Diagnostics] = None,
    label: str = "value",
) -> float:
    """Finite float from a number or numeric string; anything else falls back to default."""
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if math.isfinite(number):
        return number
    if diagnostics is not None:
        diagnostics.record(
            "deterministic", DiagnosticKind.MALFORMED_INPUT,
            f"Non-numeric {label} {value!r}, using {default}",
        )
    return default


def file_node(file_path: str) -> str:
    p = PurePosixPath(str(file_path).replace("\\", "/"))
    parent = p.parent.name
    return f"file:{parent}/{p.name}" if parent else f"file:{p.name}"


def derive_temporal_edges(
    store: GraphStore,
    memories: List[Dict[str, Any]],
    max_pairs: int = 10,
    event: str = "consolidate",
) -> EdgeTally:
    """Consecutive memories (newest first) linked with weight 1/(rank+1)."""
    tally = EdgeTally()
    for rank in range(min(len(memories) - 1, max_pairs)):
        tally.add(upsert_edge(
            store,
            mem_node(memories[rank]["id"]),
            mem_node(memories[rank + 1]["id"]),
            "temporal",
            1.0 / (rank + 1),
            {"event": event, "rank": rank},
        ))
    return tally


def derive_file_edges(
    store: GraphStore,
    memories: List[Dict[str, Any]],
    file_path: str,
    records: int = 3,
    event: str = "post-edit",
) -> EdgeTally:
    """The most recent records around an edit all touch the edited file."""
    tally = EdgeTally()
    target = file_node(file_path)
    for mem in memories[:records]:
        tally.add(upsert_edge(
            store, mem_node(mem["id"]), target, "file", 1.0,
            {"event": event, "path": str(file_path)},
        ))
    return tally


def derive_trajectory_edges(
    store: GraphStore,
    memories: List[Dict[str, Any]],
    trajectories: List[Dict[str, Any]],
    limit: int = 5,
    tolerance_seconds: float = 60.0,
    diagnostics: Optional[Diagnostics] = None,
) -> EdgeTally:
    """Link each trajectory to the memory closest in time, if close enough."""
    tally = EdgeTally()
    if not memories:
        return tally
    for traj in trajectories[:limit]:
        t_ts = traj.get("timestamp") or 0
        best = min(memories, key=lambda m: abs((m.get("timestamp") or 0) - t_ts))
        delta = abs((best.get("timestamp") or 0) - t_ts)
        if delta >= tolerance_seconds:
            continue
        tally.add(upsert_edge(
            store,
            traj_node(traj["id"]),
            mem_node(best["id"]),
            "trajectory",
            safe_number(traj.get("reward"), 0.5, diagnostics, f"reward on trajectory {traj['id']}"),
            {"action": traj.get("action"), "delta_seconds": delta},
        ))
    return tally


def derive_sequence_edges(
    store: GraphStore,
    trajectories: List[Dict[str, Any]],
    diagnostics: Optional[Diagnostics] = None,
) -> EdgeTally:
    """Consecutive steps of a trajectory become action -> action edges."""
    tally = EdgeTally()
    for traj in trajectories:
        raw = traj.get("steps")
        if not raw:
            continue
        try:
            steps = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except ValueError as e:
            if diagnostics is not None:
                diagnostics.record(
                    "deterministic", DiagnosticKind.MALFORMED_INPUT,
                    f"Unparsable steps on trajectory {traj.get('id')}", error=str(e),
                )
            continue
        if not isinstance(steps, list):
            continue
        for i in range(len(steps) - 1):
            s1, s2 = steps[i], steps[i + 1]
            if not isinstance(s1, dict) or not isinstance(s2, dict):
                continue
            a1 = s1.get("action") or s1.get("type") or f"step_{i}"
            a2 = s2.get("action") or s2.get("type") or f"step_{i + 1}"
            label = f"step reward on trajectory {traj.get('id')}"
            avg = (
                safe_number(s1.get("reward"), 0.0, diagnostics, label)
                + safe_number(s2.get("reward"), 0.0, diagnostics, label)
            ) / 2
            tally.add(upsert_edge(
                store, action_node(a1), action_node(a2), "sequence",
                max(0.1, min(avg, 1.0)),
                {"trajectory": traj.get("id"), "step": i},
            ))
    return tally


def derive_pattern_edges(
    store: GraphStore,
    contributors: Dict[str, List[Dict[str, Any]]],
    records_per_pattern: int = 3,
) -> EdgeTally:
    """Each detected pattern points at a few of the records it came from."""
    tally = EdgeTally()
    for pattern_id, records in contributors.items():
        for mem in records[:records_per_pattern]:
            tally.add(upsert_edge(
                store, pattern_node(pattern_id), mem_node(mem["id"]), "pattern", 0.5,
                {"pattern_id": pattern_id},
            ))
    return tally


def derive_deterministic_edges(
    store: GraphStore,
    event: str = "consolidate",
    file_path: Optional[str] = None,
    cfg: Settings | None = None,
    diagnostics: Optional[Diagnostics] = None,
) -> EdgeTally:
    """Run every rule over the recent window. Trajectory rules are skipped if that table is missing."""
    cfg = cfg or default_settings
    tally = EdgeTally()
    memories = store.select_recent("memories", cfg.EVENT_WINDOW)

    if len(memories) >= 2:
        tally.merge(derive_temporal_edges(store, memories, cfg.TEMPORAL_PAIRS, event))
    if file_path and memories:
        tally.merge(derive_file_edges(store, memories, file_path, cfg.FILE_COEDIT_RECORDS, event))

    try:
        trajectories = store.select_recent("trajectories", cfg.TRAJECTORY_WINDOW)
    except StoreUnavailableError as e:
        if diagnostics is not None:
            diagnostics.record("deterministic", DiagnosticKind.STORE_UNAVAILABLE, str(e))
        trajectories = []
    tally.merge(derive_trajectory_edges(
        store, memories, trajectories,
        cfg.TRAJECTORY_LINK_LIMIT, cfg.TRAJECTORY_TOLERANCE_SECONDS, diagnostics,
    ))
    tally.merge(derive_sequence_edges(store, trajectories, diagnostics))

    logger.info(f"Deterministic edges ({event}): {tally.created} new, {tally.updated} refreshed")
    return tally
