"""
Consolidation sweep.

A fixed, idempotent sequence over current data:

1. register/touch the synthetic system agent
2. deterministic edges
3. semantic edges (sweep profile)
4. pattern extraction, plus pattern -> record edges
5. stats sync

A step that hits a missing table or bad data is recorded as a diagnostic and
counts as zero effect; the sweep carries on and always ends with a stats
update. Only a store that cannot be reached at all stops it.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, TypeVar

from memweave.agents import SYSTEM_AGENT, SYSTEM_AGENT_TYPE, register_agent
from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.edges.deterministic import EdgeTally, derive_deterministic_edges, derive_pattern_edges
from memweave.edges.semantic import SemanticProfile, derive_semantic_edges
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.errors import MalformedInputError, StoreError
from memweave.logging import logger, new_sweep_id
from memweave.models.base import now_epoch
from memweave.patterns import ExtractionResult, extract_patterns
from memweave.stats import StatsSnapshot, sync_stats
from memweave.store.base import GraphStore

T = TypeVar("T")


@dataclass
class SweepResult:
    agents_touched: int = 0
    edges_created: int = 0
    edges_refreshed: int = 0
    patterns_created: int = 0
    patterns_refreshed: int = 0
    stats_synced: bool = False
    stats: Optional[StatsSnapshot] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    def add_edges(self, tally: Optional[EdgeTally]):
        if tally is not None:
            self.edges_created += tally.created
            self.edges_refreshed += tally.updated

    def add_patterns(self, extraction: Optional[ExtractionResult]):
        if extraction is not None:
            self.patterns_created += extraction.created
            self.patterns_refreshed += extraction.refreshed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agents_touched": self.agents_touched,
            "edges_created": self.edges_created,
            "edges_refreshed": self.edges_refreshed,
            "patterns_created": self.patterns_created,
            "patterns_refreshed": self.patterns_refreshed,
            "stats_synced": self.stats_synced,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


def run_step(result: SweepResult, step: str, fn: Callable[[], T]) -> Optional[T]:
    """Run one step; any failure becomes a diagnostic and a None result."""
    try:
        return fn()
    except StoreError as e:
        result.diagnostics.record(step, DiagnosticKind.STORE_UNAVAILABLE, f"step skipped: {e}")
    except MalformedInputError as e:
        result.diagnostics.record(step, DiagnosticKind.MALFORMED_INPUT, f"step skipped: {e}")
    except Exception as e:
        logger.exception(f"Step '{step}' failed")
        result.diagnostics.record(
            step, DiagnosticKind.STEP_FAILURE,
            f"step skipped: {type(e).__name__}: {e}", error_type=type(e).__name__,
        )
    return None


def extract_and_link(
    store: GraphStore,
    embedder: Embedder,
    cfg: Settings,
    diagnostics: Diagnostics,
) -> tuple[ExtractionResult, EdgeTally]:
    extraction = extract_patterns(store, embedder, cfg, diagnostics)
    tally = derive_pattern_edges(store, extraction.contributors, cfg.PATTERN_EDGE_RECORDS)
    return extraction, tally


def consolidate(
    store: GraphStore,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
    event: str = "consolidate",
) -> SweepResult:
    cfg = cfg or default_settings
    sweep_id = new_sweep_id()
    logger.info(f"Consolidation sweep {sweep_id} starting ({event})")

    # The only fatal precondition.
    store.ping()

    embedder = embedder or get_embedder(cfg)
    result = SweepResult()
    diags = result.diagnostics

    if run_step(result, "agent", lambda: register_agent(
        store, SYSTEM_AGENT, f"consolidate-{now_epoch()}", SYSTEM_AGENT_TYPE,
    )) is not None:
        result.agents_touched += 1

    result.add_edges(run_step(result, "deterministic", lambda: derive_deterministic_edges(
        store, event=event, cfg=cfg, diagnostics=diags,
    )))

    semantic = run_step(result, "semantic", lambda: derive_semantic_edges(
        store, SemanticProfile.sweep(cfg), event, embedder, cfg, diags,
    ))
    if semantic is not None:
        result.add_edges(semantic.tally)

    linked = run_step(result, "patterns", lambda: extract_and_link(store, embedder, cfg, diags))
    if linked is not None:
        extraction, pattern_edges = linked
        result.add_patterns(extraction)
        result.add_edges(pattern_edges)

    result.stats = run_step(result, "stats", lambda: sync_stats(store, cfg, diags))
    result.stats_synced = result.stats is not None

    logger.info(
        f"Consolidation sweep {sweep_id} done: agents={result.agents_touched} "
        f"edges={result.edges_created}+{result.edges_refreshed} "
        f"patterns={result.patterns_created}+{result.patterns_refreshed} "
        f"stats_synced={result.stats_synced} diagnostics={len(diags)}"
    )
    return result
