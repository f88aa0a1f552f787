"""
One entry point per interaction event.

Each returns a SweepResult; callers typically read agents_touched,
edges_created, patterns_created and stats_synced.
"""
from typing import Optional

from memweave.agents import DEFAULT_AGENT_NAME, register_agent
from memweave.config import Settings, settings as default_settings
from memweave.consolidation import SweepResult, consolidate, extract_and_link, run_step
from memweave.edges.deterministic import derive_deterministic_edges
from memweave.edges.semantic import SemanticProfile, derive_semantic_edges
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.logging import logger, new_sweep_id
from memweave.models.base import now_epoch
from memweave.stats import record_session_end, record_session_start
from memweave.store.base import GraphStore

TriggerResult = SweepResult


def _process_interaction(
    store: GraphStore,
    event: str,
    file_path: Optional[str],
    cfg: Settings,
    embedder: Optional[Embedder],
) -> TriggerResult:
    new_sweep_id()
    store.ping()
    embedder = embedder or get_embedder(cfg)
    result = TriggerResult()
    diags = result.diagnostics

    result.add_edges(run_step(result, "deterministic", lambda: derive_deterministic_edges(
        store, event=event, file_path=file_path, cfg=cfg, diagnostics=diags,
    )))
    semantic = run_step(result, "semantic", lambda: derive_semantic_edges(
        store, SemanticProfile.event(cfg), event, embedder, cfg, diags,
    ))
    if semantic is not None:
        result.add_edges(semantic.tally)
    linked = run_step(result, "patterns", lambda: extract_and_link(store, embedder, cfg, diags))
    if linked is not None:
        extraction, pattern_edges = linked
        result.add_patterns(extraction)
        result.add_edges(pattern_edges)
    return result


def on_edit(
    store: GraphStore,
    file: str,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
) -> TriggerResult:
    logger.info(f"post-edit: {file}")
    return _process_interaction(store, "post-edit", file, cfg or default_settings, embedder)


def on_command(
    store: GraphStore,
    command: str,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
) -> TriggerResult:
    logger.info(f"post-command: {command[:120]}")
    return _process_interaction(store, "post-command", None, cfg or default_settings, embedder)


def on_pre_command(store: GraphStore, command: str) -> TriggerResult:
    """Accepted for completeness of the event set; nothing is derived before a command runs."""
    logger.debug(f"pre-command received: {command[:120]}")
    return TriggerResult()


def on_session_start(
    store: GraphStore,
    agent: str = DEFAULT_AGENT_NAME,
    session: Optional[str] = None,
) -> TriggerResult:
    new_sweep_id()
    store.ping()
    session = session or f"session-{now_epoch()}"
    result = TriggerResult()
    if run_step(result, "agent", lambda: register_agent(store, agent, session)) is not None:
        result.agents_touched += 1
    count = run_step(result, "stats", lambda: record_session_start(store, agent, session))
    result.stats_synced = count is not None
    if count is not None:
        logger.info(f"Session stats updated: session_count={count} last_session={session}")
    return result


def on_session_end(
    store: GraphStore,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
) -> TriggerResult:
    result = consolidate(store, cfg, embedder, event="session-end")
    total = run_step(result, "stats", lambda: record_session_end(store))
    if total is not None:
        logger.info(f"Session-end stats updated: total_sessions={total}")
    result.stats_synced = result.stats_synced and total is not None
    return result


def on_consolidate(
    store: GraphStore,
    cfg: Settings | None = None,
    embedder: Embedder | None = None,
) -> TriggerResult:
    return consolidate(store, cfg, embedder)
