"""
Backfill for neural patterns whose stored embedding is missing or unusable.
"""
from dataclasses import dataclass, field
from typing import List

from memweave.config import Settings, settings as default_settings
from memweave.embeddings.codec import parse, serialize
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.errors import MalformedInputError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore


@dataclass
class MigrationResult:
    total: int = 0
    migrated: int = 0
    dry_run: bool = False
    pattern_ids: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def pattern_embedding_text(pattern: dict) -> str:
    return f"{pattern.get('content') or ''} {pattern.get('category') or ''}".strip() or str(pattern.get("id"))


def migrate_pattern_embeddings(
    store: GraphStore,
    embedder: Embedder | None = None,
    dry_run: bool = False,
    cfg: Settings | None = None,
) -> MigrationResult:
    cfg = cfg or default_settings
    embedder = embedder or get_embedder(cfg)
    patterns = store.select_recent("neural_patterns")
    missing = [p for p in patterns if parse(p.get("embedding"), cfg.EMBEDDING_DIM) is None]

    result = MigrationResult(total=len(missing), dry_run=dry_run)
    logger.info(f"Found {len(missing)} patterns without a valid embedding")
    for pattern in missing:
        result.pattern_ids.append(pattern["id"])
        if dry_run:
            continue
        try:
            vector = embedder.embed(pattern_embedding_text(pattern))
        except MalformedInputError as e:
            logger.error(f"Failed to generate embedding for pattern {pattern['id']}: {e}")
            result.failed.append(pattern["id"])
            continue
        store.upsert_by_key(
            "neural_patterns",
            {"id": pattern["id"]},
            {"embedding": serialize(vector), "updated_at": now_epoch()},
        )
        result.migrated += 1
    return result
