"""
Neural pattern extraction.

Three additive detectors tally signals over the recent memory window:
file extensions, directories and memory types. Pattern ids are derived from
category and key, so rediscovering a signal refreshes the same row.
"""
import json
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from memweave.config import Settings, settings as default_settings
from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.embeddings.codec import parse, serialize
from memweave.embeddings.providers import Embedder, get_embedder
from memweave.errors import MalformedInputError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore

EXTENSION_RE = re.compile(r"\.([a-zA-Z]{1,8})\b")
DIRECTORY_RE = re.compile(r"(?:in|from|at)\s+([a-zA-Z0-9_-]+)/")

REDISCOVERY_INCREMENT = 0.1

# category -> (base, step, cap, minimum occurrences)
CONFIDENCE_RULES = {
    "filetype": (0.3, 0.1, 0.9, 2),
    "directory": (0.3, 0.1, 0.9, 2),
    "component": (0.4, 0.05, 0.95, 3),
}


def initial_confidence(category: str, count: int) -> float:
    base, step, cap, _ = CONFIDENCE_RULES[category]
    return min(base + step * count, cap)


def confidence_cap(category: str) -> float:
    return CONFIDENCE_RULES.get(category, (0, 0, 1.0, 0))[2]


@dataclass
class PatternCandidate:
    id: str
    category: str
    content: str
    count: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    contributors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return initial_confidence(self.category, self.count)


@dataclass
class ExtractionResult:
    created: int = 0
    refreshed: int = 0
    pattern_ids: List[str] = field(default_factory=list)
    contributors: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def detected(self) -> int:
        return self.created + self.refreshed


def _tally(memories, keys_for):
    counts: Counter = Counter()
    contributors: Dict[str, List[Dict[str, Any]]] = {}
    for mem in memories:
        keys = keys_for(mem)
        for key in keys:
            counts[key] += 1
        for key in dict.fromkeys(keys):
            contributors.setdefault(key, []).append(mem)
    return counts, contributors


def detect_filetypes(memories: List[Dict[str, Any]]) -> List[PatternCandidate]:
    counts, contributors = _tally(
        memories,
        lambda m: ["." + ext.lower() for ext in EXTENSION_RE.findall(m.get("content") or "")],
    )
    _, _, _, minimum = CONFIDENCE_RULES["filetype"]
    return [
        PatternCandidate(
            id=f"filetype:{ext}",
            category="filetype",
            content=f"File type pattern: {ext} files edited {n} times",
            count=n,
            metadata={"count": n, "ext": ext},
            contributors=contributors[ext],
        )
        for ext, n in counts.items() if n >= minimum
    ]


def detect_directories(memories: List[Dict[str, Any]]) -> List[PatternCandidate]:
    counts, contributors = _tally(
        memories,
        lambda m: [d for d in DIRECTORY_RE.findall(m.get("content") or "") if 1 < len(d) < 50],
    )
    _, _, _, minimum = CONFIDENCE_RULES["directory"]
    return [
        PatternCandidate(
            id=f"directory:{name}",
            category="directory",
            content=f"Directory pattern: {name}/ accessed {n} times",
            count=n,
            metadata={"count": n, "dir": name},
            contributors=contributors[name],
        )
        for name, n in counts.items() if n >= minimum
    ]


def detect_components(memories: List[Dict[str, Any]]) -> List[PatternCandidate]:
    counts, contributors = _tally(memories, lambda m: [m.get("memory_type") or "general"])
    _, _, _, minimum = CONFIDENCE_RULES["component"]
    return [
        PatternCandidate(
            id=f"component:{kind}",
            category="component",
            content=f"Component pattern: {kind} actions ({n} occurrences)",
            count=n,
            metadata={"count": n, "type": kind},
            contributors=contributors[kind],
        )
        for kind, n in counts.items() if n >= minimum
    ]


def _embed_pattern(
    pattern_id: str,
    content: str,
    embedder: Embedder,
    diagnostics: Optional[Diagnostics],
) -> Optional[bytes]:
    try:
        return serialize(embedder.embed(content))
    except MalformedInputError as e:
        logger.error(f"Failed to generate embedding for pattern {pattern_id}: {e}")
        if diagnostics is not None:
            diagnostics.record(
                "patterns", DiagnosticKind.EMBEDDING_FAILURE,
                f"Failed to generate embedding for pattern {pattern_id}",
                pattern_id=pattern_id, error=str(e),
            )
        return None


def upsert_pattern(
    store: GraphStore,
    candidate: PatternCandidate,
    embedder: Embedder,
    cfg: Settings | None = None,
    diagnostics: Optional[Diagnostics] = None,
) -> bool:
    """
    Insert a new pattern, or refresh an existing one.

    Refresh bumps confidence by a fixed step up to the category cap (never
    lowering it), increments usage and fills a missing embedding. Content and
    category of an existing row are left as they are.
    Returns True when the pattern is new.
    """
    cfg = cfg or default_settings
    now = now_epoch()
    existing = store.get("neural_patterns", {"id": candidate.id})

    if existing is not None:
        current = float(existing.get("confidence") or 0.0)
        stepped = min(current + REDISCOVERY_INCREMENT, confidence_cap(candidate.category))
        fields: Dict[str, Any] = {
            "confidence": max(current, stepped),
            "usage": int(existing.get("usage") or 0) + 1,
            "updated_at": now,
        }
        if parse(existing.get("embedding"), cfg.EMBEDDING_DIM) is None:
            blob = _embed_pattern(candidate.id, existing.get("content") or candidate.content, embedder, diagnostics)
            if blob is not None:
                fields["embedding"] = blob
        store.upsert_by_key("neural_patterns", {"id": candidate.id}, fields)
        logger.debug(f"Updated existing pattern: {candidate.id} usage={fields['usage']}")
        return False

    store.upsert_by_key("neural_patterns", {"id": candidate.id}, {
        "content": candidate.content,
        "category": candidate.category,
        "confidence": candidate.confidence,
        "usage": 1,
        "created_at": now,
        "updated_at": now,
        "metadata": json.dumps(candidate.metadata, sort_keys=True),
        "embedding": _embed_pattern(candidate.id, candidate.content, embedder, diagnostics),
    })
    logger.debug(f"Inserted new pattern: {candidate.id}")
    return True


def extract_patterns(
    store: GraphStore,
    embedder: Embedder | None = None,
    cfg: Settings | None = None,
    diagnostics: Optional[Diagnostics] = None,
) -> ExtractionResult:
    cfg = cfg or default_settings
    embedder = embedder or get_embedder(cfg)
    result = ExtractionResult()

    memories = store.select_recent("memories", cfg.PATTERN_WINDOW)
    if not memories:
        return result

    candidates = detect_filetypes(memories) + detect_directories(memories) + detect_components(memories)
    for candidate in candidates:
        if candidate.id in result.contributors:
            continue
        if upsert_pattern(store, candidate, embedder, cfg, diagnostics):
            result.created += 1
        else:
            result.refreshed += 1
        result.pattern_ids.append(candidate.id)
        result.contributors[candidate.id] = candidate.contributors

    logger.info(f"Patterns: {result.created} new, {result.refreshed} refreshed from {len(memories)} memories")
    return result
