import pytest

from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.edges.semantic import SemanticProfile, derive_semantic_edges
from memweave.embeddings.codec import parse

from helpers import DIM, AxisEmbedder, FailingEmbedder, add_memory, add_pattern, axis, edge_between, edge_data, toward


@pytest.fixture(name="mixed_store")
def mixed_store_fixture(store):
    # a-b: 0.80 same type, a-c: 0.80 cross type, b-c: 0.64
    add_memory(store, "a", "edited src/app.ts", "edit", axis(0), timestamp=1003)
    add_memory(store, "b", "edited src/app.ts again", "edit", toward(0.8, to=1), timestamp=1002)
    add_memory(store, "c", "ran npm test", "command", toward(0.8, to=2), timestamp=1001)
    return store


def test_sweep_profile_same_type_is_strict(mixed_store, cfg, embedder):
    result = derive_semantic_edges(mixed_store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    assert edge_between(mixed_store, "mem:a", "mem:b") is None
    bridge = edge_between(mixed_store, "mem:a", "mem:c")
    assert bridge is not None
    assert bridge["type"] == "semantic_bridge"
    assert bridge["weight"] == pytest.approx(0.8, abs=1e-5)
    data = edge_data(bridge)
    assert data["from_type"] == "edit"
    assert data["to_type"] == "command"
    assert data["similarity"] == pytest.approx(0.8, abs=1e-5)
    assert result.tally.created == 1


def test_lowering_same_type_threshold_restores_edge(store, cfg, embedder):
    add_memory(store, "a", "edited src/a.ts", "edit", axis(0), timestamp=1002)
    add_memory(store, "b", "edited src/b.ts", "edit", toward(0.8), timestamp=1001)
    cfg.SWEEP_SAME_TYPE_THRESHOLD = 0.85
    derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    assert edge_between(store, "mem:a", "mem:b") is None

    cfg.SWEEP_SAME_TYPE_THRESHOLD = 0.75
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    edge = edge_between(store, "mem:a", "mem:b")
    assert edge is not None
    assert edge["type"] == "semantic"
    assert edge["weight"] == pytest.approx(0.8, abs=1e-5)
    assert result.tally.created == 1


def test_event_profile_is_looser_for_bridges(mixed_store, cfg, embedder):
    cfg.EVENT_CROSS_TYPE_THRESHOLD = 0.55
    result = derive_semantic_edges(mixed_store, SemanticProfile.event(cfg), "post-edit", embedder, cfg)
    assert edge_between(mixed_store, "mem:a", "mem:b") is None
    assert edge_between(mixed_store, "mem:a", "mem:c")["type"] == "semantic_bridge"
    # b-c at 0.64 clears 0.55
    assert edge_between(mixed_store, "mem:b", "mem:c")["type"] == "semantic_bridge"
    assert result.pattern_pass is None


def test_same_type_edge_above_threshold(store, cfg, embedder):
    add_memory(store, "a", "x", "edit", axis(0), timestamp=2)
    add_memory(store, "b", "y", "edit", toward(0.9), timestamp=1)
    derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    row = edge_between(store, "mem:a", "mem:b")
    assert row["type"] == "semantic"
    assert row["weight"] == pytest.approx(0.9, abs=1e-5)


def test_fan_out_is_capped(store, cfg, embedder):
    for i in range(8):
        add_memory(store, f"m{i}", "same", "edit", axis(0), timestamp=1000 + i)
    derive_semantic_edges(store, SemanticProfile.event(cfg), "post-edit", embedder, cfg)
    degree = {}
    for row in store.select_recent("edges"):
        for node in (row["source"], row["target"]):
            degree[node] = degree.get(node, 0) + 1
    assert degree
    assert max(degree.values()) <= cfg.EVENT_MAX_EDGES_PER_NODE


def test_empty_pass_over_real_window_is_an_anomaly(store, cfg, embedder):
    for i in range(5):
        add_memory(store, f"m{i}", "unrelated", "edit", axis(i), timestamp=1000 + i)
    diags = Diagnostics()
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg, diags)
    assert result.tally.written == 0
    anomalies = diags.of_kind(DiagnosticKind.ANOMALY)
    assert len(anomalies) == 1
    assert anomalies[0].detail["pairs_checked"] == 10
    assert anomalies[0].detail["same_type_threshold"] == 0.85


def test_small_window_is_not_an_anomaly(store, cfg, embedder):
    add_memory(store, "a", "x", "edit", axis(0))
    add_memory(store, "b", "y", "edit", axis(1))
    diags = Diagnostics()
    derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg, diags)
    assert not diags.of_kind(DiagnosticKind.ANOMALY)


def test_missing_vectors_are_generated_from_content(store, cfg):
    embedder = AxisEmbedder(DIM)
    add_memory(store, "a", "edited a.ts", "edit", axis(DIM - 1), timestamp=2)
    add_memory(store, "b", "edited b.ts", "edit", None, timestamp=1)
    add_memory(store, "c", "", "edit", None, timestamp=0)
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    assert result.vectors.parsed == 1
    assert result.vectors.generated == 1
    assert result.vectors.failed == 1
    assert edge_between(store, "mem:a", "mem:b")["type"] == "semantic"
    assert store.get("memories", {"id": "b"})["embedding"] is None


def test_backfill_writes_generated_vectors(store, cfg, embedder):
    cfg.BACKFILL_MEMORY_EMBEDDINGS = True
    add_memory(store, "b", "edited b.ts", "edit", None)
    derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    assert parse(store.get("memories", {"id": "b"})["embedding"], DIM) is not None


def test_malformed_stored_vector_falls_back_to_content(store, cfg, embedder):
    add_memory(store, "a", "text", "edit", embedding=b"\x01\x02\x03")
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    assert result.vectors.generated == 1


def test_embedding_failure_is_reported(store, cfg):
    add_memory(store, "a", "text", "edit", None)
    diags = Diagnostics()
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", FailingEmbedder(), cfg, diags)
    assert result.vectors.failed == 1
    assert diags.of_kind(DiagnosticKind.EMBEDDING_FAILURE)


def test_pattern_to_memory_bridges(store, cfg, embedder):
    add_pattern(store, "filetype:.ts", vector=axis(0))
    add_memory(store, "a", "edited a.ts", "edit", toward(0.85, to=1), timestamp=2)
    add_memory(store, "b", "ran tests", "command", toward(0.7, to=2), timestamp=1)
    result = derive_semantic_edges(store, SemanticProfile.sweep(cfg), "consolidate", embedder, cfg)
    row = store.get("edges", {"source": "pattern:filetype:.ts", "target": "mem:a"})
    assert row["type"] == "semantic_bridge"
    assert edge_data(row)["from_type"] == "pattern"
    assert store.get("edges", {"source": "pattern:filetype:.ts", "target": "mem:b"}) is None
    assert result.pattern_pass.pairs_checked == 2
