import json

import pytest

from memweave.diagnostics import DiagnosticKind, Diagnostics
from memweave.edges import (
    derive_deterministic_edges,
    derive_file_edges,
    derive_pattern_edges,
    derive_sequence_edges,
    derive_temporal_edges,
    derive_trajectory_edges,
    file_node,
    safe_number,
    upsert_edge,
)

from helpers import add_memory, axis, edge_between, edge_data


def _memories(n, start=1000):
    # newest first, as select_recent returns them
    return [{"id": f"m{i}", "timestamp": start - i * 10} for i in range(n)]


def test_repeat_derivation_replaces_weight(store):
    assert upsert_edge(store, "mem:a", "mem:b", "semantic", 0.9) is True
    assert upsert_edge(store, "mem:a", "mem:b", "semantic", 0.6) is False
    rows = store.select_recent("edges")
    assert len(rows) == 1
    assert rows[0]["weight"] == pytest.approx(0.6)


def test_later_rule_overwrites_earlier_rule(store):
    upsert_edge(store, "mem:a", "file:components/Button.tsx", "file", 1.0)
    upsert_edge(store, "mem:a", "file:components/Button.tsx", "semantic", 0.77, {"similarity": 0.77})
    row = store.get("edges", {"source": "mem:a", "target": "file:components/Button.tsx"})
    assert row["type"] == "semantic"
    assert row["weight"] == pytest.approx(0.77)
    assert edge_data(row) == {"similarity": 0.77, "type": "semantic"}
    assert store.count("edges") == 1


@pytest.mark.parametrize("path,node", [
    ("src/components/Button.tsx", "file:components/Button.tsx"),
    ("/abs/path/to/app.py", "file:to/app.py"),
    ("README.md", "file:README.md"),
    ("src\\win\\main.ts", "file:win/main.ts"),
])
def test_file_node(path, node):
    assert file_node(path) == node


def test_temporal_weights_decay_by_rank(store):
    tally = derive_temporal_edges(store, _memories(4))
    assert tally.created == 3
    weights = [store.get("edges", {"source": f"mem:m{i}", "target": f"mem:m{i + 1}"})["weight"] for i in range(3)]
    assert weights == pytest.approx([1.0, 0.5, 1 / 3])


def test_temporal_pairs_are_bounded(store):
    tally = derive_temporal_edges(store, _memories(20), max_pairs=10)
    assert tally.created == 10


def test_file_edges_link_most_recent_records(store):
    tally = derive_file_edges(store, _memories(5), "src/components/Button.tsx", records=3)
    assert tally.created == 3
    targets = {r["target"] for r in store.select_recent("edges")}
    assert targets == {"file:components/Button.tsx"}
    assert edge_between(store, "mem:m3", "file:components/Button.tsx") is None


def test_trajectory_tolerance_is_strict(store):
    memories = [{"id": "m0", "timestamp": 1060}]
    tally = derive_trajectory_edges(store, memories, [{"id": "t0", "timestamp": 1000, "reward": 0.9}])
    assert tally.written == 0

    memories = [{"id": "m0", "timestamp": 1059}]
    tally = derive_trajectory_edges(store, memories, [{"id": "t0", "timestamp": 1000, "reward": 0.9}])
    assert tally.created == 1
    assert store.get("edges", {"source": "traj:t0", "target": "mem:m0"})["weight"] == pytest.approx(0.9)


def test_trajectory_without_reward_defaults_to_half(store):
    derive_trajectory_edges(store, [{"id": "m0", "timestamp": 1000}], [{"id": "t0", "timestamp": 1000}])
    assert store.get("edges", {"source": "traj:t0", "target": "mem:m0"})["weight"] == pytest.approx(0.5)


def test_sequence_edges_clamp_weights(store):
    steps = [
        {"action": "read", "reward": 0},
        {"action": "edit", "reward": 0},
        {"action": "test", "reward": 3},
        {"action": "commit", "reward": 1},
    ]
    tally = derive_sequence_edges(store, [{"id": "t0", "steps": json.dumps(steps)}])
    assert tally.created == 3
    assert store.get("edges", {"source": "action:read", "target": "action:edit"})["weight"] == pytest.approx(0.1)
    assert store.get("edges", {"source": "action:test", "target": "action:commit"})["weight"] == pytest.approx(1.0)


def test_unparsable_steps_are_reported(store):
    diags = Diagnostics()
    tally = derive_sequence_edges(store, [{"id": "t0", "steps": "{not json"}], diags)
    assert tally.written == 0
    assert diags.of_kind(DiagnosticKind.MALFORMED_INPUT)


@pytest.mark.parametrize("value, expected", [
    (0.25, 0.25),
    (1, 1.0),
    ("0.5", 0.5),
    (None, 0.5),
    ("abc", 0.5),
    (float("nan"), 0.5),
    ("inf", 0.5),
    ([1], 0.5),
])
def test_safe_number(value, expected):
    assert safe_number(value, 0.5) == pytest.approx(expected)


def test_safe_number_reports_only_bad_values():
    diags = Diagnostics()
    safe_number(None, 0.0, diags)
    safe_number("0.7", 0.0, diags)
    assert not diags.of_kind(DiagnosticKind.MALFORMED_INPUT)
    safe_number("abc", 0.0, diags)
    assert len(diags.of_kind(DiagnosticKind.MALFORMED_INPUT)) == 1


def test_sequence_rewards_given_as_strings(store):
    steps = [{"action": "read", "reward": "0.5"}, {"action": "write", "reward": 1}]
    diags = Diagnostics()
    tally = derive_sequence_edges(store, [{"id": "t0", "steps": json.dumps(steps)}], diags)
    assert tally.created == 1
    assert store.get("edges", {"source": "action:read", "target": "action:write"})["weight"] == pytest.approx(0.75)
    assert len(diags) == 0


def test_non_numeric_step_reward_falls_back(store):
    steps = [{"action": "read", "reward": "abc"}, {"action": "write", "reward": 1}]
    diags = Diagnostics()
    derive_sequence_edges(store, [{"id": "t0", "steps": json.dumps(steps)}], diags)
    assert store.get("edges", {"source": "action:read", "target": "action:write"})["weight"] == pytest.approx(0.5)
    assert diags.of_kind(DiagnosticKind.MALFORMED_INPUT)


def test_non_numeric_trajectory_reward_falls_back(store):
    diags = Diagnostics()
    tally = derive_trajectory_edges(
        store, [{"id": "m0", "timestamp": 1000}],
        [{"id": "t0", "timestamp": 1000, "reward": "oops"}], diagnostics=diags,
    )
    assert tally.created == 1
    assert store.get("edges", {"source": "traj:t0", "target": "mem:m0"})["weight"] == pytest.approx(0.5)
    assert diags.of_kind(DiagnosticKind.MALFORMED_INPUT)


def test_pattern_edges(store):
    tally = derive_pattern_edges(store, {"filetype:.ts": [{"id": "m0"}, {"id": "m1"}, {"id": "m2"}, {"id": "m3"}]}, 3)
    assert tally.created == 3
    row = store.get("edges", {"source": "pattern:filetype:.ts", "target": "mem:m0"})
    assert row["type"] == "pattern"
    assert row["weight"] == pytest.approx(0.5)


def test_missing_trajectories_table_is_not_fatal(store, cfg):
    store.drop_table("trajectories")
    for i in range(3):
        add_memory(store, f"m{i}", vector=axis(0), timestamp=1000 + i)
    diags = Diagnostics()
    tally = derive_deterministic_edges(store, "consolidate", cfg=cfg, diagnostics=diags)
    assert tally.created == 2
    assert diags.of_kind(DiagnosticKind.STORE_UNAVAILABLE)


def test_deterministic_edges_on_sql_store(sql_store, cfg):
    for i in range(3):
        add_memory(sql_store, f"m{i}", content=f"edited file{i}.ts", vector=axis(0), timestamp=1000 + i)
    first = derive_deterministic_edges(sql_store, "post-edit", "src/components/Button.tsx", cfg)
    second = derive_deterministic_edges(sql_store, "post-edit", "src/components/Button.tsx", cfg)
    assert first.created == 5  # 2 temporal + 3 file
    assert second.created == 0
    assert second.updated == 5
    assert sql_store.count("edges") == 5
