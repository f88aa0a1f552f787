import pytest

from memweave.errors import StoreError, StoreUnavailableError
from memweave.store import InMemoryStore, SQLStore

from helpers import add_memory, axis


def test_upsert_inserts_then_updates(any_store):
    fields = {"type": "temporal", "weight": 0.9, "data": "{}"}
    assert any_store.upsert_by_key("edges", {"source": "mem:a", "target": "mem:b"}, fields) is True
    assert any_store.upsert_by_key(
        "edges", {"source": "mem:a", "target": "mem:b"}, {**fields, "weight": 0.6},
    ) is False
    rows = any_store.select_recent("edges")
    assert len(rows) == 1
    assert rows[0]["weight"] == pytest.approx(0.6)
    assert rows[0]["id"] is not None


def test_unknown_fields_are_skipped(any_store):
    any_store.upsert_by_key("stats", {"key": "k"}, {"value": "1", "updated_at": 1, "no_such_column": 5})
    assert any_store.get_stat("k") == "1"


def test_select_recent_orders_newest_first(any_store):
    for i, ts in enumerate([100, 300, 200]):
        add_memory(any_store, f"m{i}", vector=axis(0), timestamp=ts)
    rows = any_store.select_recent("memories")
    assert [r["id"] for r in rows] == ["m1", "m2", "m0"]
    assert [r["id"] for r in any_store.select_recent("memories", 2)] == ["m1", "m2"]
    assert isinstance(rows[0]["embedding"], bytes)


def test_metadata_column_name(any_store):
    assert "metadata" in any_store.list_columns("memories")
    assert "metadata" in any_store.list_columns("neural_patterns")


def test_missing_table(any_store):
    with pytest.raises(StoreUnavailableError):
        any_store.count("no_such_table")
    assert any_store.has_table("no_such_table") is False
    assert any_store.has_table("edges") is True


def test_duplicate_edge_insert_is_a_store_error(any_store):
    row = {"source": "a", "target": "b", "type": "file", "weight": 1.0, "data": "{}"}
    any_store.insert("edges", row)
    with pytest.raises(StoreError):
        any_store.insert("edges", row)


def test_set_many_and_get_stat(any_store):
    any_store.set_many({"total_edges": 3, "last_consolidate": "2026-01-01T00:00:00Z"})
    any_store.set_many({"total_edges": 4})
    assert any_store.get_stat("total_edges") == "4"
    assert any_store.get_stat("last_consolidate") == "2026-01-01T00:00:00Z"
    assert any_store.get_stat("missing") is None


def test_get_with_unknown_key_column(any_store):
    with pytest.raises(StoreError):
        any_store.get("stats", {"nope": 1})


def test_sqlite_missing_file_is_unavailable(tmp_path):
    store = SQLStore.from_url(f"sqlite:///{tmp_path / 'missing.db'}")
    with pytest.raises(StoreUnavailableError):
        store.ping()
    assert not (tmp_path / "missing.db").exists()


def test_offline_memory_store():
    store = InMemoryStore()
    store.available = False
    with pytest.raises(StoreUnavailableError):
        store.ping()
    with pytest.raises(StoreUnavailableError):
        store.select_recent("memories")


def test_in_memory_store_returns_copies():
    store = InMemoryStore()
    store.set_many({"k": 1})
    row = store.get("stats", {"key": "k"})
    row["value"] = "changed"
    assert store.get_stat("k") == "1"
