"""
Agent registration, upserted by name.

Two table layouts exist in the wild: the current one
(id, name, type, status, created_at, last_seen, metadata) and a legacy
(name, data) pair. The layout is detected from the table's columns.
"""
import json
from typing import Any, Dict, Optional

from memweave.errors import StoreError
from memweave.logging import logger
from memweave.models.base import now_epoch
from memweave.store.base import GraphStore

SYSTEM_AGENT = "consolidator"
SYSTEM_AGENT_TYPE = "system"
DEFAULT_AGENT_TYPE = "assistant"
DEFAULT_AGENT_NAME = "assistant"


def _load_json(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.info(f"Discarding unparsable agent metadata: {raw[:80]!r}")
        return {}
    return value if isinstance(value, dict) else {}


def register_agent(
    store: GraphStore,
    name: str,
    session_id: Optional[str] = None,
    agent_type: str = DEFAULT_AGENT_TYPE,
) -> Dict[str, Any]:
    """Create or touch an agent. Returns the metadata now stored for it."""
    now = now_epoch()
    session_id = session_id or f"session-{now}"
    columns = set(store.list_columns("agents"))

    if {"type", "status"} <= columns:
        existing = store.get("agents", {"name": name})
        if existing is not None:
            meta = _load_json(existing.get("metadata"))
            meta["last_session"] = session_id
            meta["session_count"] = int(meta.get("session_count") or 0) + 1
            store.upsert_by_key("agents", {"name": name}, {
                "last_seen": now,
                "status": "active",
                "metadata": json.dumps(meta, sort_keys=True),
            })
            logger.debug(f"Updated agent {name} session_count={meta['session_count']}")
            return meta
        meta = {"last_session": session_id, "session_count": 1, "first_seen": now}
        store.upsert_by_key("agents", {"name": name}, {
            "id": f"agent-{name}-{now}",
            "type": agent_type,
            "status": "active",
            "created_at": now,
            "last_seen": now,
            "metadata": json.dumps(meta, sort_keys=True),
        })
        logger.info(f"Registered new agent: {name}")
        return meta

    if "data" in columns and "name" in columns:
        existing = store.get("agents", {"name": name})
        meta = _load_json(existing.get("data")) if existing else {"first_seen": now}
        meta["last_session"] = session_id
        meta["last_seen"] = now
        meta["session_count"] = int(meta.get("session_count") or 0) + 1
        store.upsert_by_key("agents", {"name": name}, {"data": json.dumps(meta, sort_keys=True)})
        logger.debug(f"Updated agent registration (legacy layout): {name}")
        return meta

    raise StoreError(f"agents table has an unrecognised layout: {sorted(columns)}")


def count_agents(store: GraphStore) -> int:
    """Agents other than the synthetic system agent."""
    columns = set(store.list_columns("agents"))
    rows = store.select_recent("agents")
    if "type" in columns:
        return sum(1 for r in rows if r.get("type") != SYSTEM_AGENT_TYPE)
    return sum(1 for r in rows if r.get("name") != SYSTEM_AGENT)
