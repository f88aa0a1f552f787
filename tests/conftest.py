import pytest

from memweave.config import Settings
from memweave.db import init_db, make_engine
from memweave.store import InMemoryStore, SQLStore

from helpers import DIM, AxisEmbedder


@pytest.fixture(name="cfg")
def cfg_fixture():
    return Settings(EMBEDDING_DIM=DIM, EMBEDDING_PROVIDER="hash")


@pytest.fixture(name="store")
def store_fixture():
    return InMemoryStore()


@pytest.fixture(name="sql_store")
def sql_store_fixture(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'intelligence.db'}")
    init_db(engine)
    return SQLStore(engine)


@pytest.fixture(name="any_store", params=["memory", "sql"])
def any_store_fixture(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    engine = make_engine(f"sqlite:///{tmp_path / 'intelligence.db'}")
    init_db(engine)
    return SQLStore(engine)


@pytest.fixture(name="embedder")
def embedder_fixture():
    return AxisEmbedder(DIM)
