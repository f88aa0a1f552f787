from pathlib import Path
from sqlalchemy.engine import Engine, make_url
from sqlmodel import SQLModel, create_engine
from memweave.config import settings
from memweave.logging import logger


def make_engine(db_url: str | None = None) -> Engine:
    """Create an engine for the given URL (defaults to the configured store)."""
    return create_engine(db_url or settings.DB_URL, echo=False)


def ensure_data_dir(db_url: str):
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def init_db(engine: Engine):
    """Create any canonical table that does not exist yet. Existing tables are left alone."""
    # Import all models here so SQLModel knows about them
    from memweave.models import memory, pattern, graph  # noqa: F401

    logger.info(f"Initializing database at {engine.url}")
    SQLModel.metadata.create_all(engine)
