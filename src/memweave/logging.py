import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable to track the sweep/event id across one invocation
sweep_id_ctx: ContextVar[Optional[str]] = ContextVar("sweep_id", default=None)

NO_SWEEP = "-"

def get_sweep_id() -> str:
    """Current sweep_id, or "-" outside any sweep or event."""
    return sweep_id_ctx.get() or NO_SWEEP

def new_sweep_id() -> str:
    """Start a fresh sweep id for a new orchestrated run."""
    sid = str(uuid.uuid4())
    sweep_id_ctx.set(sid)
    return sid

class SweepIDFilter(logging.Filter):
    """Injects sweep_id into log records."""
    def filter(self, record):
        record.sweep_id = get_sweep_id()
        return True

def configure_logging(level: str = "INFO"):
    """Configures the root logger with a standard format including sweep_id."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplication
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | [%(sweep_id)s] | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(SweepIDFilter())

    logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

# Initialize logging on import with default settings
configure_logging()
logger = logging.getLogger("memweave")
