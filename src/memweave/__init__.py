from memweave.consolidation import SweepResult, consolidate
from memweave.triggers import (
    on_command,
    on_consolidate,
    on_edit,
    on_pre_command,
    on_session_end,
    on_session_start,
)
from memweave.compression import compress_patterns

__all__ = [
    "SweepResult",
    "consolidate",
    "on_command",
    "on_consolidate",
    "on_edit",
    "on_pre_command",
    "on_session_end",
    "on_session_start",
    "compress_patterns",
]
