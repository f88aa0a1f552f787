"""
Structured channel for recovered failures.

Nothing recovered by a sweep is dropped: each failure is recorded here and
logged at a level matching its kind, and the collector travels back to the
caller on the result object.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from memweave.logging import logger


class DiagnosticKind(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    STORE_UNAVAILABLE = "store_unavailable"
    ANOMALY = "anomaly"
    COMPRESSOR_FAILURE = "compressor_failure"
    EMBEDDING_FAILURE = "embedding_failure"
    STEP_FAILURE = "step_failure"


_LEVELS = {
    DiagnosticKind.MALFORMED_INPUT: logging.INFO,
    DiagnosticKind.STORE_UNAVAILABLE: logging.WARNING,
    DiagnosticKind.ANOMALY: logging.WARNING,
    DiagnosticKind.COMPRESSOR_FAILURE: logging.WARNING,
    DiagnosticKind.EMBEDDING_FAILURE: logging.ERROR,
    DiagnosticKind.STEP_FAILURE: logging.ERROR,
}


@dataclass
class Diagnostic:
    step: str
    kind: DiagnosticKind
    message: str
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "kind": self.kind.value,
            "message": self.message,
            "detail": self.detail,
        }


class Diagnostics:
    """Collects Diagnostic entries and mirrors each one to the logger."""

    def __init__(self):
        self.entries: List[Diagnostic] = []

    def record(
        self,
        step: str,
        kind: DiagnosticKind,
        message: str,
        **detail: Any,
    ) -> Diagnostic:
        diag = Diagnostic(step=step, kind=kind, message=message, detail=detail)
        self.entries.append(diag)
        extra = f" {detail}" if detail else ""
        logger.log(_LEVELS[kind], f"[{step}] {kind.value}: {message}{extra}")
        return diag

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.entries if d.kind == kind]

    def extend(self, other: Optional["Diagnostics"]):
        if other is not None:
            self.entries.extend(other.entries)

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
