from dataclasses import dataclass, field
from typing import List

from memweave.errors import StoreUnavailableError
from memweave.models import REQUIRED_COLUMNS, TABLES
from memweave.store.base import GraphStore


@dataclass
class SchemaReport:
    passed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def validate_schema(store: GraphStore) -> SchemaReport:
    """Missing tables fail; missing columns only warn since reads tolerate them."""
    report = SchemaReport()
    for table in TABLES:
        try:
            columns = set(store.list_columns(table))
        except StoreUnavailableError:
            report.failed.append(f"Table {table} MISSING")
            continue
        report.passed.append(f"Table {table} exists")
        for col in REQUIRED_COLUMNS.get(table, []):
            if col in columns:
                report.passed.append(f"{table}.{col} exists")
            else:
                report.warnings.append(f"{table}.{col} MISSING")
    return report
