"""Domain-level results for result-set validation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .models import KeyValues, Severity
from .values import is_null


class FindingKind(str, Enum):
    MISSING_RECORD = "MissingRecord"
    EXTRA_RECORD = "ExtraRecord"
    MISSING_FIELD = "MissingField"
    EXTRA_FIELD = "ExtraField"
    VALUE_MISMATCH = "ValueMismatch"
    VALUE_MATCH = "ValueMatch"


class RunStatus(str, Enum):
    PASS = "Pass"
    WARNING = "Warning"
    FAIL = "Fail"

    @property
    def exit_code(self) -> int:
        return _STATUS_RANK[self]

    @classmethod
    def worst(cls, statuses: Iterable[RunStatus]) -> RunStatus:
        return max(statuses, key=_STATUS_RANK.__getitem__, default=cls.PASS)


_STATUS_RANK = {RunStatus.PASS: 0, RunStatus.WARNING: 1, RunStatus.FAIL: 2}


def plain_value(value: Any) -> Any:
    """Reduce a cell value to something json.dumps accepts without a hook."""
    if is_null(value):
        return None
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def _key_component(value: Any) -> tuple[int, Any]:
    # Total order across mixed key types; equal-typed values compare natively.
    if is_null(value):
        return (0, "")
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float, Decimal)):
        return (1, value)
    if isinstance(value, date):
        return (2, value.isoformat())
    if isinstance(value, str):
        return (3, value)
    return (4, repr(value))


def finding_sort_key(finding: Finding) -> tuple[Any, ...]:
    key = tuple(_key_component(v) for v in finding.key_values)
    return (key, finding.field_name or "", finding.kind.value)


@dataclass(frozen=True)
class Finding:
    """One discrepancy or confirmation discovered by a comparison."""

    kind: FindingKind
    key_values: KeyValues
    field_name: str | None
    severity: Severity
    detail: str

    @property
    def is_discrepancy(self) -> bool:
        return self.severity is not Severity.INFO

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "key_values": [plain_value(v) for v in self.key_values],
            "field_name": self.field_name,
            "severity": self.severity.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class ComparisonRun:
    base_name: str
    compare_name: str
    key_fields: tuple[str, ...]
    findings: tuple[Finding, ...] = field(default_factory=tuple)
    total_records_base: int = 0
    total_records_compare: int = 0
    warnings_only: bool = False

    @property
    def name(self) -> str:
        return f"{self.base_name} vs {self.compare_name}"

    @property
    def overall_status(self) -> RunStatus:
        severities = {f.severity for f in self.findings}
        if Severity.CRITICAL in severities:
            return RunStatus.FAIL
        if Severity.MAJOR in severities:
            return RunStatus.WARNING if self.warnings_only else RunStatus.FAIL
        if Severity.MINOR in severities:
            return RunStatus.WARNING
        return RunStatus.PASS

    def has_issues(self) -> bool:
        return any(f.is_discrepancy for f in self.findings)

    def discrepancies(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.is_discrepancy)

    def counts_by_severity(self) -> dict[Severity, int]:
        counts = Counter(f.severity for f in self.findings)
        return {severity: counts.get(severity, 0) for severity in Severity}

    def counts_by_kind(self) -> dict[FindingKind, int]:
        counts = Counter(f.kind for f in self.findings)
        return {kind: counts.get(kind, 0) for kind in FindingKind}

    def to_records(self) -> list[dict[str, Any]]:
        return [f.as_dict() for f in self.findings]

    def as_dict(self) -> dict[str, Any]:
        return {
            "base_name": self.base_name,
            "compare_name": self.compare_name,
            "key_fields": list(self.key_fields),
            "overall_status": self.overall_status.value,
            "warnings_only": self.warnings_only,
            "total_records_base": self.total_records_base,
            "total_records_compare": self.total_records_compare,
            "counts_by_severity": {s.value: n for s, n in self.counts_by_severity().items()},
            "findings": self.to_records(),
        }


@dataclass(frozen=True)
class PortfolioFinding:
    run_name: str
    finding: Finding


@dataclass(frozen=True)
class PortfolioSummary:
    total_runs: int
    status_counts: Mapping[RunStatus, int]
    overall_status: RunStatus
    findings: Sequence[PortfolioFinding] = field(default_factory=tuple)

    def runs_with_status(self, status: RunStatus) -> int:
        return self.status_counts.get(status, 0)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_runs": self.total_runs,
            "overall_status": self.overall_status.value,
            "status_counts": {s.value: n for s, n in self.status_counts.items()},
            "findings": [{"run_name": item.run_name, **item.finding.as_dict()} for item in self.findings],
        }
