"""Domain services implementing the comparison rules."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from decimal import Decimal, DecimalException, localcontext
from typing import Any, Callable, Iterable, Mapping, Sequence

from ipv_checker.config import SETTINGS, Settings

from .errors import CoercionError, ConfigurationError, KeySchemaMismatchError
from .models import FieldKind, FieldSpec, KeyValues, ResultSet, Severity, Tolerance
from .policy import DEFAULT_POLICY, SeverityPolicy
from .results import (
    ComparisonRun,
    Finding,
    FindingKind,
    PortfolioFinding,
    PortfolioSummary,
    RunStatus,
    finding_sort_key,
)
from .values import coerce_date, coerce_numeric, coerce_text, display, infer_kind

logger = logging.getLogger(__name__)

ToleranceLike = Tolerance | Mapping[str, Any] | None


def as_tolerance(value: ToleranceLike, settings: Settings = SETTINGS) -> Tolerance:
    if value is None:
        return Tolerance(abs=settings.tolerance_abs, rel=settings.tolerance_rel)
    if isinstance(value, Tolerance):
        return value
    return Tolerance.from_dict(value)


class ResultSetComparator:
    """Compares a production result set against an independently programmed one."""

    def __init__(self, settings: Settings = SETTINGS, policy: SeverityPolicy | None = None) -> None:
        self._settings = settings
        self._policy = policy or DEFAULT_POLICY

    @property
    def policy(self) -> SeverityPolicy:
        return self._policy

    def compare(
        self,
        base: ResultSet,
        compare: ResultSet,
        field_specs: Iterable[FieldSpec] = (),
        tolerance_default: ToleranceLike = None,
        warnings_only: bool = False,
    ) -> ComparisonRun:
        only_base = set(base.key_fields) - set(compare.key_fields)
        only_compare = set(compare.key_fields) - set(base.key_fields)
        if only_base or only_compare:
            raise KeySchemaMismatchError(base.name, compare.name, only_base, only_compare)

        specs = self._index_specs(field_specs, base.key_fields)
        default_tolerance = as_tolerance(tolerance_default, self._settings)

        base_index = base.index()
        compare_index = compare.index(order=base.key_fields)

        findings: list[Finding] = []
        for key_values in base_index.keys() - compare_index.keys():
            findings.append(
                Finding(
                    kind=FindingKind.EXTRA_RECORD,
                    key_values=key_values,
                    field_name=None,
                    severity=self._policy.extra_record,
                    detail=f"present in {base.name}, absent in {compare.name}",
                )
            )
        for key_values in compare_index.keys() - base_index.keys():
            findings.append(
                Finding(
                    kind=FindingKind.MISSING_RECORD,
                    key_values=key_values,
                    field_name=None,
                    severity=self._policy.missing_record,
                    detail=f"present in {compare.name}, absent in {base.name}",
                )
            )

        key_set = set(base.key_fields)
        for key_values in base_index.keys() & compare_index.keys():
            base_record = base_index[key_values]
            compare_record = compare_index[key_values]
            base_fields = set(base_record) - key_set
            compare_fields = set(compare_record) - key_set

            for name in base_fields - compare_fields:
                findings.append(
                    Finding(
                        kind=FindingKind.MISSING_FIELD,
                        key_values=key_values,
                        field_name=name,
                        severity=self._policy.field_presence,
                        detail=f"field present in {base.name}, absent in {compare.name}",
                    )
                )
            for name in compare_fields - base_fields:
                findings.append(
                    Finding(
                        kind=FindingKind.EXTRA_FIELD,
                        key_values=key_values,
                        field_name=name,
                        severity=self._policy.field_presence,
                        detail=f"field present in {compare.name}, absent in {base.name}",
                    )
                )
            for name in base_fields & compare_fields:
                findings.append(
                    self._compare_value(
                        key_values,
                        name,
                        base_record[name],
                        compare_record[name],
                        specs.get(name),
                        default_tolerance,
                    )
                )

        findings.sort(key=finding_sort_key)
        run = ComparisonRun(
            base_name=base.name,
            compare_name=compare.name,
            key_fields=base.key_fields,
            findings=tuple(findings),
            total_records_base=len(base),
            total_records_compare=len(compare),
            warnings_only=warnings_only,
        )
        logger.debug(
            "Compared %s: %d findings, %d discrepancies, status %s",
            run.name,
            len(run.findings),
            len(run.discrepancies()),
            run.overall_status.value,
        )
        return run

    def summarize(self, runs: Iterable[ComparisonRun]) -> PortfolioSummary:
        ordered = sorted(runs, key=lambda run: run.name)
        counts = Counter(run.overall_status for run in ordered)
        findings = [
            PortfolioFinding(run_name=run.name, finding=finding)
            for run in ordered
            for finding in run.findings
            if finding.is_discrepancy
        ]
        return PortfolioSummary(
            total_runs=len(ordered),
            status_counts={status: counts.get(status, 0) for status in RunStatus},
            overall_status=RunStatus.worst(run.overall_status for run in ordered),
            findings=tuple(findings),
        )

    @staticmethod
    def _index_specs(field_specs: Iterable[FieldSpec], key_fields: Sequence[str]) -> dict[str, FieldSpec]:
        specs: dict[str, FieldSpec] = {}
        for spec in field_specs:
            if spec.name in specs:
                raise ConfigurationError(f"Field {spec.name!r} is declared more than once")
            if spec.name in key_fields:
                logger.debug("Ignoring declaration for key field %s; keys compare exactly", spec.name)
                continue
            specs[spec.name] = spec
        return specs

    def _compare_value(
        self,
        key_values: KeyValues,
        name: str,
        base_value: object,
        compare_value: object,
        spec: FieldSpec | None,
        default_tolerance: Tolerance,
    ) -> Finding:
        kind = spec.kind if spec is not None and spec.kind is not None else infer_kind(base_value, compare_value)
        criticality = spec.criticality if spec is not None else Severity.MAJOR

        def finding(matched: bool, detail: str, severity: Severity | None = None) -> Finding:
            return Finding(
                kind=FindingKind.VALUE_MATCH if matched else FindingKind.VALUE_MISMATCH,
                key_values=key_values,
                field_name=name,
                severity=Severity.INFO if matched else (severity or criticality),
                detail=detail,
            )

        try:
            if kind is FieldKind.NUMERIC:
                tolerance = spec.tolerance if spec is not None and spec.tolerance is not None else default_tolerance
                return self._compare_numeric(base_value, compare_value, tolerance, finding)
            if kind is FieldKind.DATE:
                tolerance = spec.tolerance if spec is not None else None
                return self._compare_date(base_value, compare_value, tolerance, finding)
            case_insensitive = spec.case_insensitive if spec is not None else False
            return self._compare_text(base_value, compare_value, case_insensitive, finding)
        except (CoercionError, DecimalException) as exc:
            reason = str(exc) if isinstance(exc, CoercionError) else f"decimal {type(exc).__name__.lower()}"
            return finding(
                False,
                f"type coercion failure ({kind.value}): {reason}; "
                f"base={display(base_value)}, compare={display(compare_value)}, diff=n/a",
                severity=self._policy.coercion_failure,
            )

    def _compare_numeric(
        self,
        base_value: object,
        compare_value: object,
        tolerance: Tolerance,
        finding: Callable[..., Finding],
    ) -> Finding:
        left = coerce_numeric(base_value)
        right = coerce_numeric(compare_value)
        if left is None and right is None:
            return finding(True, "base=<null>, compare=<null>, diff=n/a")
        if left is None or right is None:
            return finding(False, f"base={display(left)}, compare={display(right)}, diff=n/a (one-sided missing)")
        with localcontext(self._settings.decimal_context):
            delta = right - left
            matched = self._within(left, right, tolerance)
        return finding(matched, f"base={left}, compare={right}, diff={delta}")

    def _within(self, left: Decimal, right: Decimal, tolerance: Tolerance) -> bool:
        delta = abs(left - right)
        if delta <= tolerance.abs:
            return True
        if tolerance.rel is None:
            return False
        scale = max(abs(left), abs(right), self._settings.epsilon)
        return delta <= tolerance.rel * scale

    def _compare_text(
        self,
        base_value: object,
        compare_value: object,
        case_insensitive: bool,
        finding: Callable[..., Finding],
    ) -> Finding:
        left = coerce_text(base_value, case_insensitive)
        right = coerce_text(compare_value, case_insensitive)
        shown = f"base={display(base_value)}, compare={display(compare_value)}"
        if left is None and right is None:
            return finding(True, f"{shown}, diff=n/a")
        if left is None or right is None:
            return finding(False, f"{shown}, diff=n/a (one-sided missing)")
        if left == right:
            return finding(True, f"{shown}, diff=none")
        return finding(False, f"{shown}, diff=text differs")

    def _compare_date(
        self,
        base_value: object,
        compare_value: object,
        tolerance: Tolerance | None,
        finding: Callable[..., Finding],
    ) -> Finding:
        epoch = self._settings.date_epoch
        left = coerce_date(base_value, epoch)
        right = coerce_date(compare_value, epoch)
        if left is None and right is None:
            return finding(True, "base=<null>, compare=<null>, diff=n/a")
        if left is None or right is None:
            shown_left = "<null>" if left is None else self._date_text(left)
            shown_right = "<null>" if right is None else self._date_text(right)
            return finding(False, f"base={shown_left}, compare={shown_right}, diff=n/a (one-sided missing)")
        delta = right - left
        allowed = tolerance.abs if tolerance is not None else Decimal("0")
        matched = abs(delta) <= allowed
        return finding(
            matched,
            f"base={self._date_text(left)}, compare={self._date_text(right)}, diff={delta} day(s)",
        )

    def _date_text(self, days: int) -> str:
        try:
            return (self._settings.date_epoch + timedelta(days=days)).isoformat()
        except OverflowError:
            return f"day {days}"


def compare(
    base: ResultSet,
    compare: ResultSet,
    field_specs: Iterable[FieldSpec] = (),
    tolerance_default: ToleranceLike = None,
    *,
    warnings_only: bool = False,
    policy: SeverityPolicy | None = None,
) -> ComparisonRun:
    """Compare two result sets with the default settings."""
    comparator = ResultSetComparator(policy=policy)
    return comparator.compare(base, compare, field_specs, tolerance_default, warnings_only=warnings_only)


def summarize(runs: Iterable[ComparisonRun]) -> PortfolioSummary:
    return ResultSetComparator().summarize(runs)
