from datetime import date, datetime
from decimal import Decimal

import pytest

from ipv_checker.domain.errors import ConfigurationError, KeySchemaMismatchError
from ipv_checker.domain.models import FieldKind, FieldSpec, ResultSet, Severity, Tolerance
from ipv_checker.domain.policy import SeverityPolicy
from ipv_checker.domain.results import FindingKind, RunStatus
from ipv_checker.domain.services import ResultSetComparator, compare


def make_set(name: str, records: list[dict], key_fields=("id",)) -> ResultSet:
    return ResultSet.from_records(name, key_fields, records)


def val_spec(abs_tol: str = "0.01", **kwargs) -> FieldSpec:
    return FieldSpec("val", kind=FieldKind.NUMERIC, tolerance=Tolerance(abs=Decimal(abs_tol)), **kwargs)


def only(run, field_name="val"):
    matches = [f for f in run.findings if f.field_name == field_name]
    assert len(matches) == 1
    return matches[0]


def test_identical_sets_pass():
    records = [
        {"id": 1, "val": 10.5, "label": "Placebo", "adt": date(2024, 1, 5)},
        {"id": 2, "val": None, "label": "Active", "adt": None},
    ]
    result_set = make_set("adsl", records)

    run = compare(result_set, result_set)

    assert run.overall_status is RunStatus.PASS
    assert run.findings
    assert all(f.kind is FindingKind.VALUE_MATCH for f in run.findings)
    assert all(f.severity is Severity.INFO for f in run.findings)
    assert not run.has_issues()


def test_concrete_scenario():
    base = make_set("prod", [{"id": 1, "val": 10.00}, {"id": 2, "val": 5.00}])
    qc = make_set("qc", [{"id": 1, "val": 10.004}, {"id": 3, "val": 7.00}])

    run = compare(base, qc, [val_spec(criticality=Severity.MAJOR)])

    assert [(f.kind, f.key_values, f.field_name, f.severity) for f in run.findings] == [
        (FindingKind.VALUE_MATCH, (1,), "val", Severity.INFO),
        (FindingKind.EXTRA_RECORD, (2,), None, Severity.MAJOR),
        (FindingKind.MISSING_RECORD, (3,), None, Severity.CRITICAL),
    ]
    assert run.findings[0].detail == "base=10.0, compare=10.004, diff=0.004"
    assert run.overall_status is RunStatus.FAIL
    assert run.total_records_base == 2
    assert run.total_records_compare == 2


@pytest.mark.parametrize(
    "compare_value, expected",
    [
        (1.009, FindingKind.VALUE_MATCH),
        (1.010, FindingKind.VALUE_MATCH),
        (1.011, FindingKind.VALUE_MISMATCH),
        (0.990, FindingKind.VALUE_MATCH),
        (0.989, FindingKind.VALUE_MISMATCH),
    ],
)
def test_absolute_tolerance_boundary(compare_value, expected):
    base = make_set("prod", [{"id": 1, "val": 1.000}])
    qc = make_set("qc", [{"id": 1, "val": compare_value}])

    run = compare(base, qc, [val_spec()])

    assert only(run).kind is expected


def test_relative_tolerance():
    spec = FieldSpec("val", kind="numeric", tolerance=Tolerance(abs=0, rel="0.01"))
    base = make_set("prod", [{"id": 1, "val": 100}, {"id": 2, "val": 100}])
    qc = make_set("qc", [{"id": 1, "val": 101}, {"id": 2, "val": 102}])

    run = compare(base, qc, [spec])

    assert [f.kind for f in run.findings] == [FindingKind.VALUE_MATCH, FindingKind.VALUE_MISMATCH]


def test_relative_tolerance_near_zero_uses_epsilon():
    spec = FieldSpec("val", kind="numeric", tolerance=Tolerance(abs=0, rel="0.5"))
    base = make_set("prod", [{"id": 1, "val": 0}, {"id": 2, "val": 0}])
    qc = make_set("qc", [{"id": 1, "val": "1E-13"}, {"id": 2, "val": "1E-11"}])

    run = compare(base, qc, [spec])

    assert [f.kind for f in run.findings] == [FindingKind.VALUE_MATCH, FindingKind.VALUE_MISMATCH]


def test_default_tolerance_applies_to_undeclared_numeric_fields():
    base = make_set("prod", [{"id": 1, "val": "1.0"}])
    qc = make_set("qc", [{"id": 1, "val": "1.000000001"}])

    assert only(compare(base, qc)).kind is FindingKind.VALUE_MATCH
    strict = compare(base, qc, tolerance_default={"abs": 0})
    assert only(strict).kind is FindingKind.VALUE_MISMATCH


def test_field_tolerance_replaces_default():
    base = make_set("prod", [{"id": 1, "val": 1.0}])
    qc = make_set("qc", [{"id": 1, "val": 1.5}])

    run = compare(base, qc, [val_spec("0.001")], tolerance_default=Tolerance(abs=1))

    assert only(run).kind is FindingKind.VALUE_MISMATCH


def test_both_missing_numeric_is_match():
    base = make_set("prod", [{"id": 1, "val": None}])
    qc = make_set("qc", [{"id": 1, "val": float("nan")}])

    finding = only(compare(base, qc, [val_spec()]))

    assert finding.kind is FindingKind.VALUE_MATCH
    assert finding.severity is Severity.INFO


def test_one_sided_missing_uses_field_criticality():
    base = make_set("prod", [{"id": 1, "val": 1.0}])
    qc = make_set("qc", [{"id": 1, "val": None}])

    run = compare(base, qc, [val_spec("1000", criticality=Severity.CRITICAL)])

    finding = only(run)
    assert finding.kind is FindingKind.VALUE_MISMATCH
    assert finding.severity is Severity.CRITICAL
    assert "one-sided missing" in finding.detail


def test_coercion_failure_is_a_major_finding():
    base = make_set("prod", [{"id": 1, "val": "abc"}, {"id": 2, "val": 3}])
    qc = make_set("qc", [{"id": 1, "val": 1}, {"id": 2, "val": 3}])

    run = compare(base, qc, [val_spec(criticality=Severity.MINOR)])

    first, second = run.findings
    assert first.kind is FindingKind.VALUE_MISMATCH
    assert first.severity is Severity.MAJOR
    assert first.detail.startswith("type coercion failure")
    assert second.kind is FindingKind.VALUE_MATCH
    assert run.overall_status is RunStatus.FAIL


def test_text_comparison_trims_and_respects_case():
    base = make_set("prod", [{"id": 1, "sex": " Male "}, {"id": 2, "sex": "Female"}])
    qc = make_set("qc", [{"id": 1, "sex": "Male"}, {"id": 2, "sex": "female"}])

    strict = compare(base, qc, [FieldSpec("sex", kind=FieldKind.TEXT)])
    relaxed = compare(base, qc, [FieldSpec("sex", kind=FieldKind.TEXT, case_insensitive=True)])

    assert [f.kind for f in strict.findings] == [FindingKind.VALUE_MATCH, FindingKind.VALUE_MISMATCH]
    assert strict.findings[1].detail == "base='Female', compare='female', diff=text differs"
    assert all(f.kind is FindingKind.VALUE_MATCH for f in relaxed.findings)


def test_text_inferred_when_not_numeric():
    base = make_set("prod", [{"id": 1, "arm": "Placebo"}])
    qc = make_set("qc", [{"id": 1, "arm": "Drug A"}])

    finding = only(compare(base, qc), "arm")

    assert finding.kind is FindingKind.VALUE_MISMATCH
    assert finding.severity is Severity.MAJOR
    assert finding.detail.endswith("diff=text differs")


def test_dates_compare_as_day_counts():
    spec = FieldSpec("adt", kind=FieldKind.DATE)
    base = make_set("prod", [{"id": 1, "adt": date(2024, 1, 5)}, {"id": 2, "adt": date(1960, 1, 2)}])
    qc = make_set("qc", [{"id": 1, "adt": "2024-01-05"}, {"id": 2, "adt": 1}])

    run = compare(base, qc, [spec])

    assert all(f.kind is FindingKind.VALUE_MATCH for f in run.findings)


def test_date_tolerance_in_days():
    spec = FieldSpec("ady", kind=FieldKind.DATE, tolerance=Tolerance(abs=1), criticality=Severity.MINOR)
    base = make_set("prod", [{"id": 1, "ady": "2024-01-05"}, {"id": 2, "ady": "2024-01-05"}])
    qc = make_set("qc", [{"id": 1, "ady": "2024-01-06"}, {"id": 2, "ady": "2024-01-07"}])

    run = compare(base, qc, [spec], tolerance_default={"abs": 100})

    first, second = run.findings
    assert first.kind is FindingKind.VALUE_MATCH
    assert second.kind is FindingKind.VALUE_MISMATCH
    assert second.severity is Severity.MINOR
    assert second.detail == "base=2024-01-05, compare=2024-01-07, diff=2 day(s)"
    assert run.overall_status is RunStatus.WARNING


def test_dates_are_exact_without_field_tolerance():
    base = make_set("prod", [{"id": 1, "adt": date(2024, 1, 5)}])
    qc = make_set("qc", [{"id": 1, "adt": date(2024, 1, 6)}])

    run = compare(base, qc, tolerance_default={"abs": 10})

    assert only(run, "adt").kind is FindingKind.VALUE_MISMATCH


def test_inferred_dates_ignore_time_of_day():
    base = make_set("prod", [{"id": 1, "adt": date(2024, 1, 5)}])
    qc = make_set("qc", [{"id": 1, "adt": datetime(2024, 1, 5, 13, 30)}])

    assert only(compare(base, qc), "adt").kind is FindingKind.VALUE_MATCH


def test_field_presence_findings_are_minor():
    base = make_set("prod", [{"id": 1, "a": 1, "b": 2}])
    qc = make_set("qc", [{"id": 1, "a": 1, "c": 3}])

    run = compare(base, qc)

    assert [(f.field_name, f.kind, f.severity) for f in run.findings] == [
        ("a", FindingKind.VALUE_MATCH, Severity.INFO),
        ("b", FindingKind.MISSING_FIELD, Severity.MINOR),
        ("c", FindingKind.EXTRA_FIELD, Severity.MINOR),
    ]
    assert run.overall_status is RunStatus.WARNING


def test_null_is_not_absence():
    base = make_set("prod", [{"id": 1, "val": None}])
    qc = make_set("qc", [{"id": 1}])

    finding = only(compare(base, qc))

    assert finding.kind is FindingKind.MISSING_FIELD


def test_record_order_does_not_change_output():
    records = [{"id": i, "val": i * 1.5, "txt": f"row {i}"} for i in range(20)]
    shifted = [{"id": i, "val": i * 1.5 + (0.1 if i % 3 else 0), "txt": f"row {i}"} for i in range(5, 25)]

    first = compare(make_set("prod", records), make_set("qc", shifted))
    second = compare(make_set("prod", list(reversed(records))), make_set("qc", list(reversed(shifted))))

    assert first.findings == second.findings
    assert first.to_records() == second.to_records()
    assert [f.key_values for f in first.findings] == sorted(f.key_values for f in first.findings)


def test_mixed_key_types_sort_without_error():
    base = make_set("prod", [{"id": "A"}, {"id": 2}, {"id": None}, {"id": date(2024, 1, 1)}])
    qc = make_set("qc", [])

    run = compare(base, qc)

    assert [f.key_values for f in run.findings] == [(None,), (2,), (date(2024, 1, 1),), ("A",)]


def test_swapping_sides_swaps_record_labels():
    a = make_set("a", [{"id": 1, "val": 1.0}, {"id": 2, "val": 2.0}])
    b = make_set("b", [{"id": 1, "val": 1.5}, {"id": 3, "val": 3.0}])
    symmetric = SeverityPolicy(missing_record=Severity.MAJOR, extra_record=Severity.MAJOR)

    forward = compare(a, b, policy=symmetric)
    backward = compare(b, a, policy=symmetric)

    def discrepant(run):
        return {(f.key_values, f.field_name, f.severity) for f in run.discrepancies()}

    assert discrepant(forward) == discrepant(backward)
    assert {f.key_values: f.kind for f in forward.findings if f.field_name is None} == {
        (2,): FindingKind.EXTRA_RECORD,
        (3,): FindingKind.MISSING_RECORD,
    }
    assert {f.key_values: f.kind for f in backward.findings if f.field_name is None} == {
        (2,): FindingKind.MISSING_RECORD,
        (3,): FindingKind.EXTRA_RECORD,
    }


def test_inverted_policy():
    base = make_set("prod", [{"id": 1}])
    qc = make_set("qc", [{"id": 2}])

    run = ResultSetComparator(policy=SeverityPolicy().inverted()).compare(base, qc)

    assert {f.kind: f.severity for f in run.findings} == {
        FindingKind.EXTRA_RECORD: Severity.CRITICAL,
        FindingKind.MISSING_RECORD: Severity.MAJOR,
    }


def test_key_schema_mismatch_raises():
    base = make_set("prod", [{"usubjid": "01"}], key_fields=("usubjid",))
    qc = make_set("qc", [{"usubjid": "01", "visit": 1}], key_fields=("usubjid", "visit"))

    with pytest.raises(ConfigurationError) as excinfo:
        compare(base, qc)

    assert isinstance(excinfo.value, KeySchemaMismatchError)
    assert excinfo.value.only_compare == ("visit",)
    assert "visit" in str(excinfo.value)


def test_key_order_may_differ():
    base = make_set("prod", [{"usubjid": "01", "visit": 1, "val": 2}], key_fields=("usubjid", "visit"))
    qc = make_set("qc", [{"usubjid": "01", "visit": 1, "val": 2}], key_fields=("visit", "usubjid"))

    run = compare(base, qc)

    assert run.overall_status is RunStatus.PASS
    assert run.findings[0].key_values == ("01", 1)


def test_key_fields_compare_exactly():
    base = make_set("prod", [{"id": "1"}])
    qc = make_set("qc", [{"id": "1.0"}])

    run = compare(base, qc, tolerance_default={"abs": 1})

    assert {f.kind for f in run.findings} == {FindingKind.EXTRA_RECORD, FindingKind.MISSING_RECORD}


def test_duplicate_field_declaration_rejected():
    base = make_set("prod", [{"id": 1, "val": 1}])

    with pytest.raises(ConfigurationError):
        compare(base, base, [val_spec(), val_spec()])


def test_warnings_only_downgrades_major():
    base = make_set("prod", [{"id": 1, "val": 1}, {"id": 2, "val": 2}])
    qc = make_set("qc", [{"id": 1, "val": 5}])

    assert compare(base, qc).overall_status is RunStatus.FAIL
    assert compare(base, qc, warnings_only=True).overall_status is RunStatus.WARNING

    critical = compare(qc, base, warnings_only=True)
    assert critical.overall_status is RunStatus.FAIL


def test_inputs_are_not_mutated():
    raw = {"id": 1, "val": 1}
    base = make_set("prod", [raw])
    raw["val"] = 99

    assert base.records[0]["val"] == 1
    with pytest.raises(TypeError):
        base.records[0]["val"] = 2  # type: ignore[index]


def test_decimal_overflow_becomes_a_finding():
    base = make_set("prod", [{"id": 1, "val": "1E+9999999"}, {"id": 2, "val": "1"}])
    qc = make_set("qc", [{"id": 1, "val": "-1E+9999999"}, {"id": 2, "val": "1"}])

    run = compare(base, qc, [FieldSpec("val", kind="numeric")])

    overflow, match = run.findings
    assert overflow.kind is FindingKind.VALUE_MISMATCH
    assert overflow.severity is Severity.MAJOR
    assert overflow.detail.startswith("type coercion failure (numeric): decimal overflow;")
    assert match.kind is FindingKind.VALUE_MATCH
    assert run.overall_status is RunStatus.FAIL


def test_nan_keys_align_like_null_keys():
    base = make_set("prod", [{"id": float("nan"), "val": 1}, {"id": 2, "val": 2}])
    qc = make_set("qc", [{"id": None, "val": 1}, {"id": 2, "val": 2}])

    run = compare(base, qc)

    assert [(f.kind, f.key_values) for f in run.findings] == [
        (FindingKind.VALUE_MATCH, (None,)),
        (FindingKind.VALUE_MATCH, (2,)),
    ]
