"""Diff report generators for comparison findings."""
from __future__ import annotations

import csv
import html
import io
import json
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from ipv_checker.domain.models import Severity
from ipv_checker.domain.results import ComparisonRun, Finding, PortfolioSummary, plain_value

FINDING_COLUMNS = ["field", "kind", "severity", "detail"]

SEVERITY_COLOURS = {
    Severity.CRITICAL: "#FFC7CE",
    Severity.MAJOR: "#FFEB9C",
    Severity.MINOR: "#FFFF00",
}


def key_columns(key_fields: Sequence[str]) -> list[str]:
    """Report column names for the key fields; names clashing with a finding column get a ``key_`` prefix."""
    return [f"key_{name}" if name in FINDING_COLUMNS else name for name in key_fields]


def _key_text(value: Any) -> str:
    plain = plain_value(value)
    return "" if plain is None else str(plain)


def findings_to_rows(
    findings: Sequence[Finding],
    key_fields: Sequence[str],
) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for item in findings:
        row = {name: _key_text(value) for name, value in zip(key_columns(key_fields), item.key_values)}
        row.update(
            {
                "field": item.field_name or "",
                "kind": item.kind.value,
                "severity": item.severity.value,
                "detail": item.detail,
            }
        )
        rows.append(row)
    return rows


def run_to_rows(run: ComparisonRun, include_matches: bool = False) -> list[dict[str, str]]:
    findings = run.findings if include_matches else run.discrepancies()
    return findings_to_rows(findings, run.key_fields)


def summary_rows(run: ComparisonRun) -> list[dict[str, str]]:
    rows = [
        {"metric": "Base", "value": run.base_name},
        {"metric": "Compare", "value": run.compare_name},
        {"metric": "Key fields", "value": ", ".join(run.key_fields)},
        {"metric": "Overall status", "value": run.overall_status.value},
        {"metric": "Base records", "value": str(run.total_records_base)},
        {"metric": "Compare records", "value": str(run.total_records_compare)},
    ]
    for severity, count in run.counts_by_severity().items():
        rows.append({"metric": f"{severity.value} findings", "value": str(count)})
    return rows


def _csv_bytes(rows: list[dict[str, str]], fieldnames: list[str]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def render_csv(run: ComparisonRun, include_matches: bool = False) -> bytes:
    rows = run_to_rows(run, include_matches)
    return _csv_bytes(rows, key_columns(run.key_fields) + FINDING_COLUMNS)


def render_json(run: ComparisonRun, include_matches: bool = False) -> str:
    payload = run.as_dict()
    if not include_matches:
        payload["findings"] = [f.as_dict() for f in run.discrepancies()]
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)


def render_html(run: ComparisonRun, include_matches: bool = False) -> str:
    status = html.escape(run.overall_status.value)
    title = html.escape(run.name)
    heading = f"<h2>{title}: {status}</h2>"
    rows = run_to_rows(run, include_matches)
    if not rows:
        return f"{heading}<p>No discrepancies detected.</p>"
    columns = key_columns(run.key_fields) + FINDING_COLUMNS
    header = "".join(f"<th>{html.escape(col)}</th>" for col in columns)
    body_parts = []
    for row in rows:
        css = row["severity"].lower()
        cells = "".join(f"<td>{html.escape(row[col])}</td>" for col in columns)
        body_parts.append(f'<tr class="{css}">{cells}</tr>')
    body_html = "".join(body_parts)
    return f"{heading}<table><thead><tr>{header}</tr></thead><tbody>{body_html}</tbody></table>"


def _highlight_severity(writer: pd.ExcelWriter, sheet: str, df: pd.DataFrame) -> None:
    if df.empty or "severity" not in df.columns:
        return
    workbook = writer.book
    worksheet = writer.sheets[sheet]
    col = df.columns.get_loc("severity")
    last_row = len(df)
    for severity, colour in SEVERITY_COLOURS.items():
        worksheet.conditional_format(1, col, last_row, col, {
            "type": "cell",
            "criteria": "==",
            "value": f'"{severity.value}"',
            "format": workbook.add_format({"bg_color": colour}),
        })


def render_excel(run: ComparisonRun) -> bytes:
    columns = key_columns(run.key_fields) + FINDING_COLUMNS
    summary_df = pd.DataFrame(summary_rows(run), columns=["metric", "value"])
    diffs_df = pd.DataFrame(run_to_rows(run), columns=columns)
    all_df = pd.DataFrame(run_to_rows(run, include_matches=True), columns=columns)

    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="xlsxwriter") as writer:
        summary_df.to_excel(writer, sheet_name="summary", index=False)
        diffs_df.to_excel(writer, sheet_name="discrepancies", index=False)
        _highlight_severity(writer, "discrepancies", diffs_df)
        all_df.to_excel(writer, sheet_name="findings", index=False)
        _highlight_severity(writer, "findings", all_df)
    buf.seek(0)
    return buf.getvalue()


def portfolio_to_rows(summary: PortfolioSummary) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for item in summary.findings:
        finding = item.finding
        rows.append(
            {
                "run": item.run_name,
                "key": " | ".join(_key_text(v) for v in finding.key_values),
                "field": finding.field_name or "",
                "kind": finding.kind.value,
                "severity": finding.severity.value,
                "detail": finding.detail,
            }
        )
    return rows


def render_portfolio_csv(summary: PortfolioSummary) -> bytes:
    return _csv_bytes(portfolio_to_rows(summary), ["run", "key", "field", "kind", "severity", "detail"])


def render_portfolio_json(summary: PortfolioSummary, runs: Sequence[ComparisonRun] = ()) -> str:
    payload = summary.as_dict()
    payload["runs"] = [
        {"name": run.name, "overall_status": run.overall_status.value}
        for run in sorted(runs, key=lambda r: r.name)
    ]
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)


def write_report(run: ComparisonRun, path: Path, include_matches: bool = False) -> Path:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        path.write_bytes(render_csv(run, include_matches))
    elif suffix in {".html", ".htm"}:
        path.write_text(render_html(run, include_matches), encoding="utf-8")
    elif suffix == ".json":
        path.write_text(render_json(run, include_matches), encoding="utf-8")
    elif suffix == ".xlsx":
        path.write_bytes(render_excel(run))
    else:
        raise ValueError(f"Unsupported report format {suffix!r}; use .csv, .html, .json or .xlsx")
    return path


def write_portfolio_report(summary: PortfolioSummary, runs: Sequence[ComparisonRun], path: Path) -> Path:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        path.write_bytes(render_portfolio_csv(summary))
    elif suffix == ".json":
        path.write_text(render_portfolio_json(summary, runs), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported portfolio report format {suffix!r}; use .csv or .json")
    return path
