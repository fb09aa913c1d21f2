"""Command-line entrypoints for result-set validation.

Exit codes follow the run status: 0 Pass, 1 Warning, 2 Fail, and 3 when the
inputs cannot be compared at all.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from ipv_checker.application.dto import ComparisonPair
from ipv_checker.application.use_cases import (
    ResultSetValidationContext,
    ValidatePortfolioUseCase,
    ValidateResultSetsUseCase,
)
from ipv_checker.domain.errors import ConfigurationError
from ipv_checker.domain.policy import ValidationConfig
from ipv_checker.domain.results import ComparisonRun, PortfolioSummary
from ipv_checker.infrastructure.repositories.file_repositories import FileResultSetRepository
from ipv_checker.infrastructure.storage.field_spec_store import load_field_spec_file
from ipv_checker.presentation.diff_report import write_portfolio_report, write_report

CONFIGURATION_ERROR_EXIT = 3

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compare a production output against its independently programmed validation output"
    )
    parser.add_argument("base", type=str, help="Path to the production (base) output")
    parser.add_argument("compare", type=str, help="Path to the validation (compare) output")
    parser.add_argument("--spec", type=str, help="JSON field-specification file")
    parser.add_argument(
        "--key",
        action="append",
        default=[],
        help="Key field; repeat for composite keys (overrides key_fields in --spec)",
    )
    parser.add_argument("--base-sheet", type=str, help="Worksheet to read from an Excel base file")
    parser.add_argument("--compare-sheet", type=str, help="Worksheet to read from an Excel compare file")
    parser.add_argument("--ignore", action="append", default=[], help="Field to leave out of the comparison")
    parser.add_argument("--warnings-only", action="store_true", help="Report Major findings as warnings")
    parser.add_argument("--report", type=str, help="Write findings to .csv, .html, .json or .xlsx")
    parser.add_argument("--show-matches", action="store_true", help="Include matching values in outputs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_config(spec: str | None, keys: list[str], ignore: list[str], warnings_only: bool) -> ValidationConfig:
    config = load_field_spec_file(Path(spec)) if spec else ValidationConfig()
    if keys:
        config = config.with_key_fields(keys)
    if ignore:
        config = replace(config, ignore_fields=tuple(config.ignore_fields) + tuple(ignore))
    if warnings_only:
        config = replace(config, warnings_only=True)
    if not config.key_fields:
        raise ConfigurationError("No key fields given; pass --key or declare key_fields in the spec file")
    return config


def print_run(run: ComparisonRun, show_matches: bool = False) -> None:
    print("Validation Summary")
    print("==================")
    print(f"Base: {run.base_name} ({run.total_records_base} records)")
    print(f"Compare: {run.compare_name} ({run.total_records_compare} records)")
    for severity, count in run.counts_by_severity().items():
        print(f"{severity.value}: {count}")
    print(f"Overall status: {run.overall_status.value}")

    findings = run.findings if show_matches else run.discrepancies()
    if findings:
        print("\nFindings:" if show_matches else "\nDiscrepancies detected:")
        for finding in findings:
            key = ", ".join(f"{k}={v}" for k, v in zip(run.key_fields, finding.key_values))
            field_part = f" [{finding.field_name}]" if finding.field_name else ""
            print(f"- {finding.severity.value} {finding.kind.value} {key}{field_part}: {finding.detail}")
    else:
        print("\nNo discrepancies detected.")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging(args.verbose)

    try:
        config = build_config(args.spec, args.key, args.ignore, args.warnings_only)
        logger.debug("Key fields: %s", ", ".join(config.key_fields))
        context = ResultSetValidationContext(
            base_repository=FileResultSetRepository(args.base, config.key_fields, sheet=args.base_sheet),
            compare_repository=FileResultSetRepository(args.compare, config.key_fields, sheet=args.compare_sheet),
            config=config,
        )
        run, _, _ = ValidateResultSetsUseCase(context).execute()
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return CONFIGURATION_ERROR_EXIT

    print_run(run, args.show_matches)
    if args.report:
        try:
            path = write_report(run, Path(args.report), include_matches=args.show_matches)
        except ValueError as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return CONFIGURATION_ERROR_EXIT
        print(f"\nReport written to {path}")
    return run.overall_status.exit_code


def parse_portfolio_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate every comparison listed in a JSON manifest")
    parser.add_argument("manifest", type=str, help="JSON manifest of base/compare pairs")
    parser.add_argument("--workers", type=int, default=1, help="Number of comparisons to run in parallel")
    parser.add_argument("--report", type=str, help="Write the portfolio findings to .csv or .json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _resolve(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else root / path


def load_manifest(path: Path) -> list[ComparisonPair]:
    try:
        manifest: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Manifest {path} is not valid JSON: {exc}") from exc
    if not isinstance(manifest, dict) or not isinstance(manifest.get("comparisons"), list):
        raise ConfigurationError(f"Manifest {path} needs a 'comparisons' list")

    root = path.parent
    default_spec = manifest.get("spec")
    pairs: list[ComparisonPair] = []
    for position, entry in enumerate(manifest["comparisons"]):
        if not isinstance(entry, dict) or "base" not in entry or "compare" not in entry:
            raise ConfigurationError(f"Manifest entry {position} needs 'base' and 'compare'")
        spec = entry.get("spec", default_spec)
        config = load_field_spec_file(_resolve(root, spec)) if spec else ValidationConfig()
        if entry.get("key_fields"):
            config = config.with_key_fields(entry["key_fields"])
        if entry.get("warnings_only"):
            config = replace(config, warnings_only=True)
        if not config.key_fields:
            raise ConfigurationError(f"Manifest entry {position} has no key fields")
        pairs.append(
            ComparisonPair(
                base_repository=FileResultSetRepository(
                    _resolve(root, entry["base"]), config.key_fields, sheet=entry.get("base_sheet")
                ),
                compare_repository=FileResultSetRepository(
                    _resolve(root, entry["compare"]), config.key_fields, sheet=entry.get("compare_sheet")
                ),
                config=config,
            )
        )
    return pairs


def print_portfolio(summary: PortfolioSummary, runs: list[ComparisonRun]) -> None:
    print("Portfolio Summary")
    print("=================")
    for run in sorted(runs, key=lambda r: r.name):
        print(f"{run.overall_status.value:<8} {run.name}")
    print()
    for status, count in summary.status_counts.items():
        print(f"{status.value}: {count}")
    print(f"Overall status: {summary.overall_status.value}")
    print(f"Open findings: {len(summary.findings)}")


def portfolio_main(argv: list[str] | None = None) -> int:
    args = parse_portfolio_args(argv if argv is not None else sys.argv[1:])
    configure_logging(args.verbose)

    try:
        pairs = load_manifest(Path(args.manifest))
        response = ValidatePortfolioUseCase(max_workers=max(1, args.workers)).execute(pairs)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return CONFIGURATION_ERROR_EXIT

    print_portfolio(response.summary, list(response.runs))
    if args.report:
        try:
            path = write_portfolio_report(response.summary, response.runs, Path(args.report))
        except ValueError as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return CONFIGURATION_ERROR_EXIT
        print(f"\nReport written to {path}")
    return response.summary.overall_status.exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
