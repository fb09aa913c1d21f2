"""Application services orchestrating result-set validation."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Sequence

from ipv_checker.application.dto import ComparisonPair, PortfolioResponse
from ipv_checker.config import SETTINGS, Settings
from ipv_checker.domain.models import ResultSet
from ipv_checker.domain.policy import ValidationConfig
from ipv_checker.domain.repositories import ResultSetRepository
from ipv_checker.domain.results import ComparisonRun
from ipv_checker.domain.services import ResultSetComparator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResultSetValidationContext:
    base_repository: ResultSetRepository
    compare_repository: ResultSetRepository
    config: ValidationConfig = field(default_factory=ValidationConfig)
    settings: Settings = SETTINGS


def run_pair(pair: ComparisonPair, settings: Settings = SETTINGS) -> tuple[ComparisonRun, ResultSet, ResultSet]:
    config = pair.config
    base = pair.base_repository.load().without_fields(config.ignore_fields)
    compare = pair.compare_repository.load().without_fields(config.ignore_fields)
    comparator = ResultSetComparator(settings=settings, policy=config.policy)
    run = comparator.compare(
        base,
        compare,
        config.field_specs,
        config.tolerance,
        warnings_only=config.warnings_only,
    )
    logger.info(
        "%s: %s (%d base / %d compare records, %d discrepancies)",
        run.name,
        run.overall_status.value,
        run.total_records_base,
        run.total_records_compare,
        len(run.discrepancies()),
    )
    return run, base, compare


class ValidateResultSetsUseCase:
    def __init__(self, context: ResultSetValidationContext) -> None:
        self._context = context

    def execute(self) -> tuple[ComparisonRun, ResultSet, ResultSet]:
        pair = ComparisonPair(
            base_repository=self._context.base_repository,
            compare_repository=self._context.compare_repository,
            config=self._context.config,
        )
        return run_pair(pair, self._context.settings)


class ValidatePortfolioUseCase:
    """Runs independent comparisons, optionally on a thread pool, and rolls them up.

    Runs are returned in the order of ``pairs`` whatever order the workers
    finish in.
    """

    def __init__(self, max_workers: int = 1, settings: Settings = SETTINGS) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._max_workers = max_workers
        self._settings = settings

    def execute(self, pairs: Sequence[ComparisonPair]) -> PortfolioResponse:
        if self._max_workers == 1 or len(pairs) <= 1:
            runs = [self._run(pair) for pair in pairs]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="ipv-compare") as executor:
                runs = list(executor.map(self._run, pairs))
        summary = ResultSetComparator(settings=self._settings).summarize(runs)
        logger.info(
            "Portfolio of %d comparison(s): %s",
            summary.total_runs,
            summary.overall_status.value,
        )
        return PortfolioResponse(runs=tuple(runs), summary=summary)

    def _run(self, pair: ComparisonPair) -> ComparisonRun:
        run, _, _ = run_pair(pair, self._settings)
        return run
