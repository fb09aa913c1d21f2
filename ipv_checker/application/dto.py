"""Application-level DTOs for result-set validation."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ipv_checker.domain.policy import ValidationConfig
from ipv_checker.domain.repositories import ResultSetRepository
from ipv_checker.domain.results import ComparisonRun, PortfolioSummary


@dataclass(slots=True, frozen=True)
class ComparisonPair:
    base_repository: ResultSetRepository
    compare_repository: ResultSetRepository
    config: ValidationConfig = field(default_factory=ValidationConfig)


@dataclass(slots=True, frozen=True)
class PortfolioResponse:
    runs: Sequence[ComparisonRun]
    summary: PortfolioSummary
