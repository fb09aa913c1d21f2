"""Independent programming validation toolkit for analysis result sets."""
from ipv_checker.application.use_cases import (
    ResultSetValidationContext,
    ValidatePortfolioUseCase,
    ValidateResultSetsUseCase,
)
from ipv_checker.domain.errors import ConfigurationError
from ipv_checker.domain.models import FieldKind, FieldSpec, ResultSet, Severity, Tolerance
from ipv_checker.domain.policy import SeverityPolicy, ValidationConfig
from ipv_checker.domain.results import ComparisonRun, Finding, FindingKind, PortfolioSummary, RunStatus
from ipv_checker.domain.services import ResultSetComparator, compare, summarize
from ipv_checker.infrastructure.repositories.file_repositories import FileResultSetRepository

__all__ = [
    "ComparisonRun",
    "ConfigurationError",
    "FieldKind",
    "FieldSpec",
    "FileResultSetRepository",
    "Finding",
    "FindingKind",
    "PortfolioSummary",
    "ResultSet",
    "ResultSetComparator",
    "ResultSetValidationContext",
    "RunStatus",
    "Severity",
    "SeverityPolicy",
    "Tolerance",
    "ValidatePortfolioUseCase",
    "ValidateResultSetsUseCase",
    "ValidationConfig",
    "compare",
    "summarize",
]
