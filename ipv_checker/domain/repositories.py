"""Repository interfaces anchoring the domain layer."""
from __future__ import annotations

from typing import Protocol

from .models import ResultSet


class ResultSetRepository(Protocol):
    """Provides one side of a comparison, fully materialized."""

    def load(self) -> ResultSet:
        ...
