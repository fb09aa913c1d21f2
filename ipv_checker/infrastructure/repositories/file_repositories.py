"""File-backed repositories for result sets."""
from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Sequence

from ipv_checker.domain.models import ResultSet
from ipv_checker.domain.repositories import ResultSetRepository
from ipv_checker.infrastructure.parsing.tabular import load_result_set
from ipv_checker.infrastructure.parsing.utils import Source, ensure_bytes


class FileResultSetRepository(ResultSetRepository):
    """Reads a CSV, Excel or SAS file into a result set on demand."""

    def __init__(
        self,
        source: Source,
        key_fields: Sequence[str],
        name: str | None = None,
        sheet: str | None = None,
        suffix: str | None = None,
    ) -> None:
        if isinstance(source, (Path, str)):
            path = Path(source)
            name = name or path.stem
            suffix = suffix or path.suffix
        self._source = ensure_bytes(source)
        self._key_fields = tuple(key_fields)
        self._name = name or "result_set"
        self._sheet = sheet
        self._suffix = suffix

    @property
    def name(self) -> str:
        return self._name

    def load(self) -> ResultSet:
        return load_result_set(
            BytesIO(self._source),
            self._key_fields,
            name=self._name,
            sheet=self._sheet,
            suffix=self._suffix,
        )


class InMemoryResultSetRepository(ResultSetRepository):
    def __init__(self, result_set: ResultSet) -> None:
        self._result_set = result_set

    def load(self) -> ResultSet:
        return self._result_set
