"""Tabular readers turning CSV, Excel and SAS outputs into result sets."""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Iterable, Sequence

import pandas as pd

from ipv_checker.config import SETTINGS
from ipv_checker.domain.errors import ConfigurationError
from ipv_checker.domain.models import ResultSet
from ipv_checker.infrastructure.parsing.utils import (
    Source,
    clean_cell,
    clean_column_name,
    compute_file_hash,
    ensure_bytes,
)

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv", ".txt"}
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xlsm": "openpyxl", ".xls": "xlrd"}
SAS_FORMATS = {".sas7bdat": "sas7bdat", ".xpt": "xport"}
SUPPORTED_SUFFIXES = CSV_SUFFIXES | set(EXCEL_ENGINES) | set(SAS_FORMATS)


def _suffix_of(source: Source, suffix: str | None) -> str:
    if suffix:
        return suffix.lower() if suffix.startswith(".") else f".{suffix.lower()}"
    if isinstance(source, (Path, str)):
        return Path(source).suffix.lower()
    raise ConfigurationError("Cannot infer the file format of an in-memory source; pass suffix")


def _list_sheets(source: BytesIO, engine: str) -> list[str]:
    xls = pd.ExcelFile(source, engine=engine)
    return xls.sheet_names


def _pick_sheet(source: BytesIO, engine: str, preferred: str | None) -> str:
    sheets = _list_sheets(source, engine)
    if not sheets:
        raise ConfigurationError("Workbook has no sheets")
    if not preferred:
        return sheets[0]
    if preferred in sheets:
        return preferred
    lower_map = {name.lower(): name for name in sheets}
    if preferred.lower() in lower_map:
        return lower_map[preferred.lower()]
    for name in sheets:
        if preferred.lower() in name.lower():
            return name
    logger.warning("Sheet %r not found, falling back to %r", preferred, sheets[0])
    return sheets[0]


def read_table(source: Source, suffix: str | None = None, sheet: str | None = None) -> pd.DataFrame:
    file_suffix = _suffix_of(source, suffix)
    raw_bytes = ensure_bytes(source)

    if file_suffix in CSV_SUFFIXES:
        dataframe = pd.read_csv(BytesIO(raw_bytes), dtype=str, keep_default_na=False)
    elif file_suffix in EXCEL_ENGINES:
        engine = EXCEL_ENGINES[file_suffix]
        sheet_name = _pick_sheet(BytesIO(raw_bytes), engine, sheet)
        dataframe = pd.read_excel(
            BytesIO(raw_bytes),
            sheet_name=sheet_name,
            engine=engine,
            dtype=str,
            keep_default_na=False,
        )
    elif file_suffix in SAS_FORMATS:
        dataframe = pd.read_sas(
            BytesIO(raw_bytes),
            format=SAS_FORMATS[file_suffix],
            encoding=SETTINGS.sas_encoding,
        )
    else:
        raise ConfigurationError(
            f"Unsupported file type {file_suffix!r}; expected one of {', '.join(sorted(SUPPORTED_SUFFIXES))}"
        )

    dataframe.columns = [clean_column_name(c) for c in dataframe.columns]
    logger.info(
        "Read %d rows x %d columns (%s, sha256 %s)",
        len(dataframe),
        len(dataframe.columns),
        file_suffix,
        compute_file_hash(raw_bytes)[:12],
    )
    return dataframe


def dataframe_to_records(df: pd.DataFrame, columns: Iterable[str] | None = None) -> list[dict[str, Any]]:
    wanted = list(columns) if columns is not None else list(df.columns)
    records: list[dict[str, Any]] = []
    for row in df[wanted].itertuples(index=False, name=None):
        records.append({column: clean_cell(value) for column, value in zip(wanted, row)})
    return records


def dataframe_to_result_set(
    df: pd.DataFrame,
    name: str,
    key_fields: Sequence[str],
) -> ResultSet:
    if df.columns.duplicated().any():
        duplicated = sorted(set(df.columns[df.columns.duplicated()]))
        raise ConfigurationError(f"{name!r} has duplicated columns: {', '.join(duplicated)}")
    missing = [k for k in key_fields if k not in df.columns]
    if missing:
        raise ConfigurationError(f"{name!r} lacks key column(s): {', '.join(missing)}")
    return ResultSet.from_records(name, key_fields, dataframe_to_records(df))


def load_result_set(
    source: Source,
    key_fields: Sequence[str],
    name: str | None = None,
    sheet: str | None = None,
    suffix: str | None = None,
) -> ResultSet:
    if name is None:
        name = Path(source).stem if isinstance(source, (Path, str)) else "result_set"
    dataframe = read_table(source, suffix=suffix, sheet=sheet)
    return dataframe_to_result_set(dataframe, name, key_fields)


def result_set_to_dataframe(result_set: ResultSet) -> pd.DataFrame:
    columns = list(result_set.key_fields) + sorted(result_set.field_names())
    return pd.DataFrame([dict(r) for r in result_set.records], columns=columns)
