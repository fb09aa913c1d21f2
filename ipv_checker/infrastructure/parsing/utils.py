"""Shared parsing utilities for tabular ingestion."""
from __future__ import annotations

import hashlib
from io import BytesIO
from pathlib import Path
from typing import Any

import pandas as pd

from ipv_checker.config import SETTINGS

Source = BytesIO | Path | bytes | str


def ensure_bytes(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, BytesIO):
        return source.getvalue()
    if isinstance(source, (Path, str)):
        return Path(source).read_bytes()
    raise TypeError(f"Unsupported source type: {type(source)!r}")


def compute_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def clean_column_name(name: object) -> str:
    return str(name).strip()


def clean_cell(value: Any, missing_markers: frozenset[str] = SETTINGS.missing_markers) -> Any:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode(SETTINGS.sas_encoding)
    if isinstance(value, str):
        s = value.strip()
        return None if s in missing_markers else s
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalars -> builtin python values
    if hasattr(value, "item") and not hasattr(value, "__len__"):
        return value.item()
    return value
