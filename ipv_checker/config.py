"""Central configuration for the validation engine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Context, Decimal

# SAS stores dates as days since 1960-01-01; integer day counts are read against it.
SAS_DATE_EPOCH = date(1960, 1, 1)


@dataclass(slots=True, frozen=True)
class Settings:
    decimal_context: Context
    tolerance_abs: Decimal
    tolerance_rel: Decimal | None
    epsilon: Decimal
    date_epoch: date
    sas_encoding: str
    missing_markers: frozenset[str]


SETTINGS = Settings(
    decimal_context=Context(prec=28),
    tolerance_abs=Decimal("1E-8"),
    tolerance_rel=None,
    epsilon=Decimal("1E-12"),
    date_epoch=SAS_DATE_EPOCH,
    sas_encoding="latin-1",
    # blank cells and the SAS missing-numeric dot
    missing_markers=frozenset({"", "."}),
)
