"""Domain models for the result-set validation engine.

These dataclasses describe the two sides of a comparison and the per-field
declarations that steer how their values are compared.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .errors import ConfigurationError, DuplicateKeyError

Record = Mapping[str, Any]
KeyValues = tuple[Any, ...]


class FieldKind(str, Enum):
    NUMERIC = "numeric"
    TEXT = "text"
    DATE = "date"


class Severity(str, Enum):
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"
    INFO = "Info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str | Severity) -> Severity:
        if isinstance(value, Severity):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ConfigurationError(f"Unknown severity {value!r}")


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.MINOR: 1,
    Severity.MAJOR: 2,
    Severity.CRITICAL: 3,
}


def to_decimal(value: object, label: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(f"{label} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ConfigurationError(f"{label} must be a number, got {value!r}") from exc
    if not result.is_finite():
        raise ConfigurationError(f"{label} must be finite, got {value!r}")
    return result


@dataclass(frozen=True)
class Tolerance:
    """Absolute and optional relative tolerance for numeric (or day-count) comparison."""

    abs: Decimal = Decimal("0")
    rel: Decimal | None = None

    def __post_init__(self) -> None:
        abs_value = to_decimal(self.abs, "tolerance.abs")
        if abs_value < 0:
            raise ConfigurationError(f"tolerance.abs must be >= 0, got {self.abs!r}")
        object.__setattr__(self, "abs", abs_value)
        if self.rel is not None:
            rel_value = to_decimal(self.rel, "tolerance.rel")
            if rel_value < 0:
                raise ConfigurationError(f"tolerance.rel must be >= 0, got {self.rel!r}")
            object.__setattr__(self, "rel", rel_value)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Tolerance:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"tolerance must be a mapping, got {raw!r}")
        unknown = set(raw) - {"abs", "rel"}
        if unknown:
            raise ConfigurationError(f"Unknown tolerance options: {', '.join(sorted(unknown))}")
        abs_value = raw.get("abs")
        return cls(abs=0 if abs_value is None else abs_value, rel=raw.get("rel"))

    def as_dict(self) -> dict[str, str | None]:
        return {"abs": str(self.abs), "rel": None if self.rel is None else str(self.rel)}


@dataclass(frozen=True)
class FieldSpec:
    """Declares how one field is compared.

    ``kind`` left as ``None`` is inferred per value pair (numeric when both
    sides parse as numbers, otherwise text). ``tolerance`` left as ``None``
    falls back to the run-level default.
    """

    name: str
    kind: FieldKind | None = None
    tolerance: Tolerance | None = None
    criticality: Severity = Severity.MAJOR
    case_insensitive: bool = False

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ConfigurationError("Field name cannot be empty")
        if self.kind is not None and not isinstance(self.kind, FieldKind):
            try:
                object.__setattr__(self, "kind", FieldKind(str(self.kind).strip().lower()))
            except ValueError as exc:
                raise ConfigurationError(f"Field {self.name!r}: unknown kind {self.kind!r}") from exc
        criticality = Severity.parse(self.criticality)
        if criticality is Severity.INFO:
            raise ConfigurationError(f"Field {self.name!r}: criticality must be Critical, Major or Minor")
        object.__setattr__(self, "criticality", criticality)
        if self.case_insensitive and self.kind not in (None, FieldKind.TEXT):
            raise ConfigurationError(f"Field {self.name!r}: case_insensitive applies to text fields only")
        if self.tolerance is not None and self.kind is FieldKind.TEXT:
            raise ConfigurationError(f"Field {self.name!r}: text fields take no tolerance")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> FieldSpec:
        if not isinstance(raw, Mapping) or "name" not in raw:
            raise ConfigurationError(f"Field declaration needs a name: {raw!r}")
        unknown = set(raw) - {"name", "kind", "tolerance", "criticality", "case_insensitive"}
        if unknown:
            raise ConfigurationError(f"Field {raw['name']!r}: unknown options {', '.join(sorted(unknown))}")
        tolerance = raw.get("tolerance")
        return cls(
            name=str(raw["name"]),
            kind=raw.get("kind"),
            tolerance=Tolerance.from_dict(tolerance) if tolerance is not None else None,
            criticality=raw.get("criticality", Severity.MAJOR),
            case_insensitive=bool(raw.get("case_insensitive", False)),
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "criticality": self.criticality.value}
        if self.kind is not None:
            payload["kind"] = self.kind.value
        if self.tolerance is not None:
            payload["tolerance"] = self.tolerance.as_dict()
        if self.case_insensitive:
            payload["case_insensitive"] = True
        return payload


def _key_part(value: Any) -> Any:
    # NaN and NaT never equal themselves; fold them into None so null keys align
    try:
        if value is not None and bool(value != value):
            return None
    except (TypeError, ValueError):
        return value
    return value


@dataclass(frozen=True)
class ResultSet:
    """One side of a comparison: a named table of records keyed by ``key_fields``."""

    name: str
    key_fields: tuple[str, ...]
    records: tuple[Record, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        key_fields = tuple(str(k) for k in self.key_fields)
        if not key_fields:
            raise ConfigurationError(f"Result set {self.name!r} declares no key fields")
        if len(set(key_fields)) != len(key_fields):
            raise ConfigurationError(f"Result set {self.name!r} repeats a key field: {key_fields!r}")
        object.__setattr__(self, "key_fields", key_fields)

        frozen: list[Record] = []
        for position, record in enumerate(self.records):
            missing = [k for k in key_fields if k not in record]
            if missing:
                raise ConfigurationError(
                    f"Record {position} of {self.name!r} lacks key field(s): {', '.join(missing)}"
                )
            frozen.append(MappingProxyType(dict(record)))
        object.__setattr__(self, "records", tuple(frozen))

        counts = Counter(self.key_of(record) for record in self.records)
        for key_values, count in counts.items():
            if count > 1:
                raise DuplicateKeyError(self.name, key_values, count)

    @classmethod
    def from_records(cls, name: str, key_fields: Iterable[str], records: Iterable[Record]) -> ResultSet:
        return cls(name=name, key_fields=tuple(key_fields), records=tuple(records))

    def key_of(self, record: Record, order: tuple[str, ...] | None = None) -> KeyValues:
        return tuple(_key_part(record[k]) for k in (order or self.key_fields))

    def index(self, order: tuple[str, ...] | None = None) -> dict[KeyValues, Record]:
        return {self.key_of(record, order): record for record in self.records}

    def without_fields(self, names: Iterable[str]) -> ResultSet:
        dropped = set(names) - set(self.key_fields)
        if not dropped:
            return self
        records = tuple({k: v for k, v in record.items() if k not in dropped} for record in self.records)
        return ResultSet(name=self.name, key_fields=self.key_fields, records=records)

    def field_names(self) -> set[str]:
        names: set[str] = set()
        for record in self.records:
            names.update(record.keys())
        return names - set(self.key_fields)

    def __len__(self) -> int:
        return len(self.records)
