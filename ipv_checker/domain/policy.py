"""Severity assignments that are a matter of policy rather than field criticality."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Sequence

from .errors import ConfigurationError
from .models import FieldSpec, Severity, Tolerance


@dataclass(frozen=True)
class SeverityPolicy:
    """Severities for structural findings and unreadable cells.

    The defaults treat a record produced only by the validation side as the
    stronger signal of a programming discrepancy. Callers that read it the
    other way round can swap ``missing_record`` and ``extra_record``.
    """

    missing_record: Severity = Severity.CRITICAL
    extra_record: Severity = Severity.MAJOR
    field_presence: Severity = Severity.MINOR
    coercion_failure: Severity = Severity.MAJOR

    def __post_init__(self) -> None:
        for name in ("missing_record", "extra_record", "field_presence", "coercion_failure"):
            severity = Severity.parse(getattr(self, name))
            if severity is Severity.INFO:
                raise ConfigurationError(f"policy.{name} cannot be Info")
            object.__setattr__(self, name, severity)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> SeverityPolicy:
        if not raw:
            return cls()
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"policy must be a mapping, got {raw!r}")
        unknown = set(raw) - {"missing_record", "extra_record", "field_presence", "coercion_failure"}
        if unknown:
            raise ConfigurationError(f"Unknown policy options: {', '.join(sorted(unknown))}")
        return cls(**raw)

    def inverted(self) -> SeverityPolicy:
        return SeverityPolicy(
            missing_record=self.extra_record,
            extra_record=self.missing_record,
            field_presence=self.field_presence,
            coercion_failure=self.coercion_failure,
        )

    def as_dict(self) -> dict[str, str]:
        return {
            "missing_record": self.missing_record.value,
            "extra_record": self.extra_record.value,
            "field_presence": self.field_presence.value,
            "coercion_failure": self.coercion_failure.value,
        }


DEFAULT_POLICY = SeverityPolicy()


@dataclass(frozen=True)
class ValidationConfig:
    """Run-level settings for one comparison, typically read from a field-spec file."""

    key_fields: tuple[str, ...] = ()
    field_specs: tuple[FieldSpec, ...] = ()
    tolerance: Tolerance | None = None
    warnings_only: bool = False
    policy: SeverityPolicy = DEFAULT_POLICY
    ignore_fields: tuple[str, ...] = ()

    def with_key_fields(self, key_fields: Sequence[str]) -> ValidationConfig:
        return replace(self, key_fields=tuple(key_fields))
