"""Exceptions raised by the validation domain.

Only ``ConfigurationError`` (and its subclasses) ever escapes a comparison.
Cell-level problems are recorded as findings instead.
"""
from __future__ import annotations

from typing import Iterable


class ConfigurationError(ValueError):
    """Inputs or field declarations cannot be compared meaningfully."""


class KeySchemaMismatchError(ConfigurationError):
    def __init__(self, base_name: str, compare_name: str, only_base: Iterable[str], only_compare: Iterable[str]) -> None:
        self.base_name = base_name
        self.compare_name = compare_name
        self.only_base = tuple(sorted(only_base))
        self.only_compare = tuple(sorted(only_compare))
        parts = []
        if self.only_base:
            parts.append(f"only in {base_name!r}: {', '.join(self.only_base)}")
        if self.only_compare:
            parts.append(f"only in {compare_name!r}: {', '.join(self.only_compare)}")
        super().__init__(f"Key fields differ between {base_name!r} and {compare_name!r} ({'; '.join(parts)})")


class DuplicateKeyError(ConfigurationError):
    def __init__(self, result_set: str, key_values: tuple[object, ...], count: int) -> None:
        self.result_set = result_set
        self.key_values = key_values
        self.count = count
        super().__init__(f"{count} records in {result_set!r} share the key {key_values!r}")


class CoercionError(ValueError):
    """A cell value cannot be read as the kind declared for its field."""
