"""Storage helpers for JSON field-specification files."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ipv_checker.domain.errors import ConfigurationError
from ipv_checker.domain.models import FieldSpec, Tolerance
from ipv_checker.domain.policy import SeverityPolicy, ValidationConfig

logger = logging.getLogger(__name__)

KNOWN_OPTIONS = {"key_fields", "tolerance", "warnings_only", "policy", "ignore_fields", "fields"}


def _string_list(raw: Any, option: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, list):
        raise ConfigurationError(f"{option} must be a list of names, got {raw!r}")
    names = tuple(str(item).strip() for item in raw if item is not None and str(item).strip())
    return names


def parse_field_spec(raw: Any) -> ValidationConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError("Field-spec document must be a JSON object")
    unknown = set(raw) - KNOWN_OPTIONS
    if unknown:
        raise ConfigurationError(f"Unknown field-spec options: {', '.join(sorted(unknown))}")

    fields = raw.get("fields") or []
    if not isinstance(fields, list):
        raise ConfigurationError("fields must be a list of field declarations")
    tolerance = raw.get("tolerance")
    return ValidationConfig(
        key_fields=_string_list(raw.get("key_fields"), "key_fields"),
        field_specs=tuple(FieldSpec.from_dict(item) for item in fields),
        tolerance=Tolerance.from_dict(tolerance) if tolerance is not None else None,
        warnings_only=bool(raw.get("warnings_only", False)),
        policy=SeverityPolicy.from_dict(raw.get("policy")),
        ignore_fields=_string_list(raw.get("ignore_fields"), "ignore_fields"),
    )


def load_field_spec_file(path: Path) -> ValidationConfig:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Field-spec file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Field-spec file {path} is not valid JSON: {exc}") from exc
    config = parse_field_spec(data)
    logger.info("Loaded %d field declaration(s) from %s", len(config.field_specs), path)
    return config


def field_spec_to_dict(config: ValidationConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "key_fields": list(config.key_fields),
        "warnings_only": config.warnings_only,
        "policy": config.policy.as_dict(),
        "fields": [spec.as_dict() for spec in config.field_specs],
    }
    if config.tolerance is not None:
        payload["tolerance"] = config.tolerance.as_dict()
    if config.ignore_fields:
        payload["ignore_fields"] = list(config.ignore_fields)
    return payload


def save_field_spec_file(config: ValidationConfig, path: Path) -> Path:
    path = Path(path)
    path.write_text(
        json.dumps(field_spec_to_dict(config), ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    return path
