"""Cell value coercion shared by the comparison rules."""
from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from .errors import CoercionError
from .models import FieldKind

_DAY_COUNT = re.compile(r"^[+-]?\d+$")


def is_null(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, Decimal) and value.is_nan():
        return True
    if isinstance(value, str) and value.strip().upper() in {"", "NAN"}:
        return True
    # pandas.NaT / pandas.NA compare unequal to themselves
    try:
        return bool(value != value)  # noqa: PLR0124
    except (TypeError, ValueError):
        return False


def coerce_numeric(value: object) -> Decimal | None:
    if is_null(value):
        return None
    if isinstance(value, bool):
        raise CoercionError(f"boolean {value!r} is not numeric")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, numbers.Real):
        result = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip()
        negative = False
        if s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
        s = s.replace(",", "").replace(" ", "")
        try:
            result = Decimal(s)
        except InvalidOperation as exc:
            raise CoercionError(f"{value!r} is not numeric") from exc
        if negative:
            result = -result
    else:
        raise CoercionError(f"{type(value).__name__} value {value!r} is not numeric")
    if not result.is_finite():
        raise CoercionError(f"{value!r} is not a finite number")
    return result


def is_numeric(value: object) -> bool:
    try:
        coerce_numeric(value)
    except CoercionError:
        return False
    return True


def coerce_text(value: object, case_insensitive: bool = False) -> str | None:
    if value is None or (not isinstance(value, str) and is_null(value)):
        return None
    text = str(value).strip()
    return text.casefold() if case_insensitive else text


def coerce_date(value: object, epoch: date) -> int | None:
    """Return ``value`` as a day count relative to ``epoch``."""
    if is_null(value):
        return None
    if isinstance(value, bool):
        raise CoercionError(f"boolean {value!r} is not a date")
    if isinstance(value, datetime):
        return (value.date() - epoch).days
    if isinstance(value, date):
        return (value - epoch).days
    if isinstance(value, (numbers.Real, Decimal)):
        number = Decimal(str(value))
        if not number.is_finite() or number != number.to_integral_value():
            raise CoercionError(f"{value!r} is not a whole day count")
        return int(number)
    if isinstance(value, str):
        s = value.strip()
        if _DAY_COUNT.match(s):
            return int(s)
        try:
            return (date.fromisoformat(s[:10]) - epoch).days
        except ValueError as exc:
            raise CoercionError(f"{value!r} is not an ISO date") from exc
    raise CoercionError(f"{type(value).__name__} value {value!r} is not a date")


def infer_kind(base: object, compare: object) -> FieldKind:
    present = [v for v in (base, compare) if not is_null(v)]
    if present and all(isinstance(v, date) for v in present):
        return FieldKind.DATE
    if all(is_numeric(v) for v in present):
        return FieldKind.NUMERIC
    return FieldKind.TEXT


def display(value: object) -> str:
    if is_null(value):
        return "<null>"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return repr(value)
    return str(value)
