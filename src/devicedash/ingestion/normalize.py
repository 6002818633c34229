"""Normalization helpers.

Centralizes per-field parsing of patch input. Every converter either
returns a typed value or raises :class:`DeviceValidationError`; malformed
numbers are rejected rather than stored as NaN.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from devicedash.exceptions import DeviceValidationError

#: Fields a patch may never touch. ``updated`` is always stamped server-side.
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "zone", "updated"})

# Python attribute names accepted in place of their wire names.
FIELD_ALIASES: dict[str, str] = {"sub_status": "subStatus"}

_BRACKET_KEY = re.compile(r"^(?P<base>[^\[\]]+)\[(?P<sub>[^\[\]]*)\]$")


def parse_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise DeviceValidationError(f"{field} must be a number", field=field)
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError) as exc:
        raise DeviceValidationError(f"{field} must be a number, got {value!r}", field=field) from exc
    if math.isnan(result) or math.isinf(result):
        raise DeviceValidationError(f"{field} must be finite, got {value!r}", field=field)
    return result


def parse_int(value: Any, field: str) -> int:
    """Parse a base-10 integer. Floats with a fractional part are rejected."""
    if isinstance(value, bool):
        raise DeviceValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise DeviceValidationError(f"{field} must be an integer, got {value!r}", field=field)
        return int(value)
    try:
        return int(str(value).strip(), 10)
    except ValueError as exc:
        raise DeviceValidationError(f"{field} must be an integer, got {value!r}", field=field) from exc


def parse_device_id(value: Any) -> int:
    return parse_int(value, "id")


def parse_position(value: Any, field: str = "position") -> dict[str, float]:
    """Parse ``{x, y}``; a missing axis defaults to ``0``."""
    if not isinstance(value, Mapping):
        raise DeviceValidationError(f"{field} must be an object with x and y", field=field)
    unknown = set(value) - {"x", "y"}
    if unknown:
        raise DeviceValidationError(f"{field} has unknown keys: {sorted(unknown)}", field=field)
    return {
        "x": parse_float(value.get("x", 0), f"{field}.x"),
        "y": parse_float(value.get("y", 0), f"{field}.y"),
    }


def _as_text(value: Any, field: str) -> str:
    if isinstance(value, (Mapping, list)):
        raise DeviceValidationError(f"{field} must be a plain value", field=field)
    return str(value)


FIELD_CONVERTERS: dict[str, Callable[[Any, str], Any]] = {
    "status": parse_int,
    "subStatus": parse_int,
    "position": parse_position,
}
"""Typed parsers by wire field name; anything else passes through as text."""


def coerce_fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Convert raw patch input into a typed partial device.

    Absent (``None``) values are dropped, immutable fields are rejected and
    fields without a converter are kept as opaque strings.
    """
    coerced: dict[str, Any] = {}
    for raw_key, value in raw.items():
        if value is None:
            continue
        key = FIELD_ALIASES.get(raw_key, raw_key)
        if key in IMMUTABLE_FIELDS:
            raise DeviceValidationError(f"{key} cannot be changed", field=key)
        converter = FIELD_CONVERTERS.get(key)
        coerced[key] = converter(value, key) if converter is not None else _as_text(value, key)
    return coerced


def unflatten_form(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold ``position[x]=0.4`` style form keys into nested dicts.

    Plain keys map straight through; for repeated keys the last value wins.
    """
    result: dict[str, Any] = {}
    for key, value in items:
        match = _BRACKET_KEY.match(key)
        if match is None:
            result[key] = value
            continue
        nested = result.get(match["base"])
        if not isinstance(nested, dict):
            nested = {}
            result[match["base"]] = nested
        nested[match["sub"]] = value
    return result


def flatten_form(fields: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Inverse of :func:`unflatten_form` for one level of nesting."""
    items: list[tuple[str, str]] = []
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            items.extend((f"{key}[{sub}]", str(sub_value)) for sub, sub_value in value.items())
        else:
            items.append((key, str(value)))
    return items
