"""Coercion of port values to the types declared in an API body schema."""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes", "y", "on"}


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        as_float = float(text)
        if not as_float.is_integer():
            raise
        return int(as_float)


def _to_number(value: Any) -> int | float:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return value
    number = float(str(value).strip())
    return int(number) if number.is_integer() else number


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    return str(value).strip().lower() in _TRUTHY


def _to_array(value: Any) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, tuple | set):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(parsed, list):
            return parsed
        return [parsed]
    return [value]


def _to_object(value: Any) -> dict:
    if isinstance(value, dict):
        return value
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _to_string(value: Any) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value)
    return str(value)


COERCERS = {
    "integer": _to_integer,
    "number": _to_number,
    "boolean": _to_boolean,
    "array": _to_array,
    "object": _to_object,
    "string": _to_string,
}


def coerce_value(value: Any, declared_type: str | None) -> Any:
    """
    Convert ``value`` to ``declared_type`` (a JSON-schema type name).

    Unknown types and ``None`` pass through. A value that cannot be converted
    is kept as-is with a warning.
    """
    if value is None or not declared_type:
        return value
    coercer = COERCERS.get(declared_type)
    if coercer is None:
        return value
    try:
        return coercer(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"⚠ Could not coerce {value!r} to {declared_type}: {e}")
        return value
