"""
Condition evaluation for ``conditionalFlow`` nodes.

A condition compares an input value with a compare value under a named
operator and yields the branch to follow: ``"true"``, ``"false"`` or, when
the operator is unknown or the comparison cannot be made, ``"default"``.
"""

import logging
from collections.abc import Callable
from typing import Any

from flowengine.errors import EvaluationError

logger = logging.getLogger(__name__)

TRUE_BRANCH = "true"
FALSE_BRANCH = "false"
DEFAULT_BRANCH = "default"

_TRUTHY = {"true", "1", "yes", "y", "on"}
_FALSY = {"false", "0", "no", "n", "off"}


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise EvaluationError(f"Cannot compare non-numeric value {value!r}")


def _is_numeric(value: Any) -> bool:
    try:
        _as_number(value)
    except EvaluationError:
        return False
    return True


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _equals(value: Any, other: Any) -> bool:
    if _is_numeric(value) and _is_numeric(other):
        return _as_number(value) == _as_number(other)
    return _as_text(value) == _as_text(other)


def _contains(value: Any, other: Any) -> bool:
    if isinstance(value, list | tuple | set):
        return any(_equals(item, other) for item in value)
    if isinstance(value, dict):
        return _as_text(other) in value
    return _as_text(other) in _as_text(value)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | dict | set):
        return len(value) == 0
    return False


def _is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    return _as_text(value).strip().lower() in _TRUTHY


def _is_false(value: Any) -> bool:
    if isinstance(value, bool):
        return not value
    if isinstance(value, int | float):
        return value == 0
    return _as_text(value).strip().lower() in _FALSY


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "notEquals": lambda a, b: not _equals(a, b),
    "contains": _contains,
    "notContains": lambda a, b: not _contains(a, b),
    "greaterThan": lambda a, b: _as_number(a) > _as_number(b),
    "lessThan": lambda a, b: _as_number(a) < _as_number(b),
    "greaterOrEqual": lambda a, b: _as_number(a) >= _as_number(b),
    "lessOrEqual": lambda a, b: _as_number(a) <= _as_number(b),
    "startsWith": lambda a, b: _as_text(a).startswith(_as_text(b)),
    "endsWith": lambda a, b: _as_text(a).endswith(_as_text(b)),
    "isEmpty": lambda a, _b: _is_empty(a),
    "isNotEmpty": lambda a, _b: not _is_empty(a),
    "isTrue": lambda a, _b: _is_true(a),
    "isFalse": lambda a, _b: _is_false(a),
}


def evaluate_condition(condition_type: str, input_value: Any, compare_value: Any = None) -> bool:
    """
    Evaluate one comparison.

    Raises:
        EvaluationError: unknown ``condition_type`` or values that cannot be
            compared under it
    """
    operator = OPERATORS.get(condition_type)
    if operator is None:
        raise EvaluationError(f"Unknown condition type: {condition_type}")
    try:
        return bool(operator(input_value, compare_value))
    except EvaluationError:
        raise
    except Exception as e:
        raise EvaluationError(f"Failed to evaluate {condition_type}: {e}") from e


def evaluate_branch(condition_type: str, input_value: Any, compare_value: Any = None) -> str:
    """Evaluate a comparison and return the branch name to follow."""
    try:
        matched = evaluate_condition(condition_type, input_value, compare_value)
    except EvaluationError as e:
        logger.warning(f"⚠ Condition fell back to default branch: {e}")
        return DEFAULT_BRANCH
    return TRUE_BRANCH if matched else FALSE_BRANCH
