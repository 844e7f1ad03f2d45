"""Tests for conditionalFlow comparisons and branch selection."""

import pytest

from flowengine.errors import EvaluationError
from flowengine.graph.conditions import (
    DEFAULT_BRANCH,
    FALSE_BRANCH,
    OPERATORS,
    TRUE_BRANCH,
    evaluate_branch,
    evaluate_condition,
)


def test_every_condition_type_is_supported():
    assert set(OPERATORS) == {
        "equals",
        "notEquals",
        "contains",
        "notContains",
        "greaterThan",
        "lessThan",
        "greaterOrEqual",
        "lessOrEqual",
        "startsWith",
        "endsWith",
        "isEmpty",
        "isNotEmpty",
        "isTrue",
        "isFalse",
    }


@pytest.mark.parametrize(
    "condition_type,input_value,compare_value,expected",
    [
        ("equals", "abc", "abc", True),
        ("equals", "10", 10, True),
        ("equals", "10.0", "10", True),
        ("equals", "abc", "ABC", False),
        ("notEquals", 1, 2, True),
        ("contains", "invoice #42", "#42", True),
        ("contains", ["a", "b"], "b", True),
        ("contains", {"total": 1}, "total", True),
        ("notContains", "hello", "z", True),
        ("greaterThan", 10, 5, True),
        ("greaterThan", "3", "12", False),
        ("lessThan", 1.5, 2, True),
        ("greaterOrEqual", 5, 5, True),
        ("lessOrEqual", 6, 5, False),
        ("startsWith", "INV-001", "INV", True),
        ("endsWith", "report.pdf", ".pdf", True),
        ("isEmpty", "   ", None, True),
        ("isEmpty", [], None, True),
        ("isEmpty", 0, None, False),
        ("isNotEmpty", "x", None, True),
        ("isTrue", "yes", None, True),
        ("isTrue", "TRUE", None, True),
        ("isTrue", 0, None, False),
        ("isFalse", "off", None, True),
        ("isFalse", False, None, True),
    ],
)
def test_evaluate_condition(condition_type, input_value, compare_value, expected):
    assert evaluate_condition(condition_type, input_value, compare_value) is expected


def test_unknown_condition_type_raises():
    with pytest.raises(EvaluationError):
        evaluate_condition("roughlyEquals", 1, 1)


def test_numeric_comparison_of_text_raises():
    with pytest.raises(EvaluationError):
        evaluate_condition("greaterThan", "ten", 5)


class TestEvaluateBranch:
    def test_greater_than_true(self):
        assert evaluate_branch("greaterThan", 10, 5) == TRUE_BRANCH

    def test_false_branch(self):
        assert evaluate_branch("equals", "a", "b") == FALSE_BRANCH

    def test_unknown_type_goes_to_default(self):
        assert evaluate_branch("roughlyEquals", 10, 5) == DEFAULT_BRANCH

    def test_evaluation_failure_goes_to_default(self, caplog):
        assert evaluate_branch("lessThan", "abc", 5) == DEFAULT_BRANCH
        assert "default branch" in caplog.text
