"""Condition and trigger-filter evaluation."""

from __future__ import annotations

import operator
from typing import Any, Iterable

from ..schemas.steps import ConditionRule, FilterCondition
from .context import ExecutionContext


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    if isinstance(actual, (list, tuple, set)):
        return expected in actual or str(expected) in {str(item) for item in actual}
    return str(expected).lower() in str(actual).lower()


def _equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    # Filter values arrive as strings from the editor
    if actual is not None and expected is not None:
        return str(actual).strip().lower() == str(expected).strip().lower()
    return False


OPERATORS = {
    "equals": _equals,
    "not_equals": lambda a, b: not _equals(a, b),
    "contains": _contains,
    "not_contains": lambda a, b: not _contains(a, b),
    "greater_than": lambda a, b: float(a) > float(b) if a is not None else False,
    "less_than": lambda a, b: float(a) < float(b) if a is not None else False,
    "is_empty": lambda a, _: a is None or a == "" or a == [] or a == {},
    "is_not_empty": lambda a, _: not (a is None or a == "" or a == [] or a == {}),
    "is_true": lambda a, _: _truthy(a),
    "is_false": lambda a, _: not _truthy(a),
}


def _evaluate(field: str, op_name: str, expected: Any, ctx: ExecutionContext) -> bool:
    actual = ctx.lookup(field)
    if isinstance(expected, str) and "{{" in expected:
        expected = ctx.resolve_template(expected)
    op_func = OPERATORS.get(op_name, operator.eq)
    try:
        return bool(op_func(actual, expected))
    except (TypeError, ValueError):
        return False


def evaluate_condition(rule: ConditionRule | dict, ctx: ExecutionContext) -> bool:
    """Evaluate a single condition rule.

    Rule format::

        {"field": "status", "operator": "equals", "value": "customer"}
    """
    if isinstance(rule, dict):
        rule = ConditionRule.model_validate(rule)
    return _evaluate(rule.field, rule.operator, rule.value, ctx)


def evaluate_filters(
    filters: Iterable[FilterCondition | dict], ctx: ExecutionContext
) -> bool:
    """Trigger filters are AND-joined ("Where ... And ..."); no filters always match."""
    for row in filters:
        if isinstance(row, dict):
            row = FilterCondition.model_validate(row)
        if not row.field:
            continue
        if not _evaluate(row.field, row.operator, row.value, ctx):
            return False
    return True
