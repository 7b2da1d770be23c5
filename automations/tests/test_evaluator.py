"""Tests for condition and trigger filter evaluation."""

from __future__ import annotations

from automations.engine.context import ExecutionContext
from automations.engine.evaluator import evaluate_condition, evaluate_filters


class TestEvaluator:
    def test_equals_case_insensitive(self):
        ctx = ExecutionContext({"status": "Customer"})
        assert evaluate_condition({"field": "trigger.status", "operator": "equals", "value": "customer"}, ctx) is True
        assert evaluate_condition({"field": "trigger.status", "operator": "not_equals", "value": "lead"}, ctx) is True

    def test_bare_field_resolves_from_entity(self):
        ctx = ExecutionContext({"contact": {"status": "customer", "tags": ["vip", "new"]}})
        assert evaluate_condition({"field": "status", "operator": "equals", "value": "customer"}, ctx) is True
        assert evaluate_condition({"field": "tags", "operator": "contains", "value": "vip"}, ctx) is True
        assert evaluate_condition({"field": "tags", "operator": "not_contains", "value": "churned"}, ctx) is True

    def test_numeric_comparisons(self):
        ctx = ExecutionContext({"score": 85})
        assert evaluate_condition({"field": "score", "operator": "greater_than", "value": "50"}, ctx) is True
        assert evaluate_condition({"field": "score", "operator": "less_than", "value": 50}, ctx) is False

    def test_bad_numeric_value_is_false(self):
        ctx = ExecutionContext({"score": "high"})
        assert evaluate_condition({"field": "score", "operator": "greater_than", "value": 1}, ctx) is False

    def test_empty_checks(self):
        ctx = ExecutionContext({"phone": "", "email": "a@b.co"})
        assert evaluate_condition({"field": "phone", "operator": "is_empty"}, ctx) is True
        assert evaluate_condition({"field": "missing", "operator": "is_empty"}, ctx) is True
        assert evaluate_condition({"field": "email", "operator": "is_not_empty"}, ctx) is True

    def test_boolean_checks(self):
        ctx = ExecutionContext({"optedIn": "true", "vip": False})
        assert evaluate_condition({"field": "optedIn", "operator": "is_true"}, ctx) is True
        assert evaluate_condition({"field": "vip", "operator": "is_false"}, ctx) is True

    def test_template_value(self):
        ctx = ExecutionContext({"owner": "ann", "contact": {"assignee": "ann"}})
        rule = {"field": "assignee", "operator": "equals", "value": "{{trigger.owner}}"}
        assert evaluate_condition(rule, ctx) is True


class TestFilters:
    def test_empty_filters_match(self):
        assert evaluate_filters([], ExecutionContext({})) is True

    def test_filters_are_and_joined(self):
        ctx = ExecutionContext({"contact": {"status": "customer", "email": ""}})
        status = {"field": "status", "operator": "equals", "value": "customer"}
        email = {"field": "email", "operator": "is_not_empty", "value": ""}
        assert evaluate_filters([status], ctx) is True
        assert evaluate_filters([status, email], ctx) is False

    def test_blank_rows_ignored(self):
        ctx = ExecutionContext({"status": "lead"})
        assert evaluate_filters([{"field": "", "operator": "equals", "value": "x"}], ctx) is True


def test_context_templates():
    ctx = ExecutionContext({"contact": {"firstName": "Ada"}})
    ctx.set_variable("plan", "pro")
    assert ctx.resolve_template("Hi {{contact.firstName}} on {{variables.plan}} {{unknown}}") == (
        "Hi Ada on pro {{unknown}}"
    )
