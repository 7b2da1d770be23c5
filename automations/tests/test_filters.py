"""Tests for the trigger filter builder."""

from __future__ import annotations

import pytest

from automations.schemas.steps import parse_step_config
from automations.steps.filters import FilterBuilder, describe_rule
from automations.steps.registry import registry


class TestFilterBuilder:
    def test_add_assigns_unique_ids(self):
        builder = FilterBuilder()
        first = builder.add("status", "equals", "customer")
        second = builder.add("email", "is_not_empty")
        assert first["id"] != second["id"]
        assert len(builder) == 2

    def test_remove_keeps_order(self):
        builder = FilterBuilder()
        rows = [builder.add(f"field_{i}") for i in range(4)]
        builder.remove(rows[1]["id"])
        remaining = builder.filters
        assert len(remaining) == 3
        assert [row["field"] for row in remaining] == ["field_0", "field_2", "field_3"]

    def test_remove_unknown_id(self):
        builder = FilterBuilder()
        builder.add("status")
        with pytest.raises(KeyError):
            builder.remove("missing")
        assert len(builder) == 1

    def test_update_by_id(self):
        builder = FilterBuilder()
        row = builder.add("status", "equals", "lead")
        updated = builder.update(row["id"], value="customer")
        assert updated["value"] == "customer"
        assert builder.filters[0]["value"] == "customer"

    def test_update_to_unary_operator_clears_value(self):
        builder = FilterBuilder()
        row = builder.add("phone", "equals", "555")
        builder.update(row["id"], operator="is_empty")
        assert builder.filters[0]["value"] == ""

    def test_update_cannot_change_id(self):
        builder = FilterBuilder()
        row = builder.add("status")
        builder.update(row["id"], id="hijacked", field="tier")
        assert builder.filters[0]["id"] == row["id"]

    def test_filters_are_copies(self):
        builder = FilterBuilder([{"id": "f1", "field": "a", "operator": "equals", "value": "1"}])
        builder.filters[0]["field"] = "changed"
        assert builder.filters[0]["field"] == "a"

    def test_rows_without_id_get_one(self):
        config = {
            "triggerType": "manual",
            "filters": [
                {"field": "status", "operator": "equals", "value": "lead"},
                {"id": "f2", "field": "email", "operator": "is_not_empty", "value": ""},
            ],
        }
        parse_step_config("trigger", config)
        builder = registry.get("trigger").editor.filter_builder(config)
        assert all(row["id"] for row in builder.filters)

        builder.remove("f2")
        assert [row["field"] for row in builder.filters] == ["status"]
        generated = builder.filters[0]["id"]
        assert builder.update(generated, value="customer")["value"] == "customer"

    def test_describe_and_joined(self):
        builder = FilterBuilder()
        builder.add("status", "equals", "customer")
        builder.add("", "equals", "ignored")
        builder.add("email", "is_not_empty")
        assert builder.describe() == 'Where status equals "customer"\nAnd email is not empty'


def test_describe_rule():
    assert describe_rule("score", "greater_than", 50) == 'score is greater than "50"'
    assert describe_rule("vip", "is_true", "ignored") == "vip is true"
