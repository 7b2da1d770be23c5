"""Tests for the step type registry."""

from __future__ import annotations

from automations.schemas.steps import STEP_TYPES, parse_step_config
from automations.steps.editors import IntegrationEditor, StepEditor
from automations.steps.registry import UNKNOWN_STEP, default_name, registry


def test_every_known_type_has_metadata_and_editor():
    for step_type in STEP_TYPES:
        info = registry.get(step_type)
        assert info.step_type == step_type
        assert info.label and info.icon and info.gradient and info.category
        assert isinstance(info.editor, StepEditor)
        assert info.known


def test_editor_defaults_are_valid_configs():
    for step_type in STEP_TYPES:
        editor = registry.get(step_type).editor
        parse_step_config(step_type, editor.project(editor.defaults()))


def test_unknown_type_falls_back(caplog):
    info = registry.get("quantum_step")
    assert info is UNKNOWN_STEP
    assert info.label == "Unknown Step"
    assert not info.known
    assert info.editor.project({"a": 1, "b": None}) == {"a": 1}
    assert "quantum_step" in caplog.text


def test_integration_types_use_integration_editor():
    editor = registry.get("integration_google_sheets").editor
    assert isinstance(editor, IntegrationEditor)
    assert editor.integration.integration_type == "google_sheets"


def test_by_category_covers_all_types():
    grouped = registry.by_category()
    assert sum(len(entries) for entries in grouped.values()) == len(STEP_TYPES)
    assert {info.step_type for info in grouped["integration"]} == {
        "integration_slack",
        "integration_google_sheets",
        "integration_notion",
    }


def test_default_name():
    assert default_name("delay") == "Wait"
    assert default_name("condition") == "If/Else"
    assert default_name("action", {"actionType": "send_sms"}) == "Send SMS"
    assert default_name("action") == "Action"
    assert default_name("transform", {"actionType": "transform_map"}) == "Map Data"
    assert default_name("http_request") == "HTTP Request"
