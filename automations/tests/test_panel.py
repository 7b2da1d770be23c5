"""Tests for the step config panel."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from automations.api.client import Credential, StepValidation
from automations.schemas.steps import Step, StepConfigError
from automations.steps.panel import StepPanel


def _panel(step: Step):
    on_change = MagicMock()
    on_delete = MagicMock()
    return StepPanel(step, on_change=on_change, on_delete=on_delete), on_change, on_delete


class TestEditing:
    def test_set_field_emits_config(self):
        panel, on_change, _ = _panel(Step(type="action", config={"actionType": "add_tag"}))
        config = panel.set_field("tagName", "vip")
        assert config == {"actionType": "add_tag", "tagName": "vip"}
        assert panel.step.config == config
        on_change.assert_called_once_with({"config": config})
        assert panel.preview == 'Add Tag "vip"'

    def test_invalid_change_rejected(self):
        step = Step(type="delay", config={"delayValue": 2, "delayUnit": "days"})
        panel, on_change, _ = _panel(step)
        with pytest.raises(StepConfigError):
            panel.set_field("delayUnit", "fortnights")
        assert step.config == {"delayValue": 2, "delayUnit": "days"}
        assert panel.draft.values["delayUnit"] == "days"
        on_change.assert_not_called()

    def test_cleared_numeric_fields_stay_editable(self):
        panel, on_change, _ = _panel(Step(type="delay", config={"delayValue": 2, "delayUnit": "days"}))
        assert panel.set_field("delayValue", "")["delayValue"] == 1
        assert panel.set_field("delayUnit", "hours")["delayUnit"] == "hours"

        panel, _, _ = _panel(Step(type="action", config={"actionType": "create_task", "taskDueInDays": 5}))
        assert panel.set_field("taskDueInDays", "")["taskDueInDays"] == 0

    def test_rename(self):
        panel, on_change, _ = _panel(Step(type="delay"))
        panel.rename("Cool off")
        assert panel.step.name == "Cool off"
        on_change.assert_called_once_with({"name": "Cool off"})

    def test_change_type_resets_config(self):
        panel, on_change, _ = _panel(Step(type="delay", config={"delayValue": 3, "delayUnit": "days"}))
        update = panel.change_type("condition")
        assert update["type"] == "condition"
        assert update["config"] == {"conditions": [{"field": "", "operator": "equals", "value": ""}]}
        assert update["name"] == "If/Else"
        assert panel.paths == ("yes", "no")
        on_change.assert_called_once_with(update)

    def test_change_type_keeps_custom_name(self):
        panel, _, _ = _panel(Step(type="delay", name="Cool off"))
        update = panel.change_type("action")
        assert "name" not in update
        assert panel.step.name == "Cool off"

    def test_unknown_type_still_editable(self):
        panel, on_change, _ = _panel(Step(type="mystery", config={"a": 1}))
        assert panel.info.label == "Unknown Step"
        panel.set_field("b", 2)
        on_change.assert_called_once_with({"config": {"a": 1, "b": 2}})


class TestDelete:
    def test_two_click_delete(self):
        step = Step(type="delay")
        panel, _, on_delete = _panel(step)
        assert panel.request_delete() is False
        assert panel.confirming_delete
        on_delete.assert_not_called()
        assert panel.request_delete() is True
        on_delete.assert_called_once_with(step.id)

    def test_cancel_delete(self):
        panel, _, on_delete = _panel(Step(type="delay"))
        panel.request_delete()
        panel.cancel_delete()
        assert panel.request_delete() is False
        on_delete.assert_not_called()


class TestRemote:
    @pytest.mark.asyncio
    async def test_refresh_validation(self):
        client = MagicMock()
        client.get_step_validation = AsyncMock(return_value=StepValidation(canOpenConfig=False, reason="x"))
        panel, _, _ = _panel(Step(type="delay"))
        result = await panel.refresh_validation(client, "wf1")
        assert result.can_open_config is False

    @pytest.mark.asyncio
    async def test_validation_failure_leaves_panel_usable(self):
        client = MagicMock()
        client.get_step_validation = AsyncMock(side_effect=httpx.ConnectError("down"))
        panel, on_change, _ = _panel(Step(type="delay", config={"delayValue": 1, "delayUnit": "days"}))
        assert await panel.refresh_validation(client, "wf1") is None
        panel.set_field("delayValue", 4)
        on_change.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_account_writes_credential(self, popup_factory):
        popup, opener = popup_factory(close_after_polls=1)
        client = MagicMock()
        client.list_credentials = AsyncMock(side_effect=[
            [],
            [Credential(_id="cred_new", createdAt=datetime(2024, 1, 15, tzinfo=timezone.utc))],
        ])
        client.get_oauth_authorize_url = AsyncMock(return_value="https://slack.com/oauth")
        step = Step(type="integration_slack", config={"action": "post_message"})
        panel, on_change, _ = _panel(step)
        assert panel.editor.phase(step.config) == "connect"

        result = await panel.connect_account(client, opener, poll_interval=0.01)

        assert result.connected
        assert step.config["credentialId"] == "cred_new"
        assert panel.editor.phase(step.config) == "configure"
        on_change.assert_called_once_with({"config": step.config})

    def test_connect_account_requires_integration(self):
        panel, _, _ = _panel(Step(type="delay"))
        with pytest.raises(TypeError):
            panel.field_selects(MagicMock(), "wf1")

    @pytest.mark.asyncio
    async def test_field_selects_follow_config(self):
        client = MagicMock()
        client.fetch_field_options = AsyncMock(return_value=[])
        step = Step(
            type="integration_google_sheets",
            config={"action": "read", "credentialId": "c1", "spreadsheetId": "sheet1"},
        )
        panel, _, _ = _panel(step)
        selects = panel.field_selects(client, "wf1")
        assert set(selects) == {"spreadsheetId", "worksheetId"}
        assert selects["worksheetId"].parent_required

        await panel.load_field_options(selects)
        assert client.fetch_field_options.await_count == 2
        parents = sorted(str(call[1]["parent_value"]) for call in client.fetch_field_options.call_args_list)
        assert parents == ["None", "sheet1"]
