"""Tests for workflow CRUD and activation."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from automations.services import step_svc, workflow_svc
from automations.services.workflow_svc import WorkflowValidationError


async def _build(db: AsyncSession, tag_name: str | None = "vip"):
    wf = await workflow_svc.create_workflow(db, name="Onboarding", workspace_id="ws1")
    trigger = await step_svc.create_step(db, wf.id, "trigger")
    action_config = {"actionType": "add_tag"}
    if tag_name:
        action_config["tagName"] = tag_name
    action = await step_svc.create_step(db, wf.id, "action", config=action_config)
    await step_svc.connect_steps(db, trigger.id, action.id)
    return wf, trigger, action


@pytest.mark.asyncio
async def test_create_and_list(db: AsyncSession):
    await workflow_svc.create_workflow(db, name="A", workspace_id="ws1")
    await workflow_svc.create_workflow(db, name="B", workspace_id="ws2")
    assert len(await workflow_svc.list_workflows(db)) == 2
    assert [w.name for w in await workflow_svc.list_workflows(db, "ws1")] == ["A"]


@pytest.mark.asyncio
async def test_activate_valid_workflow(db: AsyncSession):
    wf, _, _ = await _build(db)
    activated = await workflow_svc.activate_workflow(db, wf.id)
    assert activated.status == "active"


@pytest.mark.asyncio
async def test_activate_rejects_incomplete_step(db: AsyncSession):
    wf, _, action = await _build(db, tag_name=None)
    with pytest.raises(WorkflowValidationError) as exc:
        await workflow_svc.activate_workflow(db, wf.id)
    assert [issue.step_id for issue in exc.value.issues] == [str(action.id)]
    assert "missing tagName" in str(exc.value)
    assert (await workflow_svc.get_workflow(db, wf.id)).status == "draft"


@pytest.mark.asyncio
async def test_activate_requires_trigger(db: AsyncSession):
    wf = await workflow_svc.create_workflow(db, name="No trigger")
    await step_svc.create_step(db, wf.id, "action", config={"actionType": "add_tag", "tagName": "x"})
    with pytest.raises(WorkflowValidationError):
        await workflow_svc.activate_workflow(db, wf.id)


@pytest.mark.asyncio
async def test_pause_and_delete(db: AsyncSession):
    wf, _, _ = await _build(db)
    assert (await workflow_svc.pause_workflow(db, wf.id)).status == "paused"
    assert await workflow_svc.delete_workflow(db, wf.id) is True
    assert await workflow_svc.get_workflow(db, wf.id) is None


@pytest.mark.asyncio
async def test_workflow_to_wire(db: AsyncSession):
    wf, trigger, action = await _build(db)
    wf = await workflow_svc.get_workflow(db, wf.id)
    steps = workflow_svc.workflow_to_wire(wf)
    assert steps[0]["type"] == "trigger"
    assert steps[0]["nextStepIds"] == [str(action.id)]
    assert steps[0]["position"] == {"x": 300.0, "y": 100.0}
    assert steps[1]["config"] == {"actionType": "add_tag", "tagName": "vip"}
    assert "branches" not in steps[1]
