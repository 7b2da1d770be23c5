"""Workflow CRUD and activation."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..engine.graph import GraphIssue, StepGraph
from ..models.workflow import Workflow, WorkflowStep
from ..schemas.steps import Step, StepBranches, StepPosition

logger = logging.getLogger(__name__)


class WorkflowValidationError(ValueError):
    """Workflow graph can't be activated."""

    def __init__(self, issues: list[GraphIssue]):
        self.issues = issues
        super().__init__("Workflow is not valid: " + "; ".join(str(issue) for issue in issues))


async def list_workflows(db: AsyncSession, workspace_id: str | None = None) -> list[Workflow]:
    stmt = select(Workflow).options(selectinload(Workflow.steps)).order_by(Workflow.updated_at.desc())
    if workspace_id:
        stmt = stmt.where(Workflow.workspace_id == workspace_id)
    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def get_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow | None:
    stmt = (
        select(Workflow)
        .where(Workflow.id == workflow_id)
        .options(selectinload(Workflow.steps))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_workflow(
    db: AsyncSession,
    name: str,
    description: str | None = None,
    workspace_id: str | None = None,
) -> Workflow:
    workflow = Workflow(name=name, description=description, workspace_id=workspace_id)
    db.add(workflow)
    await db.commit()
    await db.refresh(workflow)
    return workflow


async def update_workflow(
    db: AsyncSession, workflow_id: uuid.UUID, **kwargs
) -> Workflow | None:
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None
    for key, value in kwargs.items():
        if hasattr(workflow, key):
            setattr(workflow, key, value)
    await db.commit()
    await db.refresh(workflow)
    return workflow


async def delete_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> bool:
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return False
    await db.delete(workflow)
    await db.commit()
    return True


async def activate_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow | None:
    """Validate the step graph and mark the workflow active.

    Raises:
        WorkflowValidationError: listing every issue that blocks activation.
    """
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None
    issues = StepGraph.from_models(workflow.steps).validate()
    if issues:
        logger.info("Workflow %s not activated: %d issue(s)", workflow_id, len(issues))
        raise WorkflowValidationError(issues)
    return await update_workflow(db, workflow_id, status="active")


async def pause_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow | None:
    return await update_workflow(db, workflow_id, status="paused")


def step_to_wire(row: WorkflowStep) -> Step:
    branches = None
    if row.yes_step_id or row.no_step_id or row.error_step_id:
        branches = StepBranches(
            yes=str(row.yes_step_id) if row.yes_step_id else None,
            no=str(row.no_step_id) if row.no_step_id else None,
            error=str(row.error_step_id) if row.error_step_id else None,
        )
    return Step(
        id=str(row.id),
        type=row.step_type,
        name=row.name,
        config=dict(row.config or {}),
        position=StepPosition(x=row.canvas_x, y=row.canvas_y),
        next_step_ids=[str(row.next_step_id)] if row.next_step_id else [],
        branches=branches,
    )


def workflow_to_wire(workflow: Workflow) -> list[dict]:
    """The ``steps`` payload the remote API expects."""
    return [step_to_wire(row).to_wire() for row in workflow.steps]
