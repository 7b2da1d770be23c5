"""Workflow step management service."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.graph import semantic_paths
from ..models.workflow import WorkflowStep
from ..schemas.steps import is_known_type, parse_step_config
from ..steps.registry import default_name, registry

logger = logging.getLogger(__name__)

PATH_COLUMNS = {
    "next": "next_step_id",
    "yes": "yes_step_id",
    "no": "no_step_id",
    "error": "error_step_id",
}

# Set through the dedicated functions below so configs stay validated
_PROTECTED = frozenset({"id", "workflow_id", "step_type", "config", *PATH_COLUMNS.values()})


def _checked_config(step_type: str, config: dict) -> dict:
    if is_known_type(step_type):
        parse_step_config(step_type, config)
    else:
        logger.warning("Storing config of unknown step type %r unvalidated", step_type)
    return config


async def list_steps(db: AsyncSession, workflow_id: uuid.UUID) -> list[WorkflowStep]:
    stmt = (
        select(WorkflowStep)
        .where(WorkflowStep.workflow_id == workflow_id)
        .order_by(WorkflowStep.position)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_step(db: AsyncSession, step_id: uuid.UUID) -> WorkflowStep | None:
    stmt = select(WorkflowStep).where(WorkflowStep.id == step_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_step(
    db: AsyncSession,
    workflow_id: uuid.UUID,
    step_type: str,
    config: dict | None = None,
    name: str | None = None,
    position: int | None = None,
    canvas_x: float = 300.0,
    canvas_y: float = 100.0,
) -> WorkflowStep:
    """Add a step; without a config it starts from the editor defaults.

    Raises:
        StepConfigError: when ``config`` fails structural validation.
    """
    if config is None:
        editor = registry.get(step_type).editor
        config = editor.project(editor.defaults())
    config = _checked_config(step_type, config)

    if position is None:
        stmt = select(func.max(WorkflowStep.position)).where(
            WorkflowStep.workflow_id == workflow_id
        )
        result = await db.execute(stmt)
        max_pos = result.scalar()
        position = (max_pos + 1) if max_pos is not None else 0

    step = WorkflowStep(
        workflow_id=workflow_id,
        step_type=step_type,
        config=config,
        name=name or default_name(step_type, config),
        position=position,
        canvas_x=canvas_x,
        canvas_y=canvas_y,
    )
    db.add(step)
    await db.commit()
    await db.refresh(step)
    return step


async def update_step(
    db: AsyncSession, step_id: uuid.UUID, **kwargs
) -> WorkflowStep | None:
    """Update name, position or canvas coordinates."""
    protected = sorted(_PROTECTED.intersection(kwargs))
    if protected:
        raise ValueError(f"Cannot set {', '.join(protected)} with update_step")
    step = await get_step(db, step_id)
    if not step:
        return None
    for key, value in kwargs.items():
        if hasattr(step, key):
            setattr(step, key, value)
    await db.commit()
    await db.refresh(step)
    return step


async def update_step_config(
    db: AsyncSession, step_id: uuid.UUID, changes: dict
) -> WorkflowStep | None:
    """Merge ``changes`` into the step's config and store the active slice.

    Raises:
        StepConfigError: when the resulting config fails structural validation.
    """
    step = await get_step(db, step_id)
    if not step:
        return None
    editor = registry.get(step.step_type).editor
    config = editor.project(editor.apply(dict(step.config or {}), changes))
    step.config = _checked_config(step.step_type, config)
    await db.commit()
    await db.refresh(step)
    return step


async def change_step_type(
    db: AsyncSession, step_id: uuid.UUID, step_type: str
) -> WorkflowStep | None:
    """Switch a step's type; the config restarts from the new type's defaults."""
    step = await get_step(db, step_id)
    if not step:
        return None
    if step.name == default_name(step.step_type, step.config):
        step.name = ""
    editor = registry.get(step_type).editor
    step.step_type = step_type
    step.config = editor.project(editor.defaults())
    step.name = step.name or default_name(step_type, step.config)
    # Paths the new type doesn't have are dropped
    for path, column in PATH_COLUMNS.items():
        if path not in semantic_paths(step_type):
            setattr(step, column, None)
    await db.commit()
    await db.refresh(step)
    return step


async def delete_step(db: AsyncSession, step_id: uuid.UUID) -> bool:
    step = await get_step(db, step_id)
    if not step:
        return False

    columns = [getattr(WorkflowStep, column) for column in PATH_COLUMNS.values()]
    stmt = select(WorkflowStep).where(
        WorkflowStep.workflow_id == step.workflow_id,
        or_(*(column == step_id for column in columns)),
    )
    for source in (await db.execute(stmt)).scalars().all():
        for column in PATH_COLUMNS.values():
            if getattr(source, column) == step_id:
                setattr(source, column, None)

    await db.delete(step)
    await db.commit()
    return True


def _path_column(step: WorkflowStep, path: str) -> str:
    if path not in semantic_paths(step.step_type):
        raise ValueError(f"{step.step_type} steps have no {path!r} path")
    return PATH_COLUMNS[path]


async def connect_steps(
    db: AsyncSession,
    from_step_id: uuid.UUID,
    to_step_id: uuid.UUID,
    path: str = "next",
) -> WorkflowStep | None:
    """Connect two steps along one of the source step's semantic paths."""
    if from_step_id == to_step_id:
        raise ValueError("A step cannot connect to itself")
    step = await get_step(db, from_step_id)
    if not step:
        return None
    setattr(step, _path_column(step, path), to_step_id)
    await db.commit()
    await db.refresh(step)
    return step


async def disconnect_steps(
    db: AsyncSession,
    from_step_id: uuid.UUID,
    path: str = "next",
) -> WorkflowStep | None:
    """Remove a connection from a step."""
    step = await get_step(db, from_step_id)
    if not step:
        return None
    setattr(step, _path_column(step, path), None)
    await db.commit()
    await db.refresh(step)
    return step
