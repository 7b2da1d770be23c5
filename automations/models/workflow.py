"""Workflow and WorkflowStep models."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin


def _step_fk():
    return mapped_column(
        Uuid, ForeignKey("workflow_step.id", ondelete="SET NULL", use_alter=True), default=None
    )


class Workflow(Base, UUIDMixin, TimestampMixin):
    """An automation: a trigger followed by a graph of steps."""

    __tablename__ = "workflow"

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft/active/paused
    workspace_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)

    steps: Mapped[list[WorkflowStep]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.position",
    )

    def __repr__(self) -> str:
        return f"<Workflow {self.name!r} ({self.status})>"


class WorkflowStep(Base, UUIDMixin, TimestampMixin):
    """One node of a workflow graph; ``config`` holds the type's wire config."""

    __tablename__ = "workflow_step"

    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow.id", ondelete="CASCADE"), index=True
    )
    step_type: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200), default="")
    config: Mapped[dict[str, Any]] = mapped_column(default=dict)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # Canvas position for visual editor
    canvas_x: Mapped[float] = mapped_column(Float, default=300.0)
    canvas_y: Mapped[float] = mapped_column(Float, default=100.0)

    # Outgoing edges, one column per semantic path
    next_step_id: Mapped[uuid.UUID | None] = _step_fk()
    yes_step_id: Mapped[uuid.UUID | None] = _step_fk()
    no_step_id: Mapped[uuid.UUID | None] = _step_fk()
    error_step_id: Mapped[uuid.UUID | None] = _step_fk()

    workflow: Mapped[Workflow] = relationship(back_populates="steps")

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.step_type} {self.name!r} pos={self.position}>"
