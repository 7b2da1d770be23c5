"""Local workflow store models."""

from .base import Base
from .workflow import Workflow, WorkflowStep

__all__ = ["Base", "Workflow", "WorkflowStep"]
