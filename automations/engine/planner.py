"""Dry-run path planning over a step graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import cast

from ..schemas.steps import ConditionConfig, TriggerConfig, parse_step_config
from .context import ExecutionContext
from .evaluator import evaluate_condition, evaluate_filters
from .graph import StepGraph

logger = logging.getLogger(__name__)


@dataclass
class PlannedStep:
    step_id: str
    step_type: str
    name: str
    path: str | None = None


@dataclass
class PathPlan:
    enrolled: bool
    steps: list[PlannedStep] = field(default_factory=list)

    @property
    def step_ids(self) -> list[str]:
        return [planned.step_id for planned in self.steps]


def plan_path(graph: StepGraph, trigger_data: dict | None = None) -> PathPlan:
    """Walk the graph for the given trigger data without executing any action.

    The trigger's filters decide enrollment; condition steps pick their yes/no
    branch by evaluating the rule, every other step follows ``next``.  Error
    paths are never taken since nothing fails in a dry run.
    """
    trigger = graph.trigger
    if trigger is None:
        raise ValueError("Workflow has no trigger step")

    ctx = ExecutionContext(trigger_data)
    trigger_config = cast(TriggerConfig, parse_step_config("trigger", trigger.config))
    if not evaluate_filters(trigger_config.filters, ctx):
        logger.debug("Trigger filters did not match, not enrolling")
        return PathPlan(enrolled=False)

    plan = PathPlan(enrolled=True)
    visited: set[str] = set()
    current = trigger
    while current:
        if current.id in visited:
            raise RuntimeError(f"Cycle detected at step {current.id}")
        visited.add(current.id)

        path = "next"
        if current.type == "condition":
            config = cast(ConditionConfig, parse_step_config("condition", current.config))
            matched = config.rule is not None and evaluate_condition(config.rule, ctx)
            path = "yes" if matched else "no"

        plan.steps.append(PlannedStep(current.id, current.type, current.name, path))
        current = graph.successor(current, path)

    return plan
