"""Step type registry: display metadata and the config editor for each type."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..schemas.steps import STEP_TYPES
from .editors import (
    ACTION_LABELS,
    TRANSFORM_LABELS,
    ActionEditor,
    AIAgentEditor,
    ConditionEditor,
    DelayEditor,
    HttpRequestEditor,
    LoopEditor,
    MergeEditor,
    ParallelEditor,
    StepEditor,
    TransformEditor,
    TriggerEditor,
    TryCatchEditor,
    integration_editors,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepTypeInfo:
    step_type: str
    label: str
    icon: str
    gradient: str
    category: str
    description: str = ""
    editor: StepEditor = field(default_factory=StepEditor, compare=False)

    @property
    def known(self) -> bool:
        return self.step_type in STEP_TYPES


UNKNOWN_STEP = StepTypeInfo(
    step_type="unknown",
    label="Unknown Step",
    icon="help-circle",
    gradient="from-gray-400 to-gray-500",
    category="other",
    description="A step type this client does not recognise",
)


class StepTypeRegistry:
    """Lookup of step type -> ``StepTypeInfo``.  ``get`` never fails."""

    def __init__(self, entries: list[StepTypeInfo] | None = None):
        self._entries: dict[str, StepTypeInfo] = {}
        for entry in entries or []:
            self.register(entry)

    def register(self, entry: StepTypeInfo) -> None:
        self._entries[entry.step_type] = entry

    def get(self, step_type: str) -> StepTypeInfo:
        entry = self._entries.get(step_type)
        if entry is None:
            logger.warning("Unknown step type %r, using pass-through editor", step_type)
            return UNKNOWN_STEP
        return entry

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def by_category(self) -> dict[str, list[StepTypeInfo]]:
        grouped: dict[str, list[StepTypeInfo]] = {}
        for entry in self._entries.values():
            grouped.setdefault(entry.category, []).append(entry)
        return grouped


def _build_default_registry() -> StepTypeRegistry:
    integrations = integration_editors()
    return StepTypeRegistry([
        StepTypeInfo("trigger", "Trigger", "zap", "from-amber-400 to-orange-500", "trigger",
                     "Starts the workflow when an event happens", TriggerEditor()),
        StepTypeInfo("action", "Action", "play", "from-blue-500 to-indigo-600", "action",
                     "Sends an email, updates a field, creates a task...", ActionEditor()),
        StepTypeInfo("delay", "Delay", "clock", "from-slate-400 to-slate-600", "flow",
                     "Waits for a duration or until a point in time", DelayEditor()),
        StepTypeInfo("condition", "Condition", "git-branch", "from-yellow-400 to-amber-500", "flow",
                     "Branches into yes and no paths", ConditionEditor()),
        StepTypeInfo("parallel", "Parallel", "git-fork", "from-cyan-400 to-sky-600", "flow",
                     "Runs several branches at the same time", ParallelEditor()),
        StepTypeInfo("merge", "Merge", "git-merge", "from-cyan-500 to-teal-600", "flow",
                     "Joins parallel branches back together", MergeEditor()),
        StepTypeInfo("try_catch", "Try / Catch", "shield", "from-rose-400 to-red-600", "flow",
                     "Retries and routes failures to an error path", TryCatchEditor()),
        StepTypeInfo("loop", "Loop", "repeat", "from-violet-400 to-purple-600", "flow",
                     "Repeats the following steps for each item", LoopEditor()),
        StepTypeInfo("ai_agent", "AI Agent", "sparkles", "from-fuchsia-500 to-pink-600", "ai",
                     "Lets an agent complete a task with the workflow's data", AIAgentEditor()),
        StepTypeInfo("http_request", "HTTP Request", "globe", "from-emerald-400 to-green-600",
                     "data", "Calls an external HTTP endpoint", HttpRequestEditor()),
        StepTypeInfo("integration_slack", "Slack", "slack", "from-purple-500 to-fuchsia-600",
                     "integration", "Posts messages and manages channels",
                     integrations["integration_slack"]),
        StepTypeInfo("integration_google_sheets", "Google Sheets", "sheet",
                     "from-green-500 to-emerald-600", "integration",
                     "Reads and writes spreadsheet rows",
                     integrations["integration_google_sheets"]),
        StepTypeInfo("integration_notion", "Notion", "book-open", "from-zinc-600 to-zinc-800",
                     "integration", "Creates and queries pages and databases",
                     integrations["integration_notion"]),
        StepTypeInfo("transform", "Transform", "shuffle", "from-orange-400 to-amber-600", "data",
                     "Sets, maps or filters workflow variables", TransformEditor()),
    ])


registry = _build_default_registry()


def default_name(step_type: str, config: dict[str, Any] | None = None) -> str:
    """Generate a default name for a step."""
    config = config or {}
    if step_type == "condition":
        return "If/Else"
    if step_type == "delay":
        return "Wait"
    if step_type == "action" and config.get("actionType") in ACTION_LABELS:
        return ACTION_LABELS[config["actionType"]]
    if step_type == "transform" and config.get("actionType") in TRANSFORM_LABELS:
        return TRANSFORM_LABELS[config["actionType"]]
    if step_type in registry:
        return registry.get(step_type).label
    return step_type.replace("_", " ").title()
