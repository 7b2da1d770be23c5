"""Step graph contract - the shape an engine needs before it can run a workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from ..schemas.steps import Step, config_issues

# Outgoing semantic paths per step type. A condition always fans out to
# exactly yes/no, however many edges are currently wired.
_PATHS: dict[str, tuple[str, ...]] = {
    "condition": ("yes", "no"),
    "try_catch": ("next", "error"),
}
_DEFAULT_PATHS = ("next",)


def semantic_paths(step_type: str) -> tuple[str, ...]:
    return _PATHS.get(step_type, _DEFAULT_PATHS)


@dataclass
class StepNode:
    id: str
    type: str
    name: str
    config: dict[str, Any] = field(default_factory=dict)
    edges: dict[str, str] = field(default_factory=dict)
    # Extra targets a parallel step runs side by side with ``next``
    fanout: list[str] = field(default_factory=list)


@dataclass
class GraphIssue:
    step_id: str | None
    message: str

    def __str__(self) -> str:
        return f"[{self.step_id}] {self.message}" if self.step_id else self.message


class StepGraph:
    """Ordered step nodes plus their outgoing edges."""

    def __init__(self, nodes: Iterable[StepNode]):
        self.nodes: list[StepNode] = list(nodes)
        self._by_id = {node.id: node for node in self.nodes}

    @classmethod
    def from_steps(cls, steps: Iterable[Step]) -> StepGraph:
        nodes = []
        for step in steps:
            edges: dict[str, str] = {}
            fanout = list(step.next_step_ids[1:])
            if step.next_step_ids:
                edges["next"] = step.next_step_ids[0]
            if step.branches:
                branches = step.branches
                if branches.success:
                    edges.setdefault("next", branches.success)
                for path in ("yes", "no", "error", "timeout"):
                    target = getattr(branches, path)
                    if target:
                        edges[path] = target
                for target in branches.parallel or []:
                    if target != edges.get("next") and target not in fanout:
                        fanout.append(target)
            nodes.append(StepNode(step.id, step.type, step.name, dict(step.config), edges, fanout))
        return cls(nodes)

    @classmethod
    def from_models(cls, steps: Iterable[Any]) -> StepGraph:
        """Build from persisted ``WorkflowStep`` rows (ordered by position)."""
        nodes = []
        for row in steps:
            edges = {
                path: str(target)
                for path, target in (
                    ("next", row.next_step_id),
                    ("yes", row.yes_step_id),
                    ("no", row.no_step_id),
                    ("error", row.error_step_id),
                )
                if target is not None
            }
            nodes.append(StepNode(str(row.id), row.step_type, row.name, dict(row.config or {}), edges))
        return cls(nodes)

    def get(self, step_id: str) -> StepNode | None:
        return self._by_id.get(step_id)

    @property
    def trigger(self) -> StepNode | None:
        return next((node for node in self.nodes if node.type == "trigger"), None)

    def successor(self, node: StepNode, path: str = "next") -> StepNode | None:
        target = node.edges.get(path)
        return self._by_id.get(target) if target else None

    def validate(self) -> list[GraphIssue]:
        """Everything that keeps this graph from being activated."""
        issues: list[GraphIssue] = []
        triggers = [node for node in self.nodes if node.type == "trigger"]
        if not triggers:
            issues.append(GraphIssue(None, "workflow has no trigger step"))
        elif len(triggers) > 1:
            issues.append(GraphIssue(None, "workflow has more than one trigger step"))

        for node in self.nodes:
            allowed = semantic_paths(node.type)
            for path, target in node.edges.items():
                if path not in allowed:
                    issues.append(
                        GraphIssue(node.id, f"{node.type} step cannot use the {path!r} path")
                    )
                if target not in self._by_id:
                    issues.append(GraphIssue(node.id, f"{path} edge points to unknown step {target}"))
                elif self._by_id[target].type == "trigger":
                    issues.append(GraphIssue(node.id, f"{path} edge points back to the trigger"))
            if node.fanout and node.type != "parallel":
                issues.append(GraphIssue(node.id, f"{node.type} step cannot fan out to several steps"))
            for target in node.fanout:
                if target not in self._by_id:
                    issues.append(GraphIssue(node.id, f"parallel edge points to unknown step {target}"))
            for message in config_issues(node.type, node.config):
                issues.append(GraphIssue(node.id, message))

        issues.extend(self._cycle_issues())
        return issues

    def _cycle_issues(self) -> list[GraphIssue]:
        visiting: set[str] = set()
        done: set[str] = set()
        issues: list[GraphIssue] = []

        def visit(node: StepNode) -> None:
            visiting.add(node.id)
            for target in [*node.edges.values(), *node.fanout]:
                child = self._by_id.get(target)
                if child is None or child.id in done:
                    continue
                if child.id in visiting:
                    issues.append(GraphIssue(node.id, f"cycle detected at step {child.id}"))
                    continue
                visit(child)
            visiting.discard(node.id)
            done.add(node.id)

        for node in self.nodes:
            if node.id not in done:
                visit(node)
        return issues
