"""Automations CLI - inspect, validate and push workflow step graphs."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.client import ApiConfig, AutomationsClient
from .config import settings
from .engine.graph import StepGraph, semantic_paths
from .engine.planner import plan_path
from .schemas.steps import Step
from .steps.registry import registry

app = typer.Typer(
    name="automations",
    help="Workflow step tools - step types, validation, dry runs and publishing",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_steps(path: Path) -> list[Step]:
    """Read a workflow file: a list of steps or an object with a ``steps`` key."""
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(1)

    raw_steps = data.get("steps", []) if isinstance(data, dict) else data
    try:
        return [Step.model_validate(raw) for raw in raw_steps]
    except ValidationError as e:
        console.print(f"[red]Invalid step in {path}:[/red]\n{e}")
        raise typer.Exit(1)


def _print_issues(graph: StepGraph) -> bool:
    issues = graph.validate()
    if not issues:
        console.print(f"[green]Valid: {len(graph.nodes)} steps[/green]")
        return True

    table = Table(title=f"{len(issues)} issue(s)")
    table.add_column("Step", style="cyan")
    table.add_column("Problem", style="red")
    for issue in issues:
        table.add_row(issue.step_id or "-", issue.message)
    console.print(table)
    return False


@app.command("step-types")
def step_types():
    """List the known step types."""
    table = Table(title="Step Types")
    table.add_column("Type", style="cyan")
    table.add_column("Label", style="green")
    table.add_column("Category")
    table.add_column("Paths", style="dim")
    table.add_column("Description", style="dim")
    for info in registry:
        table.add_row(
            info.step_type,
            info.label,
            info.category,
            ", ".join(semantic_paths(info.step_type)),
            info.description,
        )
    console.print(table)


@app.command("validate")
def validate(file: Path = typer.Argument(..., help="Workflow JSON file")):
    """Check a workflow graph and every step config."""
    graph = StepGraph.from_steps(_load_steps(file))
    if not _print_issues(graph):
        raise typer.Exit(1)


@app.command("plan")
def plan(
    file: Path = typer.Argument(..., help="Workflow JSON file"),
    data: str = typer.Option("{}", "--data", "-d", help="Trigger data as JSON"),
):
    """Dry-run the path a trigger event would take."""
    try:
        trigger_data = json.loads(data)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --data JSON: {e}[/red]")
        raise typer.Exit(1)

    graph = StepGraph.from_steps(_load_steps(file))
    try:
        result = plan_path(graph, trigger_data)
    except (ValueError, RuntimeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not result.enrolled:
        console.print("[yellow]Trigger filters did not match - not enrolled[/yellow]")
        return

    table = Table(title="Planned Path")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Type")
    table.add_column("Path", style="green")
    for i, planned in enumerate(result.steps, 1):
        table.add_row(str(i), planned.name, planned.step_type, planned.path or "")
    console.print(table)


@app.command("push")
def push(
    file: Path = typer.Argument(..., help="Workflow JSON file"),
    workflow_id: str = typer.Option(..., "--workflow-id", "-w", help="Remote workflow ID"),
    workspace_id: str = typer.Option(None, "--workspace-id", help="Overrides AUTOMATIONS_WORKSPACE_ID"),
):
    """Validate a workflow file and replace the remote workflow's steps."""
    steps = _load_steps(file)
    if not _print_issues(StepGraph.from_steps(steps)):
        raise typer.Exit(1)

    config = ApiConfig.from_settings()
    if workspace_id:
        config.workspace_id = workspace_id

    async def _push():
        async with AutomationsClient(config) as client:
            return await client.update_workflow_steps(workflow_id, [s.to_wire() for s in steps])

    try:
        asyncio.run(_push())
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Push failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold green]Pushed {len(steps)} steps[/bold green]\n\nWorkflow: {workflow_id}",
            title="Published",
        )
    )


if __name__ == "__main__":
    app()
