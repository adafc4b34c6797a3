from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import configure_logging, settings
from .engine.control import ExecutionContext
from .engine.errors import CostnerError
from .engine.project import load_project, project_to_graph
from .engine.runner import RunOutcome, run_project
from .engine.validator import validate_project
from .nodes.registry import NodeRegistry

app = typer.Typer(no_args_is_help=True, help="Costner CLI: graph-based API testing")


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, help="Logging level.")):
    configure_logging(log_level)


@app.command()
def run(file: Path,
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Show node outputs."),
        node: Optional[str] = typer.Option(None, help="Run only this node and its dependencies."),
        timeout: Optional[float] = typer.Option(settings.run_timeout, help="Overall run deadline in seconds."),
    ):
    """Execute a project file."""
    try:
        project = load_project(file)
        if verbose:
            rprint(Panel.fit(
                f"[bold]{escape(project.name)}[/]\n{escape(project.description)}\n"
                f"Nodes: {len(project.nodes)}, Connections: {len(project.connections)}"
            ))
        outcome = run_project(project, node_id=node, context=ExecutionContext(timeout=timeout))
    except CostnerError as e:
        rprint(f"[bold red]Error:[/] {escape(str(e))}")
        raise typer.Exit(code=1)

    _display_results(outcome, verbose)
    if not outcome.ok:
        rprint(f"[bold red]Error:[/] {escape(outcome.error or '')}")
        raise typer.Exit(code=1)


@app.command()
def validate(file: Path):
    """Validate a project file (node types, connections, cycles, required inputs)."""
    try:
        project = load_project(file)
    except CostnerError as e:
        rprint(f"[bold red]Error:[/] {escape(str(e))}")
        raise typer.Exit(code=1)

    errors = validate_project(project)
    if errors:
        table = Table(title="Validation Report", show_lines=True)
        table.add_column("Status", justify="center", style="bold")
        table.add_column("Message")
        for message in errors:
            table.add_row("ERR", escape(message))
        rprint(table)
        raise typer.Exit(code=1)

    order = project_to_graph(project).get_topological_order()
    rprint(Panel.fit(
        f"Project [bold]{escape(project.name)}[/] is valid\n"
        f"- {len(project.nodes)} nodes\n"
        f"- {len(project.connections)} connections\n"
        f"Execution order: {' -> '.join(order) or '(empty)'}"
    ))


@app.command("list-nodes")
def list_nodes():
    """List available node types."""
    table = Table(title="Available node types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Inputs")
    table.add_column("Outputs")
    for node_type, defn in NodeRegistry.all_definitions().items():
        inputs = ", ".join(
            f"{p.name}{'*' if p.required else ''}" for p in defn.inputs
        )
        outputs = ", ".join(p.name for p in defn.outputs)
        table.add_row(node_type, defn.display_name, inputs, outputs)
    rprint(table)


def _display_results(outcome: RunOutcome, verbose: bool):
    table = Table(title="Execution Results", show_lines=verbose)
    table.add_column("Status", justify="center", style="bold")
    table.add_column("Node")
    table.add_column("Duration", justify="right")
    table.add_column("Details")
    for result in outcome.results:
        status = "[green]OK[/]" if result.success else "[red]FAIL[/]"
        if not result.success:
            details = result.error or ""
        elif verbose:
            details = "\n".join(f"{k}: {v}" for k, v in (result.outputs or {}).items())
        else:
            details = ""
        table.add_row(
            status, escape(result.node_id),
            f"{result.duration * 1000:.1f} ms", escape(details),
        )
    rprint(table)
    rprint(f"Summary: {outcome.succeeded}/{len(outcome.results)} nodes executed successfully")


if __name__ == "__main__":
    app()
