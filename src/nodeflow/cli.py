from pathlib import Path
import typer
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typing import List, Optional

from .errors import NodeflowError
from .generator import generate_graph_from_task, list_templates, save_graph_yaml
from .logging import configure_logging
from .registry import default_registry
from .validator import validate_graph_from_file
from .visualize import ascii_plan_from_file

app = typer.Typer(no_args_is_help=True, help="nodeflow CLI: build and run typed node graphs")


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Log level: DEBUG, INFO, WARNING, ERROR. Defaults to NODEFLOW_LOG_LEVEL.")):
    configure_logging(level=log_level)


@app.command()
def types():
    """List registered node types by category."""
    registry = default_registry()
    table = Table(title="Node Types")
    table.add_column("Category", style="bold")
    table.add_column("Types")
    for category in registry.list_categories():
        table.add_row(category, ", ".join(registry.list_types_by_category(category)))
    rprint(table)


@app.command()
def generate(task: str = typer.Option(..., help=f"Template to use: {' | '.join(list_templates())}"),
             name: str = typer.Option("flow", help="Output filename (without .yaml)"),
             outdir: Path = typer.Option(Path("flows"), help="Where to place the YAML"),
    ):
    """Generate a flow YAML from a starter template."""
    try:
        graph = generate_graph_from_task(task)
    except ValueError as e:
        rprint(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    outdir.mkdir(exist_ok=True, parents=True)
    outfile = outdir / f"{name}.yaml"
    save_graph_yaml(graph, outfile)
    rprint(Panel.fit(f"Saved template [bold]{task}[/] to [cyan]{outfile}[/]"))


@app.command()
def validate(file: Path):
    """Validate a flow YAML (references, sockets, fan-in, cycles)."""
    try:
        ok, messages = validate_graph_from_file(file)
    except NodeflowError as e:
        ok, messages = False, [f"ERR: {e}"]
    table = Table(title="Validation Report", show_lines=True)
    table.add_column("Status", justify="center", style="bold")
    table.add_column("Message")
    for m in messages:
        status = "OK" if m.startswith("OK:") else "ERR"
        table.add_row(status, m)
    rprint(table)
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def explain(file: Path):
    """Print an ASCII plan of the flow in dependency order."""
    print(ascii_plan_from_file(file))


@app.command()
def run(file: Path,
        sink: Optional[List[str]] = typer.Option(None, help="Node id to evaluate (repeatable). Defaults to every end node.")):
    """Execute the flow and print one result per end node."""
    from .runner import run_graph
    try:
        flow = run_graph(file, sinks=sink)
    except NodeflowError as e:
        rprint(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)

    table = Table(title="Results", show_lines=True)
    table.add_column("Node", style="bold")
    table.add_column("Title")
    table.add_column("Result")
    table.add_column("Time (s)", justify="right")
    for r in flow.results:
        shown = f"[red]Error: {escape(r.error)}[/]" if r.error is not None else escape(repr(r.result))
        table.add_row(r.node_id, r.title, shown, f"{r.execution_time:.3f}")
    rprint(table)
    if not flow.ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
