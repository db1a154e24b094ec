"""Plans command - Inspect and resume persisted plans."""

import asyncio

import typer
from rich.console import Console

from taskpilot.api.cli.output_formatter import EventRenderer, OutputFormat, OutputFormatter
from taskpilot.api.cli.runtime import build_components
from taskpilot.core.domain.errors import PlanNotFoundError
from taskpilot.core.domain.models import RunOptions

app = typer.Typer(help="Plan management")


@app.command("list")
def list_plans(
    ctx: typer.Context,
    output: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
):
    """List persisted plans with their derived status."""
    console = Console()
    components = build_components(ctx)
    plans = asyncio.run(components.coordinator.list_plans())
    OutputFormatter(console).format_data(plans, output, title="Plans")


@app.command("show")
def show_plan(
    ctx: typer.Context,
    plan_id: str = typer.Argument(..., help="Plan ID"),
    output: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
):
    """Show a plan and the state of each step."""
    console = Console()
    components = build_components(ctx)

    try:
        plan = asyncio.run(components.coordinator.show_plan(plan_id))
    except PlanNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if output is OutputFormat.JSON:
        OutputFormatter(console).format_data(plan, output)
        return

    console.print(f"\n[bold]Plan:[/bold] {plan['plan_id']}")
    console.print(f"[bold]Task:[/bold] {plan['original_task']}")
    console.print(f"[bold]Status:[/bold] {plan['status']}")
    steps = [
        {
            "id": step["id"],
            "description": step["description"],
            "tool": step["tool"],
            "status": step["status"],
            "attempts": f"{step['attempts']}/{step['max_attempts']}",
            "error": step.get("error"),
        }
        for step in plan["steps"]
    ]
    OutputFormatter(console).format_data(steps, output, title="Steps")


@app.command("resume")
def resume_plan(
    ctx: typer.Context,
    plan_id: str = typer.Argument(..., help="Plan ID"),
    json_output: bool = typer.Option(False, "--json", help="Print one JSON Mode Event per line"),
    interactive: bool = typer.Option(
        True,
        "--interactive/--no-interactive",
        help="Ask how to proceed when a plan step fails",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show plans and results"),
):
    """Continue a plan from its first unfinished step."""
    console = Console()
    renderer = EventRenderer(console, json_mode=json_output, verbose=verbose)
    interactive = interactive and not json_output

    try:
        components = build_components(ctx, console, interactive=interactive)
        asyncio.run(
            components.coordinator.resume_plan(
                plan_id, RunOptions(interactive=interactive), listener=renderer
            )
        )
    except Exception as e:
        renderer.render_fatal(e)
        raise typer.Exit(1)
