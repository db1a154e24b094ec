"""Run command - Execute a task through the plan coordinator."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from taskpilot.api.cli.output_formatter import EventRenderer
from taskpilot.api.cli.runtime import build_components
from taskpilot.core.domain.models import RunOptions


def run_task(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task description"),
    session_id: Optional[str] = typer.Option(
        None, "--session", "-s", help="Session to log to (generated when omitted)"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print one JSON Mode Event per line"
    ),
    interactive: bool = typer.Option(
        True,
        "--interactive/--no-interactive",
        help="Ask how to proceed when a plan step fails",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show plans and results"),
):
    """Execute a task.

    Examples:
        # Simple task
        taskpilot run "List the files in the current directory"

        # Multi-step task with streamed JSON events
        taskpilot run "Create notes.txt then read it back" --json

        # Continue logging to an existing session
        taskpilot run "Summarize what we did" --session 1718000000000-abc123
    """
    console = Console()
    renderer = EventRenderer(console, json_mode=json_output, verbose=verbose)
    # Prompts would corrupt the JSON stream
    interactive = interactive and not json_output

    try:
        components = build_components(ctx, console, interactive=interactive)
        asyncio.run(
            components.coordinator.execute(
                task,
                RunOptions(session_id=session_id, interactive=interactive),
                listener=renderer,
            )
        )
    except Exception as e:
        renderer.render_fatal(e)
        raise typer.Exit(1)
