"""Chat command - Interactive mode reusing one session across tasks."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Prompt

from taskpilot.api.cli.output_formatter import EventRenderer
from taskpilot.api.cli.runtime import build_components
from taskpilot.core.domain.models import RunOptions, new_session_id

EXIT_COMMANDS = ("exit", "quit", "bye")


def chat(
    ctx: typer.Context,
    session_id: Optional[str] = typer.Option(
        None, "--session", "-s", help="Continue an existing session"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show plans and results"),
):
    """Start an interactive session.

    Every task entered is executed in the same session, so later tasks can
    draw on what earlier ones logged.

    Examples:
        taskpilot chat
        taskpilot chat --session 1718000000000-abc123
    """
    console = Console()
    renderer = EventRenderer(console, verbose=verbose)
    options = RunOptions(session_id=session_id or new_session_id(), interactive=True)
    components = build_components(ctx, console, interactive=True)

    console.print(f"[bold blue]TaskPilot[/bold blue] session [cyan]{options.session_id}[/cyan]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to end the session[/dim]")

    async def run_chat_loop():
        while True:
            # Blocking input is fine between tasks
            try:
                user_input = Prompt.ask("\n[bold green]You[/bold green]", console=console)
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if user_input.strip().lower() in EXIT_COMMANDS:
                console.print("[dim]Goodbye![/dim]")
                break

            if not user_input.strip():
                continue

            try:
                await components.coordinator.execute(user_input, options, listener=renderer)
            except Exception as e:
                console.print(f"[red]Execution failed:[/red] {e}")

    asyncio.run(run_chat_loop())
