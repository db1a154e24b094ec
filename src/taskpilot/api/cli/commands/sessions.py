"""Sessions command - Inspect, search and clear session logs."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from taskpilot.api.cli.output_formatter import OutputFormat, OutputFormatter
from taskpilot.api.cli.runtime import get_settings
from taskpilot.application.factory import AgentFactory

app = typer.Typer(help="Session management")
console = Console()


def _factory(ctx: typer.Context) -> AgentFactory:
    return AgentFactory(get_settings(ctx))


@app.command("list")
def list_sessions(ctx: typer.Context):
    """List all sessions with a log."""
    session_store, _ = _factory(ctx).create_stores()

    async def collect():
        rows = []
        for session_id in await session_store.list_sessions():
            entries = await session_store.read_entries(session_id)
            last = entries[-1].get("timestamp", "unknown") if entries else "unknown"
            rows.append((session_id, len(entries), last))
        return rows

    table = Table(title="Sessions")
    table.add_column("Session ID", style="cyan")
    table.add_column("Entries", style="white")
    table.add_column("Last Activity", style="white")
    for session_id, count, last in asyncio.run(collect()):
        table.add_row(session_id, str(count), str(last))

    console.print(table)


@app.command("show")
def show_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of most recent entries"),
    output: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
):
    """Show the most recent entries of a session log."""
    session_store, _ = _factory(ctx).create_stores()
    entries = asyncio.run(session_store.read_entries(session_id))

    if not entries:
        console.print(f"[red]Session '{session_id}' not found or empty[/red]")
        raise typer.Exit(1)

    recent = entries[-limit:] if limit > 0 else entries
    if output is OutputFormat.JSON:
        OutputFormatter(console).format_data(recent, output)
        return

    console.print(f"\n[bold]Session:[/bold] {session_id} ({len(entries)} entries)")
    table = Table()
    table.add_column("Timestamp", style="dim")
    table.add_column("Mode", style="cyan")
    table.add_column("Details", style="white")
    for entry in recent:
        details = {k: v for k, v in entry.items() if k not in ("mode", "timestamp")}
        table.add_row(
            str(entry.get("timestamp", "")),
            str(entry.get("mode", "")),
            OutputFormatter.shorten(details),
        )
    console.print(table)


@app.command("search")
def search_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
    query: str = typer.Argument(..., help="Text to look for"),
    top_k: Optional[int] = typer.Option(
        None, "--top-k", "-k", help="Override the configured number of matches"
    ),
):
    """Rank session entries by relevance to a query."""
    factory = _factory(ctx)
    session_store, _ = factory.create_stores()
    retriever = factory.create_retriever(session_store)
    if top_k is not None:
        retriever.top_k = top_k

    matches = asyncio.run(retriever.retrieve(session_id, query))
    if not matches:
        console.print("[dim]No matching entries[/dim]")
        return

    table = Table(title=f"Matches for '{query}'")
    table.add_column("Score", style="green")
    table.add_column("Position", style="dim")
    table.add_column("Entry", style="white")
    for match in matches:
        table.add_row(f"{match.score:.2f}", str(match.position), OutputFormatter.shorten(match.text))
    console.print(table)


@app.command("clear")
def clear_session(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a session log."""
    if not yes and not Confirm.ask(f"Clear session '{session_id}'?", console=console):
        console.print("[dim]Aborted[/dim]")
        raise typer.Exit(0)

    session_store, _ = _factory(ctx).create_stores()
    asyncio.run(session_store.clear(session_id))
    console.print(f"[green]Session '{session_id}' cleared[/green]")
