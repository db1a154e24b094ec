"""TaskPilot CLI entry point."""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console

from taskpilot.api.cli.commands import chat, config, plans, run, sessions
from taskpilot.application.settings import AgentSettings

app = typer.Typer(
    name="taskpilot",
    help="TaskPilot - LLM agent orchestration with planning and resumable plans",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register commands and command groups
app.command("run", help="Execute a task")(run.run_task)
app.command("chat", help="Interactive chat mode")(chat.chat)
app.add_typer(plans.app, name="plans", help="Plan management")
app.add_typer(sessions.app, name="sessions", help="Session management")
app.add_typer(config.app, name="config", help="Configuration management")


def setup_logging(debug: bool = False, json_logs: bool = False, level: str = "WARNING") -> None:
    """Configure structured logging. Logs go to stderr so stdout stays event-only."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, stream=sys.stderr, format="%(message)s")

    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if debug and not json_logs:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        # Resolve sys.stderr per logger so redirected streams are honoured
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML configuration file"
    ),
    debug: bool = typer.Option(False, "--debug", envvar="TASKPILOT_DEBUG", help="Enable debug logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
):
    """TaskPilot Agent CLI."""
    load_dotenv()
    config_path = config_path or AgentSettings.default_config_path()

    try:
        settings = AgentSettings.load_from_file(config_path)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration in {config_path}:[/red]\n{e}")
        raise typer.Exit(1)

    setup_logging(debug, json_logs, settings.log_level)

    # Store global options in context for subcommands
    ctx.obj = {"settings": settings, "config_path": config_path, "debug": debug}


@app.command()
def version():
    """Show TaskPilot version."""
    from taskpilot import __version__

    console.print(f"[bold blue]TaskPilot[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
