"""
Config command group for managing configuration.
"""

import typer
from rich.console import Console
from rich.table import Table

from taskpilot.api.cli.output_formatter import OutputFormat, OutputFormatter
from taskpilot.api.cli.runtime import get_settings
from taskpilot.application.settings import AgentSettings

console = Console()
app = typer.Typer(help="Manage configuration")

SENSITIVE_KEYS = ("api_key", "password", "secret", "token")


def complete_config_keys(incomplete: str):
    """Auto-complete configuration keys."""
    return [name for name in AgentSettings.model_fields if name.startswith(incomplete)]


@app.command("show")
def show_config(
    ctx: typer.Context,
    output_format: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format"
    ),
    show_sensitive: bool = typer.Option(
        False, "--show-sensitive", help="Show sensitive values (like API keys)"
    ),
):
    """
    Show the effective configuration.

    Examples:
        taskpilot config show
        taskpilot config show --output json
    """
    settings = get_settings(ctx)
    config_data = settings.model_dump()

    # Mask sensitive values unless explicitly requested
    if not show_sensitive:
        for key, value in config_data.items():
            if value and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                config_data[key] = "*" * min(len(str(value)), 8)

    if output_format is OutputFormat.JSON:
        OutputFormatter(console).format_data(config_data, output_format)
        return

    table = Table(title="TaskPilot Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_column("Description", style="dim")
    for field_name, field_info in AgentSettings.model_fields.items():
        value = config_data.get(field_name)
        table.add_row(field_name, "" if value is None else str(value), field_info.description or "")
    console.print(table)


@app.command("set")
def set_config(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Configuration key", autocompletion=complete_config_keys),
    value: str = typer.Argument(..., help="Configuration value"),
):
    """
    Set a configuration value in the config file.

    Examples:
        taskpilot config set model gpt-4o
        taskpilot config set max_iterations 15
    """
    if key not in AgentSettings.model_fields:
        console.print(f"[red]Error: Unknown configuration key '{key}'[/red]")
        console.print("Available keys:")
        for field_name in AgentSettings.model_fields:
            console.print(f"  - {field_name}")
        raise typer.Exit(1)

    config_path = (ctx.obj or {}).get("config_path")
    try:
        get_settings(ctx).update_setting(key, value, config_path)
    except ValueError as e:
        console.print(f"[red]Error: Invalid value '{value}' for {key}: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Set {key} = {value}[/green]")


@app.command("path")
def config_path(ctx: typer.Context):
    """Print the configuration file in use."""
    path = (ctx.obj or {}).get("config_path") or AgentSettings.default_config_path()
    console.print(str(path), soft_wrap=True)
