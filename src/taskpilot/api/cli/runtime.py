"""Helpers shared by CLI commands for settings and component wiring."""

import typer
from rich.console import Console

from taskpilot.api.cli.interactive_policy import PromptFailurePolicy
from taskpilot.application.factory import AgentComponents, AgentFactory
from taskpilot.application.settings import AgentSettings


def get_settings(ctx: typer.Context) -> AgentSettings:
    global_opts = ctx.obj or {}
    return global_opts.get("settings") or AgentSettings()


def build_components(
    ctx: typer.Context, console: Console | None = None, interactive: bool = False
) -> AgentComponents:
    """Build components from the global settings, with a prompting policy when interactive."""
    policy = PromptFailurePolicy(console) if interactive else None
    return AgentFactory(get_settings(ctx)).create_components(interactive_policy=policy)
