"""
Output formatting for the CLI.

EventRenderer turns Mode Events into either one JSON object per line
(structured-output mode) or styled rich text. OutputFormatter renders plain
data (plan listings, session entries) as tables or JSON.
"""

import json
from enum import Enum
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from taskpilot.core.domain.events import ModeEvent, utc_now_iso


class OutputFormat(str, Enum):
    """Available output formats."""

    TABLE = "table"
    JSON = "json"


def _short(value: Any, limit: int = 300) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


class EventRenderer:
    """Render Mode Events as JSON lines or human-readable text."""

    def __init__(self, console: Console | None = None, json_mode: bool = False, verbose: bool = False):
        self.console = console or Console()
        self.json_mode = json_mode
        self.verbose = verbose

    def __call__(self, event: ModeEvent) -> None:
        self.render(event)

    def render(self, event: ModeEvent) -> None:
        if self.json_mode:
            self.console.out(json.dumps(event.to_dict(), default=str), highlight=False)
            return

        handler = getattr(self, f"_render_{event.mode.value.lower()}", None)
        if handler is None:
            self.console.print(f"[dim]{event.mode.value}[/dim] {_short(dict(event.payload))}")
            return
        handler(event)

    def render_fatal(self, error: BaseException) -> None:
        """Report an error that ends the process."""
        if self.json_mode:
            payload = {
                "mode": "FATAL_ERROR",
                "timestamp": utc_now_iso(),
                "error": {"message": str(error), "type": type(error).__name__},
            }
            self.console.out(json.dumps(payload), highlight=False)
        else:
            self.console.print(f"[bold red]Error:[/bold red] {error}")

    def _render_start(self, event: ModeEvent) -> None:
        self.console.print(f"[bold blue]START[/bold blue] {event.get('task')}")

    def _render_think(self, event: ModeEvent) -> None:
        thinking = event.get("thinking") or {}
        self.console.print(
            f"[magenta]THINK[/magenta] #{event.get('iteration')} "
            f"[dim]({thinking.get('confidence')})[/dim] {_short(thinking.get('analysis', ''), 200)}"
        )
        if self.verbose and thinking.get("plan"):
            self.console.print(f"  [dim]plan:[/dim] {thinking['plan']}")
        action = event.get("nextAction")
        if action:
            self.console.print(f"  [dim]next:[/dim] {action['tool']} {_short(action.get('parameters'), 120)}")

    def _render_action(self, event: ModeEvent) -> None:
        action = event.get("action") or {}
        style = "green" if event.get("success") else "red"
        self.console.print(
            f"[yellow]ACTION[/yellow] {action.get('tool')} "
            f"[{style}]{'ok' if event.get('success') else 'failed'}[/{style}] "
            f"[dim]{action.get('durationMs')}ms[/dim]"
        )
        if event.get("error"):
            self.console.print(f"  [red]{event.get('error', {}).get('message')}[/red]")
        elif self.verbose:
            self.console.print(f"  [dim]{_short(event.get('result'))}[/dim]")

    def _render_observe(self, event: ModeEvent) -> None:
        self.console.print(f"[cyan]OBSERVE[/cyan] {event.get('status')}")

    def _render_output(self, event: ModeEvent) -> None:
        summary = event.get("summary") or {}
        title = "Completed" if event.get("completed") else "Finished (incomplete)"
        body = _short(event.get("finalOutput"), 2000)
        if "successRate" in summary:
            body += (
                f"\n\nStatus: {summary.get('status')}  Success rate: {summary.get('successRate')}"
                f"  Time: {summary.get('executionTime')}"
            )
        style = "green" if event.get("completed") else "yellow"
        self.console.print(Panel(body, title=f"OUTPUT - {title}", border_style=style))

    def _render_error(self, event: ModeEvent) -> None:
        error = event.get("error") or {}
        tag = "recoverable" if error.get("recoverable") else "error"
        self.console.print(f"[red]ERROR[/red] [dim]({tag})[/dim] {error.get('message')}")

    def _render_analyze(self, event: ModeEvent) -> None:
        analysis = event.get("analysis") or {}
        kind = "multi-step" if analysis.get("isMultiStep") else "single-step"
        self.console.print(
            f"[blue]ANALYZE[/blue] {kind} [dim]complexity={analysis.get('complexity')} "
            f"steps={analysis.get('estimatedSteps')}[/dim]"
        )
        if self.verbose:
            self.console.print(f"  [dim]{analysis.get('reasoning')}[/dim]")

    def _render_single_step(self, event: ModeEvent) -> None:
        self.console.print("[blue]SINGLE_STEP[/blue] executing directly")

    def _render_plan(self, event: ModeEvent) -> None:
        status = event.get("status")
        if status == "CREATED":
            plan = event.get("plan") or {}
            self.console.print(
                f"[blue]PLAN[/blue] created {plan.get('id')} with {plan.get('steps')} steps"
            )
            if plan.get("strategy"):
                self.console.print(f"  [dim]{plan['strategy']}[/dim]")
        elif status == "FAILED":
            self.console.print(f"[red]PLAN failed[/red] {event.get('error')}")
        else:
            self.console.print("[blue]PLAN[/blue] creating execution plan")

    def _render_execute_plan(self, event: ModeEvent) -> None:
        status = event.get("status")
        step = event.get("step") or {}
        plan = event.get("plan") or {}
        if status == "STEP_STARTING":
            self.console.print(
                f"[cyan]STEP {plan.get('currentStep')}/{plan.get('totalSteps')}[/cyan] "
                f"{step.get('description')} [dim](attempt {step.get('attempt')}/{step.get('maxAttempts')})[/dim]"
            )
        elif status == "STEP_COMPLETED":
            self.console.print(f"  [green]step {step.get('id')} completed[/green]")
        elif status == "STEP_RETRYING":
            self.console.print(f"  [yellow]step {step.get('id')} retrying:[/yellow] {event.get('error')}")
        elif status == "STEP_FAILED":
            self.console.print(f"  [red]step {step.get('id')} failed:[/red] {event.get('error')}")
        elif status == "STEP_SKIPPED":
            self.console.print(f"  [yellow]step {step.get('id')} skipped[/yellow]")
        elif status in ("COMPLETED", "ABORTED"):
            results = event.get("results") or {}
            style = "green" if status == "COMPLETED" else "red"
            self.console.print(
                f"[{style}]PLAN {status}[/{style}] completed {results.get('completedSteps')}/"
                f"{results.get('totalSteps')}, skipped {results.get('skippedSteps')}, "
                f"failed {results.get('failedSteps')}"
            )
        else:
            self.console.print(f"[cyan]EXECUTE_PLAN[/cyan] {plan.get('id')} ({plan.get('totalSteps')} steps)")

    def _render_resume(self, event: ModeEvent) -> None:
        plan = event.get("plan") or {}
        self.console.print(
            f"[blue]RESUME[/blue] {plan.get('id')} from step {plan.get('resumeFrom')}/"
            f"{plan.get('totalSteps')}: {plan.get('originalTask')}"
        )


class OutputFormatter:
    """Handles formatting plain data in different formats."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    @staticmethod
    def shorten(value: Any, limit: int = 120) -> str:
        return _short(value, limit)

    def format_data(self, data: Any, format_type: OutputFormat, title: str | None = None) -> None:
        if format_type is OutputFormat.JSON:
            self.console.out(json.dumps(data, indent=2, default=str), highlight=False)
        else:
            self._format_table(data, title)

    def _format_table(self, data: Any, title: str | None) -> None:
        if isinstance(data, list) and data and isinstance(data[0], dict):
            table = Table(title=title)
            for key in data[0]:
                table.add_column(str(key).replace("_", " ").title(), style="cyan")
            for item in data:
                table.add_row(*(_short(value, 80) if value is not None else "" for value in item.values()))
            self.console.print(table)
        elif isinstance(data, dict):
            table = Table(title=title, show_header=False)
            table.add_column("Property", style="cyan")
            table.add_column("Value", style="white")
            for key, value in data.items():
                rendered = json.dumps(value, indent=2, default=str) if isinstance(value, (list, dict)) else str(value)
                table.add_row(str(key).replace("_", " ").title(), rendered if value is not None else "")
            self.console.print(table)
        elif isinstance(data, list) and not data:
            self.console.print(f"[dim]No {title.lower() if title else 'entries'} found[/dim]")
        else:
            self.console.print(str(data))
