"""Failure policy that asks the user at the terminal."""

from rich.console import Console
from rich.prompt import Prompt

from taskpilot.core.domain.models import FailureDecision, Plan, Step

EXHAUSTED_CHOICES = {
    "retry": FailureDecision.RETRY,
    "skip": FailureDecision.SKIP,
    "continue": FailureDecision.CONTINUE_AS_FAILED,
    "abort": FailureDecision.ABORT,
}
ERROR_CHOICES = {
    "retry": FailureDecision.RETRY,
    "skip": FailureDecision.SKIP,
    "abort": FailureDecision.ABORT,
}


class PromptFailurePolicy:
    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    async def on_step_exhausted(self, plan: Plan, step: Step) -> FailureDecision:
        self.console.print(
            f"\n[red]Step {step.id} failed after {step.attempts} attempts:[/red] {step.description}"
        )
        self.console.print(f"[dim]Error: {step.error}[/dim]")
        self.console.print(
            "[dim]retry: fresh attempts | skip: mark skipped | "
            "continue: keep as failed and move on | abort: stop the plan[/dim]"
        )
        return self._ask(EXHAUSTED_CHOICES)

    async def on_step_error(
        self, plan: Plan, step: Step, error: BaseException
    ) -> FailureDecision:
        self.console.print(f"\n[red]Unexpected error during step {step.id}:[/red] {error}")
        return self._ask(ERROR_CHOICES)

    def _ask(self, choices: dict[str, FailureDecision]) -> FailureDecision:
        answer = Prompt.ask(
            "How would you like to proceed?",
            choices=list(choices),
            default="abort",
            console=self.console,
        )
        return choices[answer]
