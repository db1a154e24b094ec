"""
Error taxonomy and recoverability classification.

Tool failures and unparseable model output never surface as exceptions; they
are folded into results and events. What remains are the errors below plus
anything raised by collaborators, which ``is_recoverable`` sorts into
recoverable (loop continues) and fatal (loop aborts).
"""

import asyncio

RECOVERABLE_MARKERS = (
    "ENOENT",
    "EACCES",
    "ETIMEDOUT",
    "Command failed",
    "No such file",
    "Permission denied",
    "timed out",
    "rate limit",
    "429",
)

RECOVERABLE_TYPES = (FileNotFoundError, PermissionError, TimeoutError, asyncio.TimeoutError)


class TaskPilotError(Exception):
    """Base class for all errors raised by taskpilot."""


class UnknownToolError(TaskPilotError):
    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolParameterError(TaskPilotError):
    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid parameters for {tool_name}: {message}")
        self.tool_name = tool_name


class ToolRegistrationError(TaskPilotError):
    """Raised when the tool table fails validation at startup."""


class IllegalTransitionError(TaskPilotError):
    def __init__(self, step_id: int | str, current: str, target: str):
        super().__init__(f"Step {step_id}: illegal transition {current} -> {target}")
        self.step_id = step_id
        self.current = current
        self.target = target


class PlanningError(TaskPilotError):
    """The planner could not produce a valid plan from the model output."""


class PlanNotFoundError(TaskPilotError):
    def __init__(self, plan_id: str):
        super().__init__(f"Plan not found: {plan_id}")
        self.plan_id = plan_id


class PlanPersistenceError(TaskPilotError):
    def __init__(self, plan_id: str, message: str):
        super().__init__(f"Failed to persist plan {plan_id}: {message}")
        self.plan_id = plan_id


class LLMError(TaskPilotError):
    def __init__(self, message: str, provider: str | None = None, model: str | None = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


def _chain(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_recoverable(exc: BaseException) -> bool:
    """
    Decide whether an error raised during THINK or ACTION is recoverable.

    An error is recoverable when it, or any exception in its cause chain, is
    a file-not-found, permission or timeout error, or carries one of the
    known transient markers in its message.
    """
    for error in _chain(exc):
        if isinstance(error, RECOVERABLE_TYPES):
            return True
        message = str(error)
        if any(marker in message for marker in RECOVERABLE_MARKERS):
            return True
    return False
